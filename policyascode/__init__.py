"""
Policy-as-Code Toolkit

Extracts atomic, testable rules from policy documents with an LLM,
consolidates them into a deduplicated collection, and validates
documents against the rules that were extracted from them.
"""

__version__ = "0.1.0"
__all__ = [
    "config",
    "consolidation",
    "document_loader",
    "exceptions",
    "extraction",
    "llm_client",
    "models",
    "prompts",
    "rule_store",
    "schemas",
    "utils",
    "validation",
]
