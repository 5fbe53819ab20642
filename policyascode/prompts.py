"""
Default system prompts and user-content templates for each stage.
"""

import json
from typing import List

from langchain_core.prompts import PromptTemplate

from policyascode.models import Rule


DEFAULT_EXTRACTION_PROMPT = """Extract atomic, testable rules from ONE policy document.
Keep each rule minimal.
Write for an LLM to apply it unambiguously.
Always include concise rationale and quotes.
Quotes must be verbatim excerpts from the document."""

DEFAULT_CONSOLIDATION_PROMPT = """Review rules and identify opportunities to:
1. Delete redundant rules
2. Merge similar rules
Be conservative. Only suggest edits that clearly improve the ruleset.
Refer to rules only by the ids given."""

DEFAULT_VALIDATION_PROMPT = """Check if the document complies with each rule.
Use "pass" when the document satisfies the rule, "fail" when it violates it,
"n/a" when the rule does not apply to this document and "unknown" when the
document does not contain enough information to decide.
Be specific and cite relevant parts of the document in your reasoning."""


EXTRACTION_TEMPLATE = PromptTemplate.from_template(
    "Extract rules from the attached document \"{filename}\"."
)

CONSOLIDATION_TEMPLATE = PromptTemplate.from_template(
    "Review these rules and suggest edits (delete or merge only):\n\n"
    "{rules_json}\n\n"
    "Every id you reference must be one of the ids above."
)

VALIDATION_TEMPLATE = PromptTemplate.from_template(
    "Validate the attached document \"{filename}\" against the following rules "
    "(only those extracted from this document):\n\n"
    "RULES:\n{rules_json}\n\n"
    "Return exactly one verdict per rule, using the rule's id."
)


def rules_to_json(rules: List[Rule]) -> str:
    """Compact JSON listing of rules for embedding in a prompt."""
    return json.dumps([rule.to_prompt_dict() for rule in rules], indent=2, ensure_ascii=False)


def build_extraction_message(filename: str) -> str:
    return EXTRACTION_TEMPLATE.format(filename=filename)


def build_consolidation_message(rules: List[Rule]) -> str:
    return CONSOLIDATION_TEMPLATE.format(rules_json=rules_to_json(rules))


def build_validation_message(filename: str, rules: List[Rule]) -> str:
    return VALIDATION_TEMPLATE.format(filename=filename, rules_json=rules_to_json(rules))
