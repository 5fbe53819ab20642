"""
Rule Consolidation Module

Sends a rule collection to the LLM, which proposes delete/merge edits,
and applies those edits through the rule store.
"""

import logging
from typing import Optional

from policyascode.llm_client import LLMClient
from policyascode.models import ConsolidationResponse, RuleSet
from policyascode.prompts import DEFAULT_CONSOLIDATION_PROMPT, build_consolidation_message
from policyascode.rule_store import ConsolidationResult, RuleStore
from policyascode.schemas import EDITS_SCHEMA

logger = logging.getLogger(__name__)


class RuleConsolidator:
    """Deduplicates a rule collection with LLM-proposed edits."""

    def __init__(self, client: LLMClient, prompt: Optional[str] = None, strict: bool = False):
        """
        Args:
            client: LLM client
            prompt: System prompt override
            strict: Fail when an edit references an unknown rule id
        """
        self.client = client
        self.prompt = prompt or DEFAULT_CONSOLIDATION_PROMPT
        self.strict = strict

    def propose_edits(self, store: RuleStore) -> ConsolidationResponse:
        """Ask the model for edits over the store's rules."""
        return self.client.request_structured(
            system_prompt=self.prompt,
            content=build_consolidation_message(store.rules),
            schema=EDITS_SCHEMA,
            response_model=ConsolidationResponse,
        )

    def consolidate(self, ruleset: RuleSet) -> ConsolidationResult:
        """
        Consolidate a rule collection.

        Args:
            ruleset: Rules to consolidate

        Returns:
            ConsolidationResult with the updated collection

        Raises:
            ApiError: If the LLM call fails
            UnknownRuleError: In strict mode, for edits with unknown ids
        """
        store = RuleStore.from_ruleset(ruleset, strict=self.strict)

        if len(store) == 0:
            logger.warning("Rule collection is empty; nothing to consolidate")
            return store.apply_edits([])

        logger.info(f"Consolidating {len(store)} rules")
        response = self.propose_edits(store)
        logger.info(f"Model proposed {len(response.edits)} edits")
        for edit in response.edits:
            logger.debug(f"{edit.edit} {edit.ids}: {edit.reason}")

        return store.apply_edits(response.edits)
