"""
Rule Store Module

Owns the in-memory rule collection for a run:
- Appends freshly extracted rules with unique ids and source-file tags
- Applies delete/merge edits proposed by the consolidation stage
- Answers which rules belong to a given document
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Union

from policyascode.exceptions import UnknownRuleError
from policyascode.models import (
    DeleteEdit,
    ExtractedRule,
    MergeEdit,
    Quote,
    Rule,
    RuleSet,
)

logger = logging.getLogger(__name__)

ID_PREFIX = "rule-"
_ID_PATTERN = re.compile(rf"^{re.escape(ID_PREFIX)}(\d+)$")


def _unique(items: Iterable[str]) -> List[str]:
    """Drop duplicates, keeping first-seen order."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


@dataclass
class ConsolidationResult:
    """Outcome of applying an edit list."""
    ruleset: RuleSet
    original_count: int
    applied: int = 0
    skipped: int = 0
    deleted_ids: List[str] = field(default_factory=list)
    merged_ids: List[str] = field(default_factory=list)
    unknown_ids: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.applied > 0

    @property
    def final_count(self) -> int:
        return len(self.ruleset.rules)

    def describe(self) -> str:
        """One-line summary for the console."""
        if not self.applied:
            return f"No edits applied ({self.original_count} rules unchanged)"
        return (
            f"Applied {self.applied} edits: "
            f"{self.original_count} rules -> {self.final_count} rules"
        )


class RuleStore:
    """Authoritative rule collection for a single run.

    Rules are kept in insertion order. Ids are never reused within a store:
    new ids continue from the highest ``rule-<n>`` id seen so far.
    """

    def __init__(self, rules: Optional[Iterable[Rule]] = None, strict: bool = False):
        """
        Args:
            rules: Existing rules to load (ids kept unless missing or duplicated)
            strict: Reject edits that reference unknown rule ids
        """
        self.strict = strict
        self._rules: List[Rule] = []
        self._ids = set()
        self._counter = 0

        rules = list(rules or [])
        # New ids must continue past every numeric id in the input
        for rule in rules:
            if rule.id:
                self._observe_id(rule.id)
        for rule in rules:
            self._load(rule)

    @classmethod
    def from_ruleset(cls, ruleset: RuleSet, strict: bool = False) -> "RuleStore":
        return cls(ruleset.rules, strict=strict)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def rules(self) -> List[Rule]:
        return list(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._ids

    def get(self, rule_id: str) -> Optional[Rule]:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    def for_file(self, filename: str) -> List[Rule]:
        """Rules whose ``source_files`` contain ``filename`` exactly."""
        return [rule for rule in self._rules if filename in rule.source_files]

    def to_ruleset(self) -> RuleSet:
        return RuleSet(rules=self.rules)

    # ------------------------------------------------------------------
    # Id allocation
    # ------------------------------------------------------------------

    def _observe_id(self, rule_id: str) -> None:
        match = _ID_PATTERN.match(rule_id)
        if match:
            self._counter = max(self._counter, int(match.group(1)))

    def _next_id(self) -> str:
        self._counter += 1
        candidate = f"{ID_PREFIX}{self._counter}"
        while candidate in self._ids:
            self._counter += 1
            candidate = f"{ID_PREFIX}{self._counter}"
        return candidate

    def _register(self, rule: Rule) -> Rule:
        self._ids.add(rule.id)
        self._observe_id(rule.id)
        self._rules.append(rule)
        return rule

    def _load(self, rule: Rule) -> Rule:
        """Add an existing rule, keeping its id when it is usable."""
        if rule.id and rule.id not in self._ids:
            return self._register(rule)
        if rule.id:
            logger.warning(f"Duplicate rule id {rule.id!r}; assigning a new id")
        return self._register(rule.model_copy(update={"id": self._next_id()}))

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def add_extracted(
        self,
        extracted: Iterable[Union[ExtractedRule, Rule]],
        source_file: str,
    ) -> List[Rule]:
        """
        Append rules extracted from one document.

        Args:
            extracted: Rules returned by the extraction call
            source_file: Name of the originating document

        Returns:
            The stored rules, with ids and source files stamped
        """
        added = []
        for item in extracted:
            if isinstance(item, ExtractedRule):
                rule = Rule(
                    title=item.title,
                    body=item.body,
                    priority=item.priority,
                    rationale=item.rationale,
                    quotes=[Quote(text=text, file=source_file) for text in item.quotes],
                    source_files=[source_file],
                )
            else:
                rule = item.model_copy(update={
                    "source_files": item.source_files or [source_file],
                    "quotes": [
                        q if q.file else q.model_copy(update={"file": source_file})
                        for q in item.quotes
                    ],
                })
            added.append(self._register(rule.model_copy(update={"id": self._next_id()})))

        logger.debug(f"Added {len(added)} rules from {source_file} (store size {len(self)})")
        return added

    # ------------------------------------------------------------------
    # Consolidation
    # ------------------------------------------------------------------

    def apply_edits(self, edits: Sequence[Union[DeleteEdit, MergeEdit]]) -> ConsolidationResult:
        """
        Apply delete/merge edits to the store.

        Every rule referenced by any edit is removed; each merge edit then
        adds one replacement rule carrying the union of the merged rules'
        source files and the concatenation of their quotes.

        Args:
            edits: Edits proposed by the consolidation call

        Returns:
            ConsolidationResult describing what changed

        Raises:
            UnknownRuleError: In strict mode, if an edit references an id
                that is not in the store (the store is left untouched)
        """
        original_count = len(self)

        if not edits:
            logger.info("No consolidation edits suggested")
            return ConsolidationResult(ruleset=self.to_ruleset(), original_count=original_count)

        by_id: Dict[str, Rule] = {rule.id: rule for rule in self._rules}
        referenced = _unique(rule_id for edit in edits for rule_id in edit.ids)
        unknown = [rule_id for rule_id in referenced if rule_id not in by_id]

        if unknown:
            if self.strict:
                raise UnknownRuleError(unknown)
            logger.warning(f"Ignoring unknown rule ids in edits: {', '.join(unknown)}")

        to_delete = [rule_id for rule_id in referenced if rule_id in by_id]
        replacements: List[Rule] = []
        skipped = 0

        for edit in edits:
            known = [by_id[rule_id] for rule_id in _unique(edit.ids) if rule_id in by_id]
            if not known:
                logger.warning(f"Skipping {edit.edit} edit: none of {edit.ids} exist")
                skipped += 1
                continue
            if isinstance(edit, MergeEdit):
                replacements.append(self._merged_rule(edit, known))

        removed = set(to_delete)
        self._rules = [rule for rule in self._rules if rule.id not in removed]
        for rule in replacements:
            self._register(rule)
        self._ids = {rule.id for rule in self._rules}

        applied = len(edits) - skipped
        logger.info(
            f"Applied {applied} edits ({len(to_delete)} rules removed, "
            f"{len(replacements)} merged rules added)"
        )
        return ConsolidationResult(
            ruleset=self.to_ruleset(),
            original_count=original_count,
            applied=applied,
            skipped=skipped,
            deleted_ids=to_delete,
            merged_ids=[rule.id for rule in replacements],
            unknown_ids=unknown,
        )

    def _merged_rule(self, edit: MergeEdit, sources: List[Rule]) -> Rule:
        """Build the replacement rule for a merge edit."""
        source_files = _unique(f for rule in sources for f in rule.source_files)
        quotes = [quote for rule in sources for quote in rule.quotes]
        return Rule(
            id=self._next_id(),
            title=edit.title,
            body=edit.body,
            priority=edit.priority,
            rationale=edit.rationale,
            quotes=quotes,
            source_files=source_files,
        )
