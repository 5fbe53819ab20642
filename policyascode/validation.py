"""
Rule Validation Module

Checks each document against the rules that were extracted from it:
- Rules are scoped to a document by exact membership in ``source_files``
- Documents with no applicable rules are skipped with a warning
- Every verdict is stamped with the document name and appended once
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from policyascode.document_loader import DocumentLoader
from policyascode.exceptions import ApiError, DocumentNotFoundError, DocumentReadError
from policyascode.llm_client import LLMClient
from policyascode.models import (
    RuleSet,
    ValidationReport,
    ValidationResponse,
    ValidationResult,
)
from policyascode.prompts import DEFAULT_VALIDATION_PROMPT, build_validation_message
from policyascode.rule_store import RuleStore
from policyascode.schemas import VALIDATION_SCHEMA
from policyascode.utils import ProgressTracker

logger = logging.getLogger(__name__)


@dataclass
class ValidationOutcome:
    """Result of a validation run."""
    report: ValidationReport = field(default_factory=ValidationReport)
    validated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    def describe(self) -> str:
        counts = self.report.summary()
        return (
            f"{len(self.report.validations)} verdicts for {len(self.validated)} files: "
            f"{counts['pass']} pass, {counts['fail']} fail, "
            f"{counts['n/a']} n/a, {counts['unknown']} unknown"
        )


class RuleValidator:
    """Validates documents against their own rules."""

    def __init__(
        self,
        client: LLMClient,
        prompt: Optional[str] = None,
        loader: Optional[DocumentLoader] = None,
    ):
        self.client = client
        self.prompt = prompt or DEFAULT_VALIDATION_PROMPT
        self.loader = loader or DocumentLoader()

    def validate_file(self, store: RuleStore, path: Union[str, Path]) -> Optional[List[ValidationResult]]:
        """
        Validate one document.

        Returns:
            Verdicts for the document, or None when no rule applies to it

        Raises:
            DocumentNotFoundError: If the document does not exist
            DocumentReadError: If the document cannot be read
            ApiError: If the LLM call fails
        """
        path = Path(path)
        document = self.loader.load(path)
        filename = document.filename
        applicable = store.for_file(filename)

        if not applicable:
            logger.warning(f"No rules found for file: {filename}")
            return None

        logger.info(f"Checking {len(applicable)} rules relevant to {filename}")

        response = self.client.request_structured(
            system_prompt=self.prompt,
            content=[document, build_validation_message(filename, applicable)],
            schema=VALIDATION_SCHEMA,
            response_model=ValidationResponse,
        )

        allowed = {rule.id for rule in applicable}
        results = []
        for verdict in response.validations:
            if verdict.id not in allowed:
                logger.warning(f"Dropping verdict for rule {verdict.id!r}: not a rule of {filename}")
                continue
            results.append(ValidationResult(
                id=verdict.id,
                file=filename,
                result=verdict.result,
                reason=verdict.reason,
            ))

        missing = allowed - {r.id for r in results}
        if missing:
            logger.warning(f"No verdict returned for {len(missing)} rules of {filename}")

        return results

    def validate(self, ruleset: RuleSet, paths: Iterable[Union[str, Path]]) -> ValidationOutcome:
        """
        Validate every document against its applicable rules.

        Args:
            ruleset: Rule collection (not modified)
            paths: Documents to validate, in order

        Returns:
            ValidationOutcome with the combined report
        """
        store = RuleStore.from_ruleset(ruleset)
        paths = [Path(p) for p in paths]
        outcome = ValidationOutcome()
        tracker = ProgressTracker(len(paths), name="Validation")

        for path in paths:
            logger.info(f"Validating: {path}")
            try:
                results = self.validate_file(store, path)
            except (DocumentNotFoundError, DocumentReadError) as e:
                logger.error(f"Skipping {path}: {e}")
                outcome.failed[str(path)] = str(e)
                tracker.update(success=False)
                continue
            except ApiError as e:
                logger.error(f"Failed to validate {path}: {e}")
                outcome.failed[str(path)] = str(e)
                tracker.update(success=False)
                continue

            if results is None:
                outcome.skipped.append(str(path))
                tracker.skip()
                continue

            outcome.report.validations.extend(results)
            outcome.validated.append(str(path))

            passed = sum(1 for r in results if r.result == "pass")
            failed = sum(1 for r in results if r.result == "fail")
            logger.info(f"Results for {path.name}: {passed} pass, {failed} fail")
            tracker.update(success=True)

        tracker.finish()
        return outcome
