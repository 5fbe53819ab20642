"""
Rule Extraction Module

Asks the LLM for atomic, testable rules from each input document and
accumulates them in a single rule store. Documents are processed one at
a time; a missing file or failed call skips that file only.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from policyascode.document_loader import DocumentLoader
from policyascode.exceptions import ApiError, DocumentNotFoundError, DocumentReadError
from policyascode.llm_client import LLMClient
from policyascode.models import ExtractionResponse, Rule
from policyascode.prompts import DEFAULT_EXTRACTION_PROMPT, build_extraction_message
from policyascode.rule_store import RuleStore
from policyascode.schemas import RULES_SCHEMA
from policyascode.utils import ProgressTracker

logger = logging.getLogger(__name__)


@dataclass
class ExtractionOutcome:
    """Result of an extraction run."""
    store: RuleStore
    counts: Dict[str, int] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.store)

    def describe(self) -> str:
        summary = f"Extracted {self.total} rules from {len(self.counts)} files"
        if self.failed:
            summary += f" ({len(self.failed)} failed: {', '.join(self.failed)})"
        return summary


class RuleExtractor:
    """Extracts rules from policy documents."""

    def __init__(
        self,
        client: LLMClient,
        prompt: Optional[str] = None,
        loader: Optional[DocumentLoader] = None,
    ):
        self.client = client
        self.prompt = prompt or DEFAULT_EXTRACTION_PROMPT
        self.loader = loader or DocumentLoader()

    def extract_file(self, path: Union[str, Path]) -> ExtractionResponse:
        """
        Extract rules from a single document.

        Raises:
            DocumentNotFoundError: If the document does not exist
            DocumentReadError: If the document cannot be read
            ApiError: If the LLM call fails
        """
        document = self.loader.load(path)
        return self.client.request_structured(
            system_prompt=self.prompt,
            content=[document, build_extraction_message(document.filename)],
            schema=RULES_SCHEMA,
            response_model=ExtractionResponse,
        )

    def extract(
        self,
        paths: Iterable[Union[str, Path]],
        store: Optional[RuleStore] = None,
    ) -> ExtractionOutcome:
        """
        Extract rules from every document into one store.

        Args:
            paths: Documents to process, in order
            store: Store to append to (a new one by default)

        Returns:
            ExtractionOutcome with the store and per-file counts/failures
        """
        paths = [Path(p) for p in paths]
        outcome = ExtractionOutcome(store=store if store is not None else RuleStore())
        tracker = ProgressTracker(len(paths), name="Extraction")

        for path in paths:
            logger.info(f"Extracting rules from: {path}")
            try:
                response = self.extract_file(path)
            except (DocumentNotFoundError, DocumentReadError) as e:
                logger.error(f"Skipping {path}: {e}")
                outcome.failed[str(path)] = str(e)
                tracker.update(success=False)
                continue
            except ApiError as e:
                logger.error(f"Failed to extract rules from {path}: {e}")
                outcome.failed[str(path)] = str(e)
                tracker.update(success=False)
                continue

            added: List[Rule] = outcome.store.add_extracted(response.rules, source_file=path.name)
            outcome.counts[str(path)] = len(added)
            logger.info(f"Extracted {len(added)} rules from {path}")
            tracker.update(success=True)

        tracker.finish()
        return outcome
