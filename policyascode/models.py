"""
Data Models

Pydantic models for rules, consolidation edits and validation verdicts,
plus the response shapes the LLM must return for each stage.
"""

from collections import Counter
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


Priority = Literal["low", "medium", "high"]
VerdictValue = Literal["pass", "fail", "n/a", "unknown"]

VERDICT_VALUES = ("pass", "fail", "n/a", "unknown")


def _lower(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


# ============================================================================
# Rules
# ============================================================================

class Quote(BaseModel):
    """An excerpt supporting a rule, tied to the document it came from."""
    text: str
    file: str = ""


class Rule(BaseModel):
    """An atomic, testable statement extracted from a policy document.

    Attributes:
        id: Unique, stable identifier within a rule collection
        title: 2-8 word summary of the body
        body: The rule itself, written to be applied unambiguously
        priority: low, medium or high
        rationale: Why the rule exists
        quotes: Supporting excerpts, each tagged with its source file
        source_files: Documents the rule originated from
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    title: str
    body: str
    priority: Priority
    rationale: str = ""
    quotes: List[Quote] = Field(
        default_factory=list,
        validation_alias=AliasChoices("quotes", "sources"),
    )
    source_files: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_single_source_file(cls, data):
        """Older collections carry ``source_file`` as a single string."""
        if isinstance(data, dict) and "source_files" not in data and data.get("source_file"):
            data = dict(data)
            data["source_files"] = [data.pop("source_file")]
        return data

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v):
        return _lower(v)

    @field_validator("quotes", mode="before")
    @classmethod
    def accept_plain_quotes(cls, v):
        """Bare strings are quotes whose file is not yet known."""
        if not isinstance(v, list):
            return v
        return [{"text": q} if isinstance(q, str) else q for q in v]

    def to_prompt_dict(self) -> Dict[str, Any]:
        """The fields the model needs to reason about the rule."""
        return self.model_dump(include={"id", "title", "body", "priority", "rationale"})


class RuleSet(BaseModel):
    """On-disk rule collection: ``{"rules": [...]}``."""
    rules: List[Rule] = Field(default_factory=list)

    @classmethod
    def from_data(cls, data: Any) -> "RuleSet":
        """Accept either ``{"rules": [...]}`` or a bare list of rules."""
        if isinstance(data, list):
            data = {"rules": data}
        return cls.model_validate(data)

    def to_data(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# ============================================================================
# LLM response shapes
# ============================================================================

class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ExtractedRule(_Strict):
    """A rule as returned by the extraction call, before id/file stamping."""
    title: str
    body: str
    priority: Priority
    rationale: str
    quotes: List[str]


class ExtractionResponse(_Strict):
    rules: List[ExtractedRule]


class DeleteEdit(_Strict):
    """Remove redundant rules."""
    edit: Literal["delete"]
    ids: List[str] = Field(..., min_length=1)
    reason: str


class MergeEdit(_Strict):
    """Replace two or more rules with one combined rule."""
    edit: Literal["merge"]
    ids: List[str] = Field(..., min_length=2)
    title: str
    body: str
    priority: Priority
    rationale: str
    reason: str


Edit = Annotated[Union[DeleteEdit, MergeEdit], Field(discriminator="edit")]


class ConsolidationResponse(_Strict):
    edits: List[Edit]


class Verdict(_Strict):
    """A verdict as returned by the validation call, before file stamping."""
    id: str
    result: VerdictValue
    reason: str


class ValidationResponse(_Strict):
    validations: List[Verdict]


# ============================================================================
# Validation report
# ============================================================================

class ValidationResult(BaseModel):
    """Verdict for one rule against one document."""
    model_config = ConfigDict(frozen=True)

    id: str
    file: str
    result: VerdictValue
    reason: str


class ValidationReport(BaseModel):
    """On-disk validation report: ``{"validations": [...]}``."""
    validations: List[ValidationResult] = Field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        """Count of verdicts per result value."""
        counts = Counter(v.result for v in self.validations)
        return {value: counts.get(value, 0) for value in VERDICT_VALUES}

    def to_data(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
