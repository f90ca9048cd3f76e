"""Compliance models — rule enums, findings, detector results and the verdict.

The verdict's JSON form is the wire contract with the host editor: keys are
camelCase and must stay stable. Python attributes are snake_case; aliases
bridge the two and inputs are accepted in either form.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RuleType(str, Enum):
    """Whether a finding blocks export."""

    HARD_FAIL = "hard_fail"
    WARNING = "warning"


class RuleSeverity(str, Enum):
    """What the host should do with a finding."""

    BLOCK_EXPORT = "block_export"
    USER_CONFIRMATION = "user_confirmation"
    WARN_USER = "warn_user"


class RuleCategory(str, Enum):
    COPY = "copy"
    DESIGN = "design"
    ACCESSIBILITY = "accessibility"
    FORMAT = "format"
    ALCOHOL = "alcohol"
    PHOTOGRAPHY = "photography"
    PACKSHOT = "packshot"
    TAG = "tag"


class DetectionMethod(str, Enum):
    """How a rule is checked. A rule may declare several."""

    REGEX = "regex"
    LAYOUT = "layout"
    SEMANTIC_NLI = "semantic_nli"
    VISION = "vision"


# Origins recorded on findings that no schema detection method produced
PROFILE_METHOD = "profile"
ENGINE_METHOD = "engine"

# Scoring penalties
HARD_FAIL_PENALTY = 15
WARNING_PENALTY = 5


class CamelModel(BaseModel):
    """Base for wire models: camelCase JSON, snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class Finding(CamelModel):
    """A single compliance finding against one rule (and optionally one element)."""

    rule_id: str
    rule_name: str
    category: Optional[str] = None
    type: RuleType
    severity: RuleSeverity
    detection_method: str
    object_id: Optional[str] = None
    explanation: str = ""
    plain_english: str = ""

    # Rule-dependent detail
    text: Optional[str] = None
    matched_terms: Optional[list[str]] = None
    confidence: Optional[float] = None
    current_size: Optional[float] = None
    min_size: Optional[float] = None
    current_ratio: Optional[float] = None
    required_ratio: Optional[float] = None
    text_color: Optional[str] = None
    bg_color: Optional[str] = None
    zone: Optional[str] = None
    pixels: Optional[int] = None
    current_count: Optional[int] = None
    max_count: Optional[int] = None
    current_height: Optional[float] = None
    min_height: Optional[float] = None
    current_length: Optional[int] = None
    max_length: Optional[int] = None
    current_words: Optional[int] = None
    max_words: Optional[int] = None
    overlaps_with_id: Optional[str] = None
    issues: Optional[list[str]] = None
    profile_id: Optional[str] = None
    requires_confirmation: Optional[bool] = None
    details: Optional[dict[str, Any]] = None

    @property
    def key(self) -> tuple[str, Optional[str]]:
        """Deduplication key: one finding per (rule, element)."""
        return (self.rule_id, self.object_id)

    @property
    def is_hard_fail(self) -> bool:
        return self.type == RuleType.HARD_FAIL.value


class DetectionResult(BaseModel):
    """What every detector returns for one rule."""

    passed: bool = True
    violations: list[Finding] = Field(default_factory=list)

    @classmethod
    def of(cls, violations: list[Finding]) -> "DetectionResult":
        return cls(
            passed=not any(v.is_hard_fail for v in violations),
            violations=violations,
        )


def compute_score(errors: list[Finding], warnings: list[Finding]) -> int:
    """Compliance score: 100 minus penalties, floored at 0."""
    hard_fails = sum(1 for e in errors if e.is_hard_fail)
    return max(0, 100 - HARD_FAIL_PENALTY * hard_fails - WARNING_PENALTY * len(warnings))


class Verdict(CamelModel):
    """Immutable result of one evaluation — the output of the compliance engine."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        frozen=True,
    )

    errors: list[Finding] = Field(default_factory=list)
    warnings: list[Finding] = Field(default_factory=list)
    score: int = Field(default=100, ge=0, le=100)
    can_export: bool = True
    evaluated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    time_taken_ms: float = 0.0

    @classmethod
    def build(
        cls,
        errors: list[Finding],
        warnings: list[Finding],
        evaluated_at: Optional[datetime] = None,
        time_taken_ms: float = 0.0,
    ) -> "Verdict":
        """Build a verdict from bucketed findings, deriving score and export gate."""
        return cls(
            errors=list(errors),
            warnings=list(warnings),
            score=compute_score(errors, warnings),
            can_export=not any(e.is_hard_fail for e in errors),
            evaluated_at=evaluated_at or datetime.now(timezone.utc),
            time_taken_ms=round(time_taken_ms, 2),
        )

    @property
    def findings(self) -> list[Finding]:
        return [*self.errors, *self.warnings]

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)
