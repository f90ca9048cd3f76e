"""Rule schema — declarative rule records and the indexed, immutable catalog."""

import json
import re
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from creative_compliance.compliance.models import (
    DetectionMethod,
    RuleCategory,
    RuleSeverity,
    RuleType,
)

logger = structlog.get_logger()

# A compiled pattern, or None when the pattern is matched as a literal
CompiledPattern = tuple[str, Optional[re.Pattern]]


class SchemaError(ValueError):
    """The rule document is malformed or violates a schema invariant."""


class Rule(BaseModel):
    """One compliance rule as declared in the schema document."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    id: str = Field(min_length=1)
    name: str
    type: RuleType
    category: RuleCategory
    detection_method: list[DetectionMethod] = Field(min_length=1)
    severity: RuleSeverity
    params: dict[str, Any] = Field(default_factory=dict)
    applies_to_formats: Optional[list[str]] = None
    applies_when: Optional[dict[str, Any]] = None
    skip_for_value_tiles: bool = False
    vision_signals: Optional[list[str]] = None
    explanation: str = ""
    plain_english: str = ""

    @property
    def detection_methods(self) -> frozenset[str]:
        return frozenset(self.detection_method)

    def uses(self, method: DetectionMethod) -> bool:
        return DetectionMethod(method).value in self.detection_methods

    def param(self, key: str, default: Any = None) -> Any:
        """Read a parameter, falling back when it is missing or null."""
        value = self.params.get(key)
        return default if value is None else value

    def applies(self, facts: dict[str, Any]) -> bool:
        """Evaluate the format allow-list and context predicates against snapshot facts."""
        if self.applies_to_formats is not None:
            if facts.get("formatId") not in self.applies_to_formats:
                return False
        if self.applies_when:
            for key, expected in self.applies_when.items():
                if facts.get(key) != expected:
                    return False
        return True


class RuleSchema:
    """Versioned rule catalog with indexed queries.

    Immutable after construction and safe to share between engines. The
    only mutable state is a memo of compiled regex patterns, which is
    deterministic for a given rule.
    """

    def __init__(self, rules: list[Rule], schema_version: str = "1.0", rule_source: str = ""):
        self.schema_version = schema_version
        self.rule_source = rule_source
        self._rules: tuple[Rule, ...] = tuple(rules)
        self._by_id: dict[str, Rule] = {}
        for rule in self._rules:
            if rule.id in self._by_id:
                raise SchemaError(f"Duplicate rule id '{rule.id}'")
            self._by_id[rule.id] = rule
        self._pattern_cache: dict[str, list[CompiledPattern]] = {}

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    # ── Queries ──

    def get_rule_by_id(self, rule_id: str) -> Optional[Rule]:
        return self._by_id.get(rule_id)

    def get_rules_by_category(self, category: str) -> list[Rule]:
        category = RuleCategory(category).value
        return [r for r in self._rules if r.category == category]

    def get_rules_by_detection_method(self, method: str) -> list[Rule]:
        return [r for r in self._rules if r.uses(method)]

    def get_hard_fail_rules(self) -> list[Rule]:
        return [r for r in self._rules if r.type == RuleType.HARD_FAIL.value]

    def get_warning_rules(self) -> list[Rule]:
        return [r for r in self._rules if r.type == RuleType.WARNING.value]

    # ── Pattern memo ──

    def compiled_patterns(self, rule: Rule) -> list[CompiledPattern]:
        """Compile a rule's regex patterns once per schema instance.

        A pattern that does not compile is kept as a literal (compiled=None)
        and matched as a case-insensitive substring.
        """
        cached = self._pattern_cache.get(rule.id)
        if cached is not None:
            return cached

        compiled: list[CompiledPattern] = []
        for pattern in rule.param("regex_patterns", []):
            try:
                compiled.append((pattern, re.compile(pattern, re.IGNORECASE)))
            except re.error as e:
                logger.warning("regex_pattern_invalid", rule_id=rule.id, pattern=pattern, error=str(e))
                compiled.append((pattern, None))
        self._pattern_cache[rule.id] = compiled
        return compiled

    # ── Serialization ──

    def to_dict(self) -> dict:
        return {
            "schema_version": self.schema_version,
            "rule_source": self.rule_source,
            "rules": [r.model_dump(mode="json", exclude_none=True) for r in self._rules],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict) -> "RuleSchema":
        if not isinstance(data, dict) or not isinstance(data.get("rules", []), list):
            raise SchemaError("Schema document must be an object with a 'rules' list")
        rules = []
        for index, raw in enumerate(data.get("rules", [])):
            try:
                rules.append(Rule.model_validate(raw))
            except ValidationError as e:
                raise SchemaError(f"Invalid rule at index {index}: {e}") from e
        return cls(
            rules,
            schema_version=str(data.get("schema_version", "1.0")),
            rule_source=data.get("rule_source", ""),
        )

    @classmethod
    def from_json(cls, text: str) -> "RuleSchema":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SchemaError(f"Cannot parse schema JSON: {e}") from e
        return cls.from_dict(data)
