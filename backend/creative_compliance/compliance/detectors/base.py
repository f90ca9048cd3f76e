"""Base detector — abstract class implementing the Strategy Pattern.

Each detector is a standalone, independently testable unit that checks one
rule at a time against a creative snapshot. New checks are added by
dispatching a rule id inside a detector, never by modifying the engine.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from creative_compliance.compliance.models import DetectionMethod, Finding, RuleSeverity, RuleType
from creative_compliance.compliance.rules.schema import Rule


class BaseDetector(ABC):
    """Abstract base for all compliance detectors.

    Contract:
        - detectors hold no per-evaluation mutable state
        - detectors never mutate the snapshot
        - detectors never raise across the engine boundary for expected
          failures; they return a DetectionResult
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for logging."""
        ...

    @property
    @abstractmethod
    def method(self) -> DetectionMethod:
        """Detection method recorded on every finding this detector produces."""
        ...

    # ── Helper Methods ──

    def _finding(
        self,
        rule: Rule,
        *,
        rule_id: Optional[str] = None,
        rule_name: Optional[str] = None,
        type: Optional[RuleType] = None,
        severity: Optional[RuleSeverity] = None,
        object_id: Optional[str] = None,
        explanation: Optional[str] = None,
        plain_english: Optional[str] = None,
        **details: Any,
    ) -> Finding:
        """Build a finding pre-filled from the rule; keyword overrides win."""
        return Finding(
            rule_id=rule_id or rule.id,
            rule_name=rule_name or rule.name,
            category=rule.category,
            type=type or rule.type,
            severity=severity or rule.severity,
            detection_method=DetectionMethod(self.method).value,
            object_id=object_id,
            explanation=rule.explanation if explanation is None else explanation,
            plain_english=rule.plain_english if plain_english is None else plain_english,
            **details,
        )
