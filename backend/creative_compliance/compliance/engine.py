"""Compliance Engine — orchestrates detectors in phases, scores and gates export.

This is the main entry point for creative compliance. It runs the rule
schema against a creative snapshot and produces an immutable Verdict.

Phases, in order (findings keep this order in the verdict):
    1. profile   — creative profile constraints
    2. layout    — geometry and colour (deterministic)
    3. regex     — prohibited terms, tag text, copy-length laws (deterministic)
    4. semantic  — entailment against rule hypotheses (optional, async)
    5. vision    — multimodal checks (optional, async)

Usage:
    engine = ComplianceEngine(capabilities=build_capability_chain())
    verdict = await engine.evaluate_quick(snapshot)
    if not verdict.can_export:
        # surface verdict.errors to the user
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Optional, Union

import structlog

from creative_compliance.capabilities.base import CapabilityProvider
from creative_compliance.capabilities.images import ImageLoader
from creative_compliance.compliance.creative import CreativeProfileId, CreativeSnapshot
from creative_compliance.compliance.detectors.layout import LayoutDetector
from creative_compliance.compliance.detectors.regex import RegexDetector
from creative_compliance.compliance.detectors.semantic import SemanticDetector
from creative_compliance.compliance.detectors.vision import VisionDetector
from creative_compliance.compliance.models import (
    ENGINE_METHOD,
    DetectionMethod,
    Finding,
    RuleCategory,
    RuleSeverity,
    RuleType,
    Verdict,
)
from creative_compliance.compliance.profiles import validate_profile
from creative_compliance.compliance.rules.loader import load_default_schema
from creative_compliance.compliance.rules.schema import RuleSchema

logger = structlog.get_logger()

SnapshotInput = Union[CreativeSnapshot, dict, None]


def engine_error(message: str) -> Finding:
    return Finding(
        rule_id="ENGINE_ERROR",
        rule_name="Evaluation Error",
        type=RuleType.HARD_FAIL,
        severity=RuleSeverity.BLOCK_EXPORT,
        detection_method=ENGINE_METHOD,
        explanation=message,
        plain_english="Compliance could not be checked. Fix the reported problem and try again.",
    )


def engine_timeout(phase: str) -> Finding:
    return Finding(
        rule_id="ENGINE_TIMEOUT",
        rule_name="Evaluation Timeout",
        type=RuleType.WARNING,
        severity=RuleSeverity.WARN_USER,
        detection_method=ENGINE_METHOD,
        explanation=f"Evaluation deadline exceeded before the {phase} phase",
        plain_english="Some compliance checks did not finish in time. Run the check again before export.",
    )


class FindingCollector:
    """Buckets findings into errors/warnings, keeping one per (rule_id, object_id)."""

    def __init__(self):
        self.errors: list[Finding] = []
        self.warnings: list[Finding] = []
        self._seen: set[tuple[str, Optional[str]]] = set()

    @property
    def findings(self) -> list[Finding]:
        return [*self.errors, *self.warnings]

    def add(self, findings: list[Finding]) -> int:
        """Record new findings; returns how many were kept."""
        kept = 0
        for finding in findings:
            if finding.key in self._seen:
                continue
            self._seen.add(finding.key)
            (self.errors if finding.is_hard_fail else self.warnings).append(finding)
            kept += 1
        return kept


class ComplianceEngine:
    """Schema-driven evaluation of creative snapshots.

    Design principles:
        - Deterministic phases before AI phases
        - One evaluation in flight per engine; concurrent callers share it
        - Never raises: faults become ENGINE_ERROR, deadlines ENGINE_TIMEOUT
        - Read-only over the snapshot
    """

    def __init__(
        self,
        schema: Optional[RuleSchema] = None,
        capabilities: Optional[CapabilityProvider] = None,
        layout_detector: Optional[LayoutDetector] = None,
        regex_detector: Optional[RegexDetector] = None,
        semantic_detector: Optional[SemanticDetector] = None,
        vision_detector: Optional[VisionDetector] = None,
        image_loader: Optional[ImageLoader] = None,
    ):
        """Initialize with the packaged schema and no AI capabilities by default.

        Args:
            schema: Rule catalog. If None, uses the packaged retail media schema.
            capabilities: Provider (usually a CapabilityChain) for semantic and vision phases.
            *_detector: Optional detector overrides, mainly for tests.
            image_loader: Image resolver handed to the default vision detector.
        """
        self.schema = schema if schema is not None else load_default_schema()
        self.capabilities = capabilities
        self.layout_detector = layout_detector or LayoutDetector()
        self.regex_detector = regex_detector or RegexDetector(self.schema)
        self.semantic_detector = semantic_detector or SemanticDetector(capabilities)
        self.vision_detector = vision_detector or VisionDetector(capabilities, image_loader)

        self._last_result: Optional[Verdict] = None
        self._in_flight: Optional[asyncio.Future] = None

    # ── Public API ──

    async def evaluate(
        self,
        snapshot: SnapshotInput,
        *,
        semantic: bool = True,
        vision: bool = True,
        deadline: Optional[float] = None,
    ) -> Verdict:
        """Evaluate a snapshot and return its verdict.

        Args:
            snapshot: CreativeSnapshot (or its dict form)
            semantic: Run the semantic phase
            vision: Run the vision phase
            deadline: Seconds allowed; checked between phases

        Returns:
            Verdict. If another evaluation is in flight, its verdict.
        """
        if self._in_flight is not None and not self._in_flight.done():
            logger.warning("compliance_evaluation_in_progress")
            return await asyncio.shield(self._in_flight)

        future = asyncio.get_running_loop().create_future()
        self._in_flight = future
        try:
            verdict = await self._evaluate(snapshot, semantic=semantic, vision=vision, deadline=deadline)
            future.set_result(verdict)
            return verdict
        finally:
            if not future.done():
                future.cancel()
            self._in_flight = None

    async def evaluate_quick(self, snapshot: SnapshotInput, deadline: Optional[float] = None) -> Verdict:
        """Layout and regex only — for interactive feedback on every edit."""
        return await self.evaluate(snapshot, semantic=False, vision=False, deadline=deadline)

    async def evaluate_full(self, snapshot: SnapshotInput, deadline: Optional[float] = None) -> Verdict:
        """All phases — run before export."""
        return await self.evaluate(snapshot, semantic=True, vision=True, deadline=deadline)

    def get_last_result(self) -> Optional[Verdict]:
        return self._last_result

    @property
    def is_evaluating(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    # ── Orchestration ──

    async def _evaluate(
        self,
        snapshot: SnapshotInput,
        *,
        semantic: bool,
        vision: bool,
        deadline: Optional[float],
    ) -> Verdict:
        start_time = time.perf_counter()
        evaluated_at = datetime.now(timezone.utc)
        loop = asyncio.get_running_loop()
        deadline_at = loop.time() + deadline if deadline is not None else None

        collector = FindingCollector()
        phase_timings: dict[str, float] = {}
        phases = ["profile", "layout", "regex"]
        if semantic:
            phases.append("semantic")
        if vision:
            phases.append("vision")

        format_id = None
        try:
            creative = self._coerce(snapshot)
            format_id = creative.format_id
            facts = creative.applicability()

            for phase in phases:
                if deadline_at is not None and loop.time() > deadline_at:
                    logger.warning("compliance_evaluation_timeout", phase=phase, deadline_seconds=deadline)
                    collector.add([engine_timeout(phase)])
                    break

                p_start = time.perf_counter()
                if phase == "profile":
                    self._run_profile(creative, collector)
                elif phase == "layout":
                    self._run_layout(creative, facts, collector)
                elif phase == "regex":
                    self._run_regex(creative, facts, collector)
                elif phase == "semantic":
                    await self._run_semantic(creative, facts, collector, deadline_at)
                else:
                    await self._run_vision(creative, facts, collector)
                phase_timings[phase] = round((time.perf_counter() - p_start) * 1000, 2)

        except Exception as e:
            logger.error("compliance_evaluation_failed", error=str(e), error_type=type(e).__name__)
            collector.add([engine_error(str(e) or type(e).__name__)])

        duration_ms = (time.perf_counter() - start_time) * 1000
        verdict = Verdict.build(
            collector.errors,
            collector.warnings,
            evaluated_at=evaluated_at,
            time_taken_ms=duration_ms,
        )
        self._last_result = verdict

        logger.info(
            "compliance_evaluation_complete",
            format_id=format_id,
            can_export=verdict.can_export,
            score=verdict.score,
            errors=len(verdict.errors),
            warnings=len(verdict.warnings),
            duration_ms=round(duration_ms, 2),
            phase_timings=phase_timings,
        )
        return verdict

    @staticmethod
    def _coerce(snapshot: Any) -> CreativeSnapshot:
        if snapshot is None:
            raise ValueError("No creative snapshot supplied")
        if isinstance(snapshot, CreativeSnapshot):
            return snapshot
        if isinstance(snapshot, dict):
            return CreativeSnapshot.model_validate(snapshot)
        raise TypeError(f"Cannot evaluate {type(snapshot).__name__}; expected CreativeSnapshot")

    def _run_profile(self, snapshot: CreativeSnapshot, collector: FindingCollector) -> None:
        if snapshot.context.creative_profile != CreativeProfileId.STANDARD.value:
            collector.add(validate_profile(snapshot).violations)

    def _run_layout(self, snapshot: CreativeSnapshot, facts: dict, collector: FindingCollector) -> None:
        for rule in self.schema.get_rules_by_detection_method(DetectionMethod.LAYOUT):
            if not rule.applies(facts):
                continue
            collector.add(self.layout_detector.detect(rule, snapshot).violations)

    def _run_regex(self, snapshot: CreativeSnapshot, facts: dict, collector: FindingCollector) -> None:
        for rule in self.schema.get_rules_by_detection_method(DetectionMethod.REGEX):
            if not rule.applies(facts):
                continue
            collector.add(self.regex_detector.detect(rule, snapshot).violations)

        # Copy-length laws belong to the copy category; a schema without it has no copy laws
        if self.schema.get_rules_by_category(RuleCategory.COPY):
            collector.add(self.regex_detector.check_copy_lengths(snapshot).violations)

    async def _run_semantic(
        self,
        snapshot: CreativeSnapshot,
        facts: dict,
        collector: FindingCollector,
        deadline_at: Optional[float],
    ) -> None:
        for rule in self.schema.get_rules_by_detection_method(DetectionMethod.SEMANTIC_NLI):
            if not rule.applies(facts) or not self.semantic_detector.applies_to(rule):
                continue
            try:
                result = await self.semantic_detector.detect(
                    rule, snapshot, existing=collector.findings, deadline=deadline_at
                )
            except Exception as e:
                logger.warning("semantic_check_failed", rule_id=rule.id, error=str(e))
                continue
            collector.add(result.violations)

    async def _run_vision(self, snapshot: CreativeSnapshot, facts: dict, collector: FindingCollector) -> None:
        for rule in self.schema.get_rules_by_detection_method(DetectionMethod.VISION):
            if not rule.applies(facts):
                continue
            try:
                result = await self.vision_detector.detect(rule, snapshot)
            except Exception as e:
                logger.warning("vision_check_failed", rule_id=rule.id, error=str(e))
                continue
            collector.add(result.violations)


# Module-level singleton
compliance_engine = ComplianceEngine()
