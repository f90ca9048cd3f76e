"""Semantic detector — catches paraphrased violations that regex missed.

For rules declaring both ``regex`` and ``semantic_nli``, each eligible text
element is checked for entailment of the rule's hypothesis sentence
("This text mentions terms and conditions..."). Elements are checked in
bounded parallel batches with a per-batch timeout and an optional aggregate
deadline. Capability failures are logged and never block an evaluation.
"""

import asyncio
from typing import Optional

import structlog

from creative_compliance.capabilities.base import CapabilityError, CapabilityProvider
from creative_compliance.capabilities.models import EntailmentResult
from creative_compliance.compliance.creative import CreativeSnapshot, Element
from creative_compliance.compliance.detectors.base import BaseDetector
from creative_compliance.compliance.models import DetectionMethod, DetectionResult, Finding
from creative_compliance.compliance.rules.schema import Rule

logger = structlog.get_logger()

MIN_TEXT_LENGTH = 3


class SemanticDetector(BaseDetector):

    def __init__(
        self,
        capabilities: Optional[CapabilityProvider] = None,
        batch_size: int = 5,
        confidence_threshold: float = 0.75,
        batch_timeout: float = 15.0,
    ):
        self.capabilities = capabilities
        self.batch_size = max(1, batch_size)
        self.confidence_threshold = confidence_threshold
        self.batch_timeout = batch_timeout

    @property
    def name(self) -> str:
        return "SemanticDetector"

    @property
    def method(self) -> DetectionMethod:
        return DetectionMethod.SEMANTIC_NLI

    def applies_to(self, rule: Rule) -> bool:
        return rule.uses(DetectionMethod.REGEX) and rule.uses(DetectionMethod.SEMANTIC_NLI)

    def eligible_elements(
        self, rule: Rule, snapshot: CreativeSnapshot, existing: list[Finding]
    ) -> list[Element]:
        """Text elements not already flagged under this rule, not system, longer than three chars."""
        flagged = {f.object_id for f in existing if f.rule_id == rule.id}
        return [
            e for e in snapshot.text_elements()
            if e.id not in flagged
            and not e.is_system
            and len((e.text or "").strip()) > MIN_TEXT_LENGTH
        ]

    async def detect(
        self,
        rule: Rule,
        snapshot: CreativeSnapshot,
        existing: Optional[list[Finding]] = None,
        deadline: Optional[float] = None,
    ) -> DetectionResult:
        """Run entailment checks for one rule.

        Args:
            rule: Rule carrying ``params.semantic_hypothesis``
            snapshot: Creative being evaluated
            existing: Findings already recorded (regex hits are skipped)
            deadline: Absolute event-loop time after which no batch starts
        """
        hypothesis = rule.param("semantic_hypothesis")
        if not hypothesis or self.capabilities is None or not self.applies_to(rule):
            return DetectionResult()

        elements = self.eligible_elements(rule, snapshot, existing or [])
        loop = asyncio.get_running_loop()
        violations: list[Finding] = []

        for start in range(0, len(elements), self.batch_size):
            batch = elements[start:start + self.batch_size]

            timeout = self.batch_timeout
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    logger.warning("semantic_deadline_exceeded", rule_id=rule.id, checked=start, total=len(elements))
                    break
                timeout = min(timeout, remaining)

            try:
                results = await asyncio.wait_for(
                    asyncio.gather(*(self._check(rule, e, hypothesis) for e in batch)),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("semantic_batch_timeout", rule_id=rule.id, batch_start=start, timeout=timeout)
                continue

            for element, result in zip(batch, results):
                if result is None:
                    continue
                if result.entails and result.confidence >= self.confidence_threshold:
                    violations.append(self._finding(
                        rule,
                        object_id=element.id,
                        text=element.text,
                        confidence=round(result.confidence, 4),
                    ))

        return DetectionResult.of(violations)

    async def _check(self, rule: Rule, element: Element, hypothesis: str) -> Optional[EntailmentResult]:
        try:
            return await self.capabilities.check_entailment(element.text or "", hypothesis)
        except CapabilityError as e:
            logger.warning("semantic_check_failed", rule_id=rule.id, object_id=element.id, error=str(e))
            return None
