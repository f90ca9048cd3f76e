"""Vision detector — multimodal checks through the capability interface.

Handles the vision part of ALC_001 (lockup legibility), MEDIA_001 (people in
imagery) and PACK_001 (packshot visibility). Capability and image failures
are logged and produce no finding.
"""

from typing import Optional

import structlog

from creative_compliance.capabilities.base import CapabilityError, CapabilityProvider, CapabilityUnavailable
from creative_compliance.capabilities.images import ImageLoader
from creative_compliance.compliance.creative import CreativeSnapshot
from creative_compliance.compliance.detectors.base import BaseDetector
from creative_compliance.compliance.models import (
    DetectionMethod,
    DetectionResult,
    Finding,
    RuleSeverity,
    RuleType,
)
from creative_compliance.compliance.rules.schema import Rule

logger = structlog.get_logger()

GENERIC_LOCKUP_ISSUE = "Drinkaware logo may not be compliant."


class VisionDetector(BaseDetector):

    def __init__(
        self,
        capabilities: Optional[CapabilityProvider] = None,
        image_loader: Optional[ImageLoader] = None,
    ):
        self.capabilities = capabilities
        self.image_loader = image_loader or ImageLoader()
        self._checks = {
            "ALC_001": self.check_drinkaware,
            "MEDIA_001": self.check_people,
            "PACK_001": self.check_packshots,
        }

    @property
    def name(self) -> str:
        return "VisionDetector"

    @property
    def method(self) -> DetectionMethod:
        return DetectionMethod.VISION

    async def detect(self, rule: Rule, snapshot: CreativeSnapshot) -> DetectionResult:
        check = self._checks.get(rule.id)
        if check is None or self.capabilities is None:
            return DetectionResult()

        try:
            violations = await check(rule, snapshot)
        except CapabilityUnavailable as e:
            logger.debug("vision_capability_unavailable", rule_id=rule.id, reason=str(e))
            return DetectionResult()
        except CapabilityError as e:
            logger.warning("vision_check_failed", rule_id=rule.id, error=str(e))
            return DetectionResult()
        return DetectionResult.of(violations)

    # ── ALC_001 ──

    async def check_drinkaware(self, rule: Rule, snapshot: CreativeSnapshot) -> list[Finding]:
        context = snapshot.context
        if not context.is_alcohol_product or not context.canvas_data_url:
            return []

        image = await self.image_loader.load(context.canvas_data_url)
        result = await self.capabilities.verify_lockup(image, "drinkaware")
        if result.valid:
            return []

        issues = result.issues or [GENERIC_LOCKUP_ISSUE]
        return [self._finding(
            rule,
            rule_name=f"{rule.name} (Vision Check)",
            issues=issues,
            explanation="Vision analysis found Drinkaware compliance issues",
            plain_english=". ".join(i.rstrip(".") for i in issues) + ".",
        )]

    # ── MEDIA_001 ──

    async def check_people(self, rule: Rule, snapshot: CreativeSnapshot) -> list[Finding]:
        context = snapshot.context
        if not context.background_image_url:
            return []

        image = await self.image_loader.load(context.background_image_url)
        result = await self.capabilities.detect_people(image)
        if not result.detected or context.people_confirmed:
            return []

        return [self._finding(
            rule,
            type=RuleType.WARNING,
            severity=RuleSeverity.USER_CONFIRMATION,
            confidence=result.confidence,
            requires_confirmation=True,
            details={"count": result.count, "provider": result.provider},
        )]

    # ── PACK_001 ──

    async def check_packshots(self, rule: Rule, snapshot: CreativeSnapshot) -> list[Finding]:
        if not snapshot.context.canvas_data_url:
            return []

        image = await self.image_loader.load(snapshot.context.canvas_data_url)
        result = await self.capabilities.analyze_packshots(image)
        if not result.issues:
            return []

        return [self._finding(
            rule,
            rule_id=f"{rule.id}_VISION",
            rule_name="Packshot Visibility Issue",
            type=RuleType.WARNING,
            severity=RuleSeverity.USER_CONFIRMATION,
            issues=result.issues,
            details={"count": result.count, "hasLead": result.has_lead, "provider": result.provider},
            explanation=". ".join(result.issues),
            plain_english="Some products may not be clearly visible.",
        )]
