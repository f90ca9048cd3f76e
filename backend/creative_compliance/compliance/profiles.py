"""Creative profiles — campaign modes that tighten the creative's structure.

STANDARD imposes nothing. LOW_EVERYDAY_PRICE locks the background and text
colours, allows only white value tiles and requires the "Selected stores"
tag. CLUBCARD allows only Clubcard tiles. Violations are recorded before any
schema rule runs, with ``detection_method = "profile"``.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from creative_compliance.compliance.creative import CreativeProfileId, CreativeSnapshot
from creative_compliance.compliance.detectors.layout import normalize_hex
from creative_compliance.compliance.models import (
    PROFILE_METHOD,
    DetectionResult,
    Finding,
    RuleCategory,
    RuleSeverity,
    RuleType,
)


class CreativeProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: CreativeProfileId
    name: str
    description: str = ""
    locked_background: Optional[str] = None
    locked_text_color: Optional[str] = None
    allowed_value_tiles: tuple[str, ...] = ("new", "white", "clubcard")
    required_tag_phrase: Optional[str] = None
    auto_tag: Optional[str] = None


CREATIVE_PROFILES: dict[str, CreativeProfile] = {
    CreativeProfileId.STANDARD.value: CreativeProfile(
        id=CreativeProfileId.STANDARD,
        name="Standard",
        description="Full creative freedom with compliance guidance",
    ),
    CreativeProfileId.LOW_EVERYDAY_PRICE.value: CreativeProfile(
        id=CreativeProfileId.LOW_EVERYDAY_PRICE,
        name="Low Everyday Price",
        description="Strict trade-style design for value products",
        locked_background="#ffffff",
        locked_text_color="#00539F",
        allowed_value_tiles=("white",),
        required_tag_phrase="Selected stores",
        auto_tag="Selected stores. While stocks last",
    ),
    CreativeProfileId.CLUBCARD.value: CreativeProfile(
        id=CreativeProfileId.CLUBCARD,
        name="Clubcard Exclusive",
        description="Clubcard member pricing campaigns",
        allowed_value_tiles=("clubcard",),
    ),
}


def _same_color(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return a == b
    na, nb = normalize_hex(a), normalize_hex(b)
    if na is not None and nb is not None:
        return na == nb
    return a.strip().lower() == b.strip().lower()


def _profile_finding(profile: CreativeProfile, rule_id: str, suffix: str, **fields) -> Finding:
    fields.setdefault("type", RuleType.HARD_FAIL)
    fields.setdefault("severity", RuleSeverity.BLOCK_EXPORT)
    return Finding(
        rule_id=rule_id,
        rule_name=f"{profile.name} Profile - {suffix}",
        category=RuleCategory.DESIGN,
        detection_method=PROFILE_METHOD,
        profile_id=profile.id.value,
        **fields,
    )


def validate_profile(snapshot: CreativeSnapshot) -> DetectionResult:
    """Check the snapshot against its creative profile's constraints."""
    profile = CREATIVE_PROFILES.get(snapshot.context.creative_profile)
    if profile is None or profile.id == CreativeProfileId.STANDARD:
        return DetectionResult()

    violations: list[Finding] = []

    if profile.locked_background:
        actual = snapshot.context.background_color
        if actual and not _same_color(actual, profile.locked_background):
            violations.append(_profile_finding(
                profile, "PROFILE_BG", "Background",
                bg_color=actual,
                explanation=(
                    f"{profile.name} profile requires background color "
                    f"{profile.locked_background}, but found {actual}"
                ),
                plain_english=f"This campaign type needs a {profile.locked_background} background.",
            ))

    for element in snapshot.elements:
        tile_type = element.value_tile_type
        if element.is_value_tile and tile_type and tile_type not in profile.allowed_value_tiles:
            violations.append(_profile_finding(
                profile, "PROFILE_TILE", "Value Tile",
                object_id=element.id,
                explanation=(
                    f'{profile.name} profile does not allow "{tile_type}" value tiles. '
                    f"Allowed: {', '.join(profile.allowed_value_tiles)}"
                ),
                plain_english=f"Use a {' or '.join(profile.allowed_value_tiles)} value tile for this campaign type.",
            ))

    if profile.required_tag_phrase:
        has_tag = any(
            e.is_tag and e.text and profile.required_tag_phrase in e.text
            for e in snapshot.elements
        )
        if not has_tag:
            violations.append(_profile_finding(
                profile, "PROFILE_TAG", "Required Tag",
                explanation=f'{profile.name} profile requires the tag: "{profile.auto_tag}"',
                plain_english=f'Add the "{profile.auto_tag}" tag.',
            ))

    if profile.locked_text_color:
        for element in snapshot.text_elements():
            if element.is_tag or element.is_value_tile or not element.fill:
                continue
            if not _same_color(element.fill, profile.locked_text_color):
                violations.append(_profile_finding(
                    profile, "PROFILE_COLOR", "Text Color",
                    type=RuleType.WARNING,
                    severity=RuleSeverity.WARN_USER,
                    object_id=element.id,
                    text_color=element.fill,
                    explanation=(
                        f"{profile.name} profile expects text color {profile.locked_text_color}, "
                        f'but "{(element.text or "")[:20]}" uses {element.fill}'
                    ),
                    plain_english=f"Use {profile.locked_text_color} for text in this campaign type.",
                ))

    return DetectionResult.of(violations)
