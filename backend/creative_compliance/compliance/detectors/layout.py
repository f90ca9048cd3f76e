"""Layout detector — deterministic geometry and colour checks.

No network, no awaits. Each schema rule that declares the ``layout`` method
is dispatched by id to one check; unknown ids pass.

Overlap is strict (touching edges do not overlap), empty rectangles never
overlap and rotated elements are tested by their axis-aligned bounds.
"""

import re
from typing import Callable, Optional

import structlog

from creative_compliance.compliance.creative import CreativeSnapshot, ElementKind
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

STORY_RATIO = "9:16"
MAX_CONTRAST_RATIO = 21.0

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_RGB_RE = re.compile(r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*[\d.]+\s*)?\)$")
_NAMED_COLORS = {"black": (0, 0, 0), "white": (255, 255, 255)}


# ── Colour math (WCAG 2.0) ──

def parse_color(color: Optional[str]) -> Optional[tuple[int, int, int]]:
    """Parse #rgb, #rrggbb, rgb()/rgba() or black/white into an RGB triple."""
    if not color or not isinstance(color, str):
        return None
    value = color.strip().lower()
    if value in _NAMED_COLORS:
        return _NAMED_COLORS[value]

    match = _HEX_RE.match(value)
    if match:
        digits = match.group(1)
        if len(digits) == 3:
            digits = "".join(c * 2 for c in digits)
        return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))

    match = _RGB_RE.match(value)
    if match:
        channels = tuple(int(g) for g in match.groups())
        if all(c <= 255 for c in channels):
            return channels
    return None


def _linear(channel: int) -> float:
    c = channel / 255
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def relative_luminance(rgb: tuple[int, int, int]) -> float:
    r, g, b = (_linear(c) for c in rgb)
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(foreground: Optional[str], background: Optional[str]) -> float:
    """WCAG contrast ratio between two colours, in [1, 21].

    A colour that cannot be parsed yields 21 (no violation) and a logged
    warning so the permissive fallback stays visible.
    """
    fg, bg = parse_color(foreground), parse_color(background)
    if fg is None or bg is None:
        logger.warning("contrast_color_malformed", foreground=foreground, background=background)
        return MAX_CONTRAST_RATIO

    lighter, darker = sorted((relative_luminance(fg), relative_luminance(bg)), reverse=True)
    return (lighter + 0.05) / (darker + 0.05)


def normalize_hex(color: Optional[str]) -> Optional[str]:
    """Canonical #RRGGBB form, or None when the colour cannot be parsed."""
    rgb = parse_color(color)
    if rgb is None:
        return None
    return "#{:02X}{:02X}{:02X}".format(*rgb)


class LayoutDetector(BaseDetector):
    """Safe zones, font sizes, contrast, tile overlap, packshots and lockup size."""

    def __init__(self):
        self._checks: dict[str, Callable[[Rule, CreativeSnapshot], list[Finding]]] = {
            "FORMAT_001": self.check_safe_zones,
            "ACC_001": self.check_font_sizes,
            "ACC_002": self.check_contrast,
            "DESIGN_001": self.check_value_tiles,
            "PACK_001": self.check_packshots,
            "ALC_001": self.check_drinkaware,
            "TAG_001": self.check_tag_obstruction,
        }

    @property
    def name(self) -> str:
        return "LayoutDetector"

    @property
    def method(self) -> DetectionMethod:
        return DetectionMethod.LAYOUT

    def supports(self, rule: Rule) -> bool:
        return rule.id in self._checks

    def detect(self, rule: Rule, snapshot: CreativeSnapshot) -> DetectionResult:
        check = self._checks.get(rule.id)
        if check is None:
            return DetectionResult()
        return DetectionResult.of(check(rule, snapshot))

    # ── FORMAT_001 ──

    def check_safe_zones(self, rule: Rule, snapshot: CreativeSnapshot) -> list[Finding]:
        """Text and logos must stay out of the top and bottom UI bands of 9:16 formats."""
        if snapshot.format.ratio != STORY_RATIO:
            return []

        top_band = rule.param("safe_zone_top_px", 200)
        bottom_band = rule.param("safe_zone_bottom_px", 250)
        bottom_limit = snapshot.format.height - bottom_band

        violations = []
        for element in snapshot.elements:
            if element.is_system or element.is_background or element.is_safe_zone:
                continue
            if not (element.is_text or element.is_logo):
                continue

            rect = element.bounding_rect()
            in_top = rect.top < top_band
            in_bottom = rect.bottom > bottom_limit
            if not (in_top or in_bottom):
                continue

            zone, pixels = ("top", top_band) if in_top else ("bottom", bottom_band)
            violations.append(self._finding(
                rule,
                object_id=element.id,
                zone=zone,
                pixels=pixels,
                explanation=f"'{element.display_name}' sits inside the {zone} {pixels}px safe zone",
            ))
        return violations

    # ── ACC_001 ──

    def minimum_font_size(self, rule: Rule, snapshot: CreativeSnapshot) -> float:
        if snapshot.context.is_says:
            return rule.param("says_min_px", 12)
        if snapshot.format.height < rule.param("small_format_threshold_height", 200):
            return rule.param("checkout_single_density_px", 10)
        return rule.param("brand_social_min_px", 20)

    def check_font_sizes(self, rule: Rule, snapshot: CreativeSnapshot) -> list[Finding]:
        min_size = self.minimum_font_size(rule, snapshot)

        violations = []
        for element in snapshot.text_elements():
            if element.is_system:
                continue
            size = element.effective_font_size
            if size < min_size:
                violations.append(self._finding(
                    rule,
                    object_id=element.id,
                    current_size=round(size, 2),
                    min_size=min_size,
                    explanation=f"Font size {size:g}px is below minimum {min_size:g}px",
                ))
        return violations

    # ── ACC_002 ──

    def check_contrast(self, rule: Rule, snapshot: CreativeSnapshot) -> list[Finding]:
        normal = rule.param("contrast_ratio_normal", 4.5)
        large = rule.param("contrast_ratio_large", 3.0)
        large_threshold = rule.param("large_text_threshold_px", 24)
        bg_color = snapshot.context.background_color or "#FFFFFF"

        violations = []
        for element in snapshot.text_elements():
            if element.is_system:
                continue
            text_color = element.fill or "#000000"
            required = large if element.effective_font_size >= large_threshold else normal
            ratio = contrast_ratio(text_color, bg_color)
            if ratio < required:
                violations.append(self._finding(
                    rule,
                    object_id=element.id,
                    current_ratio=round(ratio, 2),
                    required_ratio=required,
                    text_color=text_color,
                    bg_color=bg_color,
                    explanation=f"Contrast ratio {ratio:.2f}:1 (need {required:g}:1)",
                ))
        return violations

    # ── DESIGN_001 ──

    def check_value_tiles(self, rule: Rule, snapshot: CreativeSnapshot) -> list[Finding]:
        """Tiles stay put and nothing overlaps them.

        Only tile rectangles (shape elements) are tested; the text laid on a
        tile belongs to it. Tiles of the same type are one tile.
        """
        tiles = [e for e in snapshot.elements if e.is_value_tile and e.kind == ElementKind.SHAPE.value]
        others = [
            e for e in snapshot.elements
            if not (e.is_value_tile or e.is_background or e.is_safe_zone or e.is_tag)
        ]

        violations = []
        if rule.param("fixed_position", True):
            for element in snapshot.elements:
                if element.is_value_tile and element.has_moved:
                    violations.append(self._finding(
                        rule,
                        rule_name="Value Tile Moved",
                        object_id=element.id,
                        explanation="Value tiles must stay in their predefined position",
                        plain_english="A price tile has been moved. Reset it to its designated position.",
                    ))

        for i, tile in enumerate(tiles):
            for other in tiles[i + 1:]:
                if tile.value_tile_type == other.value_tile_type:
                    continue
                if tile.bounding_rect().overlaps(other.bounding_rect()):
                    violations.append(self._finding(
                        rule,
                        rule_name="Value Tiles Overlapping",
                        object_id=tile.id,
                        overlaps_with_id=other.id,
                        explanation="Value tiles cannot overlap each other",
                        plain_english="Your price tiles are overlapping. Please move them apart.",
                    ))

        for tile in tiles:
            tile_rect = tile.bounding_rect()
            for other in others:
                if other.bounding_rect().overlaps(tile_rect):
                    violations.append(self._finding(
                        rule,
                        rule_name="Content Overlapping Value Tile",
                        object_id=other.id,
                        overlaps_with_id=tile.id,
                        explanation="Content cannot overlap value tiles",
                        plain_english="An element is overlapping a price tile. Move it away.",
                    ))
        return violations

    # ── PACK_001 ──

    def check_packshots(self, rule: Rule, snapshot: CreativeSnapshot) -> list[Finding]:
        packshots = [e for e in snapshot.elements if e.is_packshot]
        max_count = rule.param("max_packshots", 3)

        violations = []
        if len(packshots) > max_count:
            violations.append(self._finding(
                rule,
                rule_name="Too Many Packshots",
                current_count=len(packshots),
                max_count=max_count,
                explanation=f"{len(packshots)} packshots (max {max_count})",
                plain_english=(
                    f"You have too many product images. Remove {len(packshots) - max_count} to continue."
                ),
            ))

        if rule.param("lead_required", True) and packshots:
            if not any(p.is_lead_packshot for p in packshots):
                violations.append(self._finding(
                    rule,
                    rule_id=f"{rule.id}_LEAD",
                    rule_name="No Lead Packshot",
                    type=RuleType.WARNING,
                    severity=RuleSeverity.USER_CONFIRMATION,
                    explanation="No lead product marked",
                    plain_english="Consider marking one product as the main/lead product.",
                ))
        return violations

    # ── ALC_001 ──

    def check_drinkaware(self, rule: Rule, snapshot: CreativeSnapshot) -> list[Finding]:
        if not snapshot.context.is_alcohol_product:
            return []

        lockups = [e for e in snapshot.elements if e.is_drinkaware]
        if not lockups:
            return [self._finding(
                rule,
                rule_name="Drinkaware Required",
                explanation="Alcohol products must include Drinkaware lockup",
                plain_english="Add the Drinkaware logo from the sidebar for alcohol products.",
            )]

        heights = rule.param("min_height_px", {})
        if not isinstance(heights, dict):
            heights = {"default": heights}
        min_height = heights.get("default", 20)
        if snapshot.context.is_says:
            min_height = heights.get("says_override", 12)
        allowed = {normalize_hex(c) for c in rule.param("allowed_colors", ["#000000", "#FFFFFF"])}

        violations = []
        for element in lockups:
            height = element.effective_height
            if height < min_height:
                violations.append(self._finding(
                    rule,
                    rule_name="Drinkaware Too Small",
                    object_id=element.id,
                    current_height=round(height, 2),
                    min_height=min_height,
                    explanation=f"Drinkaware height {height:g}px (min {min_height:g}px)",
                    plain_english=f"The Drinkaware logo is too small. It must be at least {min_height:g}px tall.",
                ))
            if element.fill and normalize_hex(element.fill) not in allowed:
                violations.append(self._finding(
                    rule,
                    rule_id=f"{rule.id}_COLOR",
                    rule_name="Drinkaware Colour",
                    object_id=element.id,
                    text_color=element.fill,
                    explanation=f"Drinkaware lockup uses {element.fill}; it must be black or white",
                    plain_english="The Drinkaware logo must be black or white.",
                ))
        return violations

    # ── TAG_001 (layout part) ──

    def check_tag_obstruction(self, rule: Rule, snapshot: CreativeSnapshot) -> list[Finding]:
        tags = [e for e in snapshot.elements if e.is_tag]
        if not tags:
            return []
        others = [
            e for e in snapshot.elements
            if not (e.is_tag or e.is_value_tile or e.is_background or e.is_safe_zone)
        ]

        violations = []
        for tag in tags:
            tag_rect = tag.bounding_rect()
            for other in others:
                if other.bounding_rect().overlaps(tag_rect):
                    violations.append(self._finding(
                        rule,
                        rule_name="Retailer Tag Obstructed",
                        object_id=other.id,
                        overlaps_with_id=tag.id,
                        explanation="Content cannot obstruct the retailer tag",
                        plain_english="Something is covering the retailer tag. Move it so the tag stays readable.",
                    ))
        return violations
