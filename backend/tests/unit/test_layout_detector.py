import pytest

from factories import image_element, make_snapshot, shape_element, text_element
from creative_compliance.compliance.detectors.layout import (
    LayoutDetector,
    contrast_ratio,
    normalize_hex,
    parse_color,
)
from creative_compliance.compliance.geometry import Rect, bounding_rect


@pytest.fixture
def detector():
    return LayoutDetector()


# ── Geometry ──

def test_touching_rects_do_not_overlap():
    assert not Rect(0, 0, 10, 10).overlaps(Rect(10, 0, 10, 10))
    assert Rect(0, 0, 10, 10).overlaps(Rect(9.5, 0, 10, 10))


def test_empty_rects_never_overlap():
    assert not Rect(5, 5, 0, 0).overlaps(Rect(0, 0, 10, 10))
    assert not Rect(0, 0, 10, 10).overlaps(Rect(2, 2, 5, 0))


def test_rotated_bounds_are_axis_aligned():
    rect = bounding_rect(100, 100, 100, 20, angle=90)
    assert rect.left == pytest.approx(80)
    assert rect.top == pytest.approx(100)
    assert rect.width == pytest.approx(20)
    assert rect.height == pytest.approx(100)
    assert bounding_rect(0, 0, 10, 10, angle=360) == Rect(0, 0, 10, 10)


# ── Colour ──

def test_parse_color_forms():
    assert parse_color("#fff") == (255, 255, 255)
    assert parse_color("#1A1A1A") == (26, 26, 26)
    assert parse_color("rgb(0, 128, 255)") == (0, 128, 255)
    assert parse_color("rgba(0,0,0,0.5)") == (0, 0, 0)
    assert parse_color("Black") == (0, 0, 0)
    assert parse_color("rgb(300,0,0)") is None
    assert parse_color("tomato") is None
    assert normalize_hex("#abc") == "#AABBCC"


def test_contrast_ratio_extremes():
    assert contrast_ratio("#000000", "#FFFFFF") == pytest.approx(21.0)
    assert contrast_ratio("#FFFFFF", "#FFFFFF") == pytest.approx(1.0)


def test_malformed_colour_yields_max_ratio():
    assert contrast_ratio("not-a-colour", "#FFFFFF") == 21.0
    assert contrast_ratio("#000", None) == 21.0


# ── ACC_001 ──

def test_font_size_boundary(detector, rule):
    ok = text_element("ok", font_size=20.0)
    small = text_element("small", font_size=19.9)
    result = detector.detect(rule("ACC_001"), make_snapshot(ok, small))
    assert not result.passed
    assert [v.object_id for v in result.violations] == ["small"]
    assert result.violations[0].current_size == 19.9
    assert result.violations[0].min_size == 20


def test_font_size_uses_vertical_scale(detector, rule):
    scaled = text_element("scaled", font_size=40, scale_y=0.45)
    result = detector.detect(rule("ACC_001"), make_snapshot(scaled))
    assert result.violations[0].current_size == 18.0


def test_font_size_small_format_and_says(detector, rule):
    banner_text = text_element("t", font_size=11, x=10, y=10)
    assert detector.detect(rule("ACC_001"), make_snapshot(banner_text, format_id="display-banner")).passed

    says_text = text_element("t", font_size=12)
    assert detector.detect(rule("ACC_001"), make_snapshot(says_text, is_says=True)).passed
    assert not detector.detect(rule("ACC_001"), make_snapshot(says_text)).passed


def test_system_text_is_exempt_from_font_size(detector, rule):
    tag = text_element("tag", "Only at Tesco", font_size=8, is_tag=True)
    assert detector.detect(rule("ACC_001"), make_snapshot(tag)).passed


# ── ACC_002 ──

def test_contrast_boundary_at_18px(detector, rule):
    passes = text_element("passes", fill="#767676", font_size=18)
    fails = text_element("fails", fill="#777777", font_size=18)
    result = detector.detect(rule("ACC_002"), make_snapshot(passes, fails, background_color="#FFFFFF"))
    assert [v.object_id for v in result.violations] == ["fails"]
    finding = result.violations[0]
    assert finding.required_ratio == 4.5
    assert finding.current_ratio == pytest.approx(4.48, abs=0.01)
    assert finding.text_color == "#777777"
    assert finding.bg_color == "#FFFFFF"


def test_large_text_uses_lower_threshold(detector, rule):
    large = text_element("large", fill="#949494", font_size=24)
    result = detector.detect(rule("ACC_002"), make_snapshot(large, background_color="#FFFFFF"))
    assert result.passed


def test_low_contrast_grey_on_grey(detector, rule):
    grey = text_element("grey", fill="#777777", font_size=20)
    result = detector.detect(rule("ACC_002"), make_snapshot(grey, background_color="#888888"))
    assert result.violations[0].rule_id == "ACC_002"
    assert result.violations[0].current_ratio < 1.5


def test_malformed_fill_is_not_flagged(detector, rule):
    odd = text_element("odd", fill="linear-gradient(red, blue)")
    assert detector.detect(rule("ACC_002"), make_snapshot(odd)).passed


# ── FORMAT_001 ──

def test_safe_zone_top_boundary(detector, rule):
    at_limit = text_element("at-limit", y=200, height=50)
    inside = text_element("inside", y=199, height=50)
    result = detector.detect(rule("FORMAT_001"), make_snapshot(at_limit, inside, format_id="instagram-story"))
    assert [v.object_id for v in result.violations] == ["inside"]
    assert result.violations[0].zone == "top"
    assert result.violations[0].pixels == 200


def test_safe_zone_bottom(detector, rule):
    low = text_element("low", y=1650, height=40)
    result = detector.detect(rule("FORMAT_001"), make_snapshot(low, format_id="facebook-story"))
    assert result.violations[0].zone == "bottom"
    assert result.violations[0].pixels == 250


def test_safe_zone_only_on_story_ratio(detector, rule):
    top = text_element("top", y=10)
    assert detector.detect(rule("FORMAT_001"), make_snapshot(top)).passed


def test_safe_zone_ignores_images_and_system_elements(detector, rule):
    photo = image_element("photo", y=0, height=400)
    logo = image_element("logo", y=0, height=100, is_logo=True)
    tile = shape_element("tile", y=0, is_value_tile=True, value_tile_type="new")
    result = detector.detect(rule("FORMAT_001"), make_snapshot(photo, logo, tile, format_id="instagram-story"))
    assert [v.object_id for v in result.violations] == ["logo"]


# ── DESIGN_001 ──

def test_content_overlapping_value_tile(detector, rule):
    tile = shape_element("tile", x=500, y=800, width=200, height=200, is_value_tile=True, value_tile_type="white")
    tile_text = text_element("tile-text", "£2", x=520, y=850, is_value_tile=True, value_tile_type="white")
    packshot = image_element("pack", x=650, y=900, is_packshot=True, is_lead_packshot=True)
    clear = image_element("clear", x=0, y=0)
    result = detector.detect(rule("DESIGN_001"), make_snapshot(tile, tile_text, packshot, clear))
    assert len(result.violations) == 1
    finding = result.violations[0]
    assert finding.object_id == "pack"
    assert finding.overlaps_with_id == "tile"
    assert finding.rule_name == "Content Overlapping Value Tile"


def test_touching_value_tile_is_allowed(detector, rule):
    tile = shape_element("tile", x=500, y=800, width=200, height=200, is_value_tile=True, value_tile_type="new")
    neighbour = image_element("neighbour", x=700, y=800)
    assert detector.detect(rule("DESIGN_001"), make_snapshot(tile, neighbour)).passed


def test_overlapping_tiles_of_different_types(detector, rule):
    a = shape_element("a", x=0, y=0, is_value_tile=True, value_tile_type="new")
    b = shape_element("b", x=50, y=50, is_value_tile=True, value_tile_type="clubcard")
    result = detector.detect(rule("DESIGN_001"), make_snapshot(a, b))
    assert [(v.object_id, v.overlaps_with_id) for v in result.violations] == [("a", "b")]


def test_moved_value_tile(detector, rule):
    tile = shape_element("tile", is_value_tile=True, value_tile_type="new", has_moved=True)
    result = detector.detect(rule("DESIGN_001"), make_snapshot(tile))
    assert result.violations[0].rule_name == "Value Tile Moved"


def test_rotated_element_overlaps_tile_by_bounds(detector, rule):
    tile = shape_element("tile", x=200, y=0, width=100, height=100, is_value_tile=True, value_tile_type="new")
    bar = image_element("bar", x=190, y=0, width=100, height=10, angle=90)
    straight = image_element("straight", x=90, y=0, width=100, height=10)
    result = detector.detect(rule("DESIGN_001"), make_snapshot(tile, bar, straight))
    assert [v.object_id for v in result.violations] == []

    bar = image_element("bar", x=250, y=0, width=100, height=10, angle=90)
    result = detector.detect(rule("DESIGN_001"), make_snapshot(tile, bar))
    assert [v.object_id for v in result.violations] == ["bar"]


# ── PACK_001 ──

def test_too_many_packshots(detector, rule):
    packs = [image_element(f"p{i}", x=i * 200, is_packshot=True) for i in range(4)]
    result = detector.detect(rule("PACK_001"), make_snapshot(*packs))
    rule_ids = [v.rule_id for v in result.violations]
    assert rule_ids == ["PACK_001", "PACK_001_LEAD"]
    assert result.violations[0].current_count == 4
    assert result.violations[0].object_id is None
    assert result.violations[1].type == "warning"


def test_packshots_with_lead_pass(detector, rule):
    lead = image_element("lead", is_lead_packshot=True)
    other = image_element("other", x=300, is_packshot=True)
    assert detector.detect(rule("PACK_001"), make_snapshot(lead, other)).violations == []


def test_no_packshots_no_lead_warning(detector, rule):
    assert detector.detect(rule("PACK_001"), make_snapshot()).violations == []


# ── ALC_001 ──

def test_drinkaware_required_for_alcohol(detector, rule):
    result = detector.detect(rule("ALC_001"), make_snapshot(is_alcohol_product=True))
    assert result.violations[0].rule_name == "Drinkaware Required"
    assert result.violations[0].object_id is None
    assert detector.detect(rule("ALC_001"), make_snapshot()).passed


def test_drinkaware_height_and_colour(detector, rule):
    lockup = image_element("da", height=19, is_drinkaware=True, fill="#FF0000")
    result = detector.detect(rule("ALC_001"), make_snapshot(lockup, is_alcohol_product=True))
    assert [v.rule_id for v in result.violations] == ["ALC_001", "ALC_001_COLOR"]
    assert result.violations[0].object_id == "da"
    assert result.violations[0].min_height == 20
    assert result.violations[1].type == "hard_fail"
    assert result.violations[1].severity == "block_export"
    assert not result.passed


def test_drinkaware_says_override(detector, rule):
    lockup = image_element("da", height=12, is_drinkaware=True, fill="#ffffff")
    snapshot = make_snapshot(lockup, is_alcohol_product=True, is_says=True)
    assert detector.detect(rule("ALC_001"), snapshot).violations == []


# ── TAG_001 ──

def test_tag_obstruction(detector, rule):
    tag = text_element("tag", "Only at Tesco", x=0, y=1000, width=300, height=40, is_tag=True)
    cover = image_element("cover", x=100, y=990, width=50, height=50)
    result = detector.detect(rule("TAG_001"), make_snapshot(tag, cover))
    assert [(v.object_id, v.overlaps_with_id) for v in result.violations] == [("cover", "tag")]


def test_unknown_rule_passes(detector, rule):
    assert detector.detect(rule("MEDIA_001"), make_snapshot()).violations == []
    assert not detector.supports(rule("MEDIA_001"))
