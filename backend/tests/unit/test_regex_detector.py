import pytest

from factories import make_snapshot, text_element
from creative_compliance.compliance.detectors.regex import (
    RegexDetector,
    compile_patterns,
    is_headline,
    is_subhead,
    match_patterns,
)


@pytest.fixture
def detector(schema):
    return RegexDetector(schema)


def test_match_patterns_is_case_insensitive_and_distinct():
    patterns = compile_patterns(["\\bfree\\b", "guarantee"])
    assert match_patterns("FREE delivery, free returns, Guarantee", patterns) == ["free", "guarantee"]


def test_word_boundary_excludes_longer_words():
    patterns = compile_patterns(["\\bfree\\b"])
    assert match_patterns("freshest ever, freedom", patterns) == []


def test_literal_fallback_for_invalid_pattern():
    patterns = compile_patterns(["50% off ("])
    assert patterns[0][1] is None
    assert match_patterns("Now 50% OFF (today)", patterns) == ["50% off ("]


def test_prohibited_term_in_headline(detector, rule):
    headline = text_element("h", "100% guarantee freshest ever", font_size=72)
    result = detector.detect(rule("COPY_006"), make_snapshot(headline))
    assert not result.passed
    finding = result.violations[0]
    assert finding.object_id == "h"
    assert finding.matched_terms == ["guarantee"]
    assert finding.detection_method == "regex"
    assert finding.plain_english


def test_price_outside_value_tile(detector, rule):
    price = text_element("price", "Only £1.75", font_size=40)
    tile_price = text_element("tile", "£1.75", is_value_tile=True, value_tile_type="white")
    result = detector.detect(rule("COPY_005"), make_snapshot(price, tile_price))
    assert [v.object_id for v in result.violations] == ["price"]
    assert result.violations[0].matched_terms == ["£1"]


def test_value_tiles_still_checked_for_other_copy_rules(detector, rule):
    tile = text_element("tile", "Win a prize", is_value_tile=True, value_tile_type="white")
    result = detector.detect(rule("COPY_002"), make_snapshot(tile))
    assert result.violations[0].matched_terms == ["prize", "win"]


def test_tags_and_lockups_are_not_pattern_checked(detector, rule):
    tag = text_element("tag", "Save at Tesco", is_tag=True)
    lockup = text_element("da", "drinkaware.co.uk - save", is_drinkaware=True)
    result = detector.detect(rule("COPY_005"), make_snapshot(tag, lockup))
    assert result.violations == []


@pytest.mark.parametrize(
    "text",
    [
        "Only at Tesco",
        "available at tesco.",
        "Selected stores. While stocks last.",
        "Selected stores.  While stocks last",
        "Clubcard/app required. Ends 24/12",
    ],
)
def test_approved_tag_text(detector, rule, text):
    tag = text_element("tag", text, is_tag=True)
    assert detector.detect(rule("TAG_001"), make_snapshot(tag)).violations == []


def test_unapproved_tag_text(detector, rule):
    tag = text_element("tag", "Exclusive to Tesco", is_tag=True)
    result = detector.detect(rule("TAG_001"), make_snapshot(tag))
    assert result.violations[0].object_id == "tag"
    assert result.violations[0].text == "Exclusive to Tesco"


# ── Copy-length laws ──

def test_headline_length_boundary(detector):
    ok = text_element("ok", "x" * 35, role="headline")
    long = text_element("long", "x" * 36, role="headline", y=600)
    result = detector.check_copy_lengths(make_snapshot(ok, long))
    assert [v.object_id for v in result.violations] == ["long"]
    assert result.violations[0].rule_id == "HEADLINE_LENGTH"
    assert result.violations[0].current_length == 36
    assert result.violations[0].max_length == 35


def test_subhead_word_boundary(detector):
    ok = text_element("ok", " ".join(["word"] * 20), role="subhead")
    long = text_element("long", " ".join(["word"] * 21), role="subhead")
    result = detector.check_copy_lengths(make_snapshot(ok, long))
    assert [v.object_id for v in result.violations] == ["long"]
    assert result.violations[0].rule_id == "SUBHEAD_WORDS"
    assert result.violations[0].current_words == 21


def test_headline_and_subhead_inferred_without_role():
    assert is_headline(text_element("a", font_size=48))
    assert not is_headline(text_element("a", font_size=47))
    assert is_headline(text_element("a", font_size=20, custom_name="Main Headline"))
    assert is_subhead(text_element("a", font_size=24))
    assert not is_subhead(text_element("a", font_size=48))
    assert is_subhead(text_element("a", font_size=16, custom_name="subhead copy"))


def test_explicit_role_overrides_size_heuristics():
    assert not is_headline(text_element("a", font_size=96, role="body"))
    assert not is_subhead(text_element("a", font_size=30, role="body"))
    assert is_subhead(text_element("a", font_size=96, role="subhead"))


def test_system_text_exempt_from_copy_lengths(detector):
    tag = text_element("tag", "x" * 50, font_size=60, is_tag=True)
    assert detector.check_copy_lengths(make_snapshot(tag)).violations == []


def test_detector_without_schema_compiles_per_rule(rule):
    detector = RegexDetector()
    body = text_element("b", "Terms apply")
    assert detector.detect(rule("COPY_001"), make_snapshot(body)).violations[0].matched_terms == ["terms apply"]
