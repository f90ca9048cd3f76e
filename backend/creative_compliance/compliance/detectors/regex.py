"""Regex detector — prohibited-term patterns, retailer tag text and copy-length laws.

Deterministic and synchronous. Patterns are compiled once per schema and
matched case-insensitively; a pattern that does not compile is matched as a
literal substring instead of raising.
"""

import re
from typing import Optional

from creative_compliance.compliance.creative import CreativeSnapshot, Element, ElementRole
from creative_compliance.compliance.detectors.base import BaseDetector
from creative_compliance.compliance.models import (
    DetectionMethod,
    DetectionResult,
    Finding,
    RuleCategory,
    RuleSeverity,
    RuleType,
)
from creative_compliance.compliance.rules.schema import CompiledPattern, Rule, RuleSchema

MAX_HEADLINE_LENGTH = 35
MAX_SUBHEAD_WORDS = 20
HEADLINE_FONT_SIZE = 48
SUBHEAD_FONT_SIZE = 24

_TRAILING_PUNCTUATION = " .!"


def compile_patterns(patterns: list[str]) -> list[CompiledPattern]:
    """Compile patterns outside a schema; invalid ones become literals."""
    compiled: list[CompiledPattern] = []
    for pattern in patterns:
        try:
            compiled.append((pattern, re.compile(pattern, re.IGNORECASE)))
        except re.error:
            compiled.append((pattern, None))
    return compiled


def match_patterns(text: str, patterns: list[CompiledPattern]) -> list[str]:
    """Return the distinct matched substrings (lowercased), in first-seen order."""
    if not text:
        return []

    lowered = text.lower()
    matches: list[str] = []
    for pattern, compiled in patterns:
        if compiled is None:
            found = [pattern.lower()] if pattern.lower() in lowered else []
        else:
            found = [m.group(0).lower() for m in compiled.finditer(text) if m.group(0)]
        for term in found:
            if term not in matches:
                matches.append(term)
    return matches


def _normalize_tag(text: str) -> str:
    return " ".join(text.split()).lower().rstrip(_TRAILING_PUNCTUATION)


def is_headline(element: Element) -> bool:
    if element.role is not None:
        return element.role == ElementRole.HEADLINE.value
    if element.custom_name and "headline" in element.custom_name.lower():
        return True
    return (element.font_size or 0) >= HEADLINE_FONT_SIZE


def is_subhead(element: Element) -> bool:
    if element.role is not None:
        return element.role == ElementRole.SUBHEAD.value
    if element.custom_name and "subhead" in element.custom_name.lower():
        return True
    return SUBHEAD_FONT_SIZE <= (element.font_size or 0) < HEADLINE_FONT_SIZE


class RegexDetector(BaseDetector):
    """Text pattern rules, TAG_001 allow-list and the headline/subhead laws."""

    def __init__(self, schema: Optional[RuleSchema] = None):
        self.schema = schema

    @property
    def name(self) -> str:
        return "RegexDetector"

    @property
    def method(self) -> DetectionMethod:
        return DetectionMethod.REGEX

    def _patterns(self, rule: Rule) -> list[CompiledPattern]:
        if self.schema is not None and self.schema.get_rule_by_id(rule.id) is rule:
            return self.schema.compiled_patterns(rule)
        return compile_patterns(rule.param("regex_patterns", []))

    def detect(self, rule: Rule, snapshot: CreativeSnapshot) -> DetectionResult:
        violations = self.check_patterns(rule, snapshot)
        if rule.id == "TAG_001":
            violations.extend(self.check_tag_text(rule, snapshot))
        return DetectionResult.of(violations)

    # ── Pattern rules ──

    def check_patterns(self, rule: Rule, snapshot: CreativeSnapshot) -> list[Finding]:
        patterns = self._patterns(rule)
        if not patterns:
            return []

        violations = []
        for element in snapshot.text_elements():
            if element.is_drinkaware or element.is_tag:
                continue
            if rule.skip_for_value_tiles and element.is_value_tile:
                continue

            matches = match_patterns(element.text or "", patterns)
            if matches:
                violations.append(self._finding(
                    rule,
                    object_id=element.id,
                    text=element.text,
                    matched_terms=matches,
                ))
        return violations

    # ── TAG_001 (text part) ──

    def check_tag_text(self, rule: Rule, snapshot: CreativeSnapshot) -> list[Finding]:
        allowed = {_normalize_tag(t) for t in rule.param("allowed_texts", [])}
        clubcard = rule.param("clubcard_pattern")
        clubcard_re = None
        if clubcard:
            clubcard_re = compile_patterns([clubcard])[0][1]

        violations = []
        for element in snapshot.text_elements():
            if not element.is_tag:
                continue
            text = element.text or ""
            if _normalize_tag(text) in allowed:
                continue
            if clubcard_re is not None and clubcard_re.search(text):
                continue
            if clubcard_re is None and clubcard and clubcard.lower() in text.lower():
                continue

            violations.append(self._finding(
                rule,
                object_id=element.id,
                text=text,
                explanation=f"Tag text '{text}' is not an approved retailer tag",
                plain_english=(
                    "Use an approved tag such as 'Only at Tesco' or "
                    f"'{rule.param('clubcard_format', 'Clubcard/app required. Ends DD/MM')}'."
                ),
            ))
        return violations

    # ── Copy-length laws ──

    def check_copy_lengths(self, snapshot: CreativeSnapshot) -> DetectionResult:
        """Headlines at most 35 characters, subheads at most 20 words."""
        violations = []
        for element in snapshot.text_elements():
            if element.is_system:
                continue
            text = element.text or ""

            if is_headline(element) and len(text) > MAX_HEADLINE_LENGTH:
                violations.append(Finding(
                    rule_id="HEADLINE_LENGTH",
                    rule_name="Headline Too Long",
                    category=RuleCategory.COPY,
                    type=RuleType.HARD_FAIL,
                    severity=RuleSeverity.BLOCK_EXPORT,
                    detection_method=DetectionMethod.REGEX.value,
                    object_id=element.id,
                    text=text,
                    current_length=len(text),
                    max_length=MAX_HEADLINE_LENGTH,
                    explanation=f"Headline is {len(text)} characters (max {MAX_HEADLINE_LENGTH})",
                    plain_english=(
                        f"Your headline is too long. Keep it under {MAX_HEADLINE_LENGTH} characters "
                        "for better readability."
                    ),
                ))
            elif is_subhead(element):
                words = len(text.split())
                if words > MAX_SUBHEAD_WORDS:
                    violations.append(Finding(
                        rule_id="SUBHEAD_WORDS",
                        rule_name="Subhead Too Long",
                        category=RuleCategory.COPY,
                        type=RuleType.HARD_FAIL,
                        severity=RuleSeverity.BLOCK_EXPORT,
                        detection_method=DetectionMethod.REGEX.value,
                        object_id=element.id,
                        text=text,
                        current_words=words,
                        max_words=MAX_SUBHEAD_WORDS,
                        explanation=f"Subhead is {words} words (max {MAX_SUBHEAD_WORDS})",
                        plain_english=f"Your subhead is too long. Keep it under {MAX_SUBHEAD_WORDS} words.",
                    ))
        return DetectionResult.of(violations)
