"""Compliance detectors — one strategy per detection method."""

from creative_compliance.compliance.detectors.base import BaseDetector
from creative_compliance.compliance.detectors.layout import LayoutDetector, contrast_ratio
from creative_compliance.compliance.detectors.regex import RegexDetector, match_patterns
from creative_compliance.compliance.detectors.semantic import SemanticDetector
from creative_compliance.compliance.detectors.vision import VisionDetector

__all__ = [
    "BaseDetector",
    "LayoutDetector",
    "RegexDetector",
    "SemanticDetector",
    "VisionDetector",
    "contrast_ratio",
    "match_patterns",
]
