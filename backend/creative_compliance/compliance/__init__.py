"""Compliance evaluation engine for retail media creatives.

Usage:
    from creative_compliance.compliance import ComplianceEngine, CreativeSnapshot

    engine = ComplianceEngine()
    verdict = await engine.evaluate_quick(snapshot)
"""

from creative_compliance.compliance.models import (
    DetectionMethod,
    DetectionResult,
    Finding,
    RuleCategory,
    RuleSeverity,
    RuleType,
    Verdict,
    compute_score,
)
from creative_compliance.compliance.creative import (
    FORMAT_PRESETS,
    CreativeContext,
    CreativeProfileId,
    CreativeSnapshot,
    Element,
    ElementKind,
    ElementRole,
    Format,
    ValueTileType,
    get_format,
)
from creative_compliance.compliance.rules import Rule, RuleSchema, SchemaError, load_default_schema
from creative_compliance.compliance.profiles import CREATIVE_PROFILES, validate_profile
from creative_compliance.compliance.adapters import snapshot_from_fabric
from creative_compliance.compliance.engine import ComplianceEngine, compliance_engine

__all__ = [
    "DetectionMethod",
    "DetectionResult",
    "Finding",
    "RuleCategory",
    "RuleSeverity",
    "RuleType",
    "Verdict",
    "compute_score",
    "FORMAT_PRESETS",
    "CreativeContext",
    "CreativeProfileId",
    "CreativeSnapshot",
    "Element",
    "ElementKind",
    "ElementRole",
    "Format",
    "ValueTileType",
    "get_format",
    "Rule",
    "RuleSchema",
    "SchemaError",
    "load_default_schema",
    "CREATIVE_PROFILES",
    "validate_profile",
    "snapshot_from_fabric",
    "ComplianceEngine",
    "compliance_engine",
]
