"""Rule catalog loader — reads the schema documents shipped beside this module.

Deterministic: rules keep the order of the source document. Loaded schemas
are cached so the process-wide catalog is read from disk once.
"""

from pathlib import Path
from typing import Optional

from creative_compliance.compliance.rules.schema import RuleSchema, SchemaError

RULES_DIR = Path(__file__).parent
DEFAULT_SCHEMA_FILE = "retail_media_v1.json"

# Cache loaded schema files to avoid re-reading from disk
_schema_cache: dict[str, RuleSchema] = {}


def load_schema_file(path: Path) -> RuleSchema:
    """Load a schema document from an arbitrary path (uncached)."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SchemaError(f"Cannot read schema file {path}: {e}") from e
    return RuleSchema.from_json(text)


def load_default_schema(name: Optional[str] = None) -> RuleSchema:
    """Load and cache a packaged schema by file name (default: the retail media catalog)."""
    name = name or DEFAULT_SCHEMA_FILE
    if name not in _schema_cache:
        _schema_cache[name] = load_schema_file(RULES_DIR / name)
    return _schema_cache[name]


def get_available_schemas() -> list[str]:
    """List the packaged schema documents."""
    return sorted(p.name for p in RULES_DIR.glob("*.json"))
