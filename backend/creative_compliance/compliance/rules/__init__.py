"""Rule schema — the declarative catalog of retail media compliance rules."""

from creative_compliance.compliance.rules.schema import Rule, RuleSchema, SchemaError
from creative_compliance.compliance.rules.loader import (
    load_default_schema,
    load_schema_file,
    get_available_schemas,
)

# Process-wide catalog, loaded once at import
default_schema = load_default_schema()

__all__ = [
    "default_schema",
    "Rule",
    "RuleSchema",
    "SchemaError",
    "load_default_schema",
    "load_schema_file",
    "get_available_schemas",
]
