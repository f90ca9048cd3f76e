import pytest

from creative_compliance.compliance.rules import load_default_schema


@pytest.fixture
def schema():
    return load_default_schema()


@pytest.fixture
def rule(schema):
    def _get(rule_id: str):
        found = schema.get_rule_by_id(rule_id)
        assert found is not None, rule_id
        return found
    return _get
