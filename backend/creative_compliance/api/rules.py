"""Rule catalog and format preset endpoints."""

from fastapi import APIRouter, HTTPException, Request

from creative_compliance.compliance.creative import FORMAT_PRESETS

router = APIRouter()


@router.get("/rules")
async def list_rules(request: Request):
    """The active rule schema as its JSON document."""
    return request.app.state.schema.to_dict()


@router.get("/rules/{rule_id}")
async def get_rule(rule_id: str, request: Request):
    rule = request.app.state.schema.get_rule_by_id(rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")
    return rule.model_dump(mode="json", exclude_none=True)


@router.get("/formats")
async def list_formats():
    """Available canvas format presets."""
    return [fmt.model_dump(mode="json", by_alias=True) for fmt in FORMAT_PRESETS.values()]
