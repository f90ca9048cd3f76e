import asyncio

import httpx
import pytest

from creative_compliance.capabilities.base import CapabilityProvider
from creative_compliance.capabilities.models import EntailmentResult
from creative_compliance.services.rate_limiter import PhaseCreditLimiter

PNG_DATA_URL = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)

CLEAN_SNAPSHOT = {
    "format": "instagram-feed",
    "elements": [
        {"id": "headline", "kind": "text", "text": "Zero Sugar Full Taste", "x": 540, "y": 270,
         "width": 500, "height": 86, "fontSize": 72, "fill": "#FFFFFF"},
        {"id": "tag", "kind": "text", "text": "Only at Tesco", "x": 40, "y": 1000,
         "width": 300, "height": 30, "fontSize": 22, "isTag": True},
    ],
    "context": {"backgroundColor": "#1A1A1A"},
}

PRICE_SNAPSHOT = {
    "elements": [{"id": "price", "kind": "text", "text": "Only £1.75", "x": 100, "y": 600, "fontSize": 40}],
}


@pytest.mark.asyncio
async def test_root(client):
    r = await client.get("/")
    assert r.status_code == 200
    data = r.json()
    assert data["name"] == "Creative Compliance"
    assert data["health"] == "/api/v1/health"


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/api/v1/health")
    assert r.status_code == 200
    data = r.json()
    assert data["dependencies"]["rule_schema"]["status"] == "healthy"
    assert data["dependencies"]["rule_schema"]["message"] == "14 rules loaded"
    assert "capabilities" in data["dependencies"]
    assert data["status"] in ("healthy", "degraded")


@pytest.mark.asyncio
async def test_rules(client):
    r = await client.get("/api/v1/rules")
    assert r.status_code == 200
    data = r.json()
    assert data["schema_version"] == "1.0"
    assert [rule["id"] for rule in data["rules"]][:2] == ["ALC_001", "COPY_001"]


@pytest.mark.asyncio
async def test_rule_by_id(client):
    r = await client.get("/api/v1/rules/ACC_002")
    assert r.status_code == 200
    assert r.json()["params"]["contrast_ratio_normal"] == 4.5

    r = await client.get("/api/v1/rules/NOPE_001")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_formats(client):
    r = await client.get("/api/v1/formats")
    assert r.status_code == 200
    story = next(f for f in r.json() if f["formatId"] == "instagram-story")
    assert (story["width"], story["height"], story["ratio"]) == (1080, 1920, "9:16")


@pytest.mark.asyncio
async def test_quick_clean_creative(client):
    r = await client.post("/api/v1/compliance/quick", json=CLEAN_SNAPSHOT)
    assert r.status_code == 200
    data = r.json()
    assert data["score"] == 100
    assert data["canExport"] is True
    assert data["errors"] == []


@pytest.mark.asyncio
async def test_quick_reports_findings(client):
    r = await client.post("/api/v1/compliance/quick", json=PRICE_SNAPSHOT)
    data = r.json()
    assert data["canExport"] is False
    assert [(f["ruleId"], f["objectId"]) for f in data["errors"]] == [("COPY_005", "price")]


@pytest.mark.asyncio
async def test_quick_rejects_malformed_snapshot(client):
    r = await client.post("/api/v1/compliance/quick", json={"format": "billboard", "elements": []})
    assert r.status_code == 422

    duplicate = {"elements": [{"id": "a", "kind": "text"}, {"id": "a", "kind": "shape"}]}
    r = await client.post("/api/v1/compliance/quick", json=duplicate)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_full_is_charged_per_ai_phase(app, client):
    app.state.rate_limiter = PhaseCreditLimiter(max_evaluations=1, window_seconds=60)
    with_render = {**CLEAN_SNAPSHOT, "context": {**CLEAN_SNAPSHOT["context"], "canvasDataUrl": PNG_DATA_URL}}

    r = await client.post("/api/v1/compliance/full", json=with_render)
    assert r.status_code == 200
    assert r.json()["score"] == 100

    r = await client.post("/api/v1/compliance/full", json=CLEAN_SNAPSHOT)
    assert r.status_code == 429
    detail = r.json()["detail"]
    assert detail["error"] == "Rate limit exceeded"
    assert detail["cost"] == 1
    assert detail["remaining"] == 0

    # Quick evaluations never spend credits
    r = await client.post("/api/v1/compliance/quick", json=CLEAN_SNAPSHOT)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_fabric_canvas(client):
    body = {
        "canvas": {
            "background": "#FFFFFF",
            "objects": [
                {"type": "i-text", "id": "t1", "text": "Terms and conditions apply",
                 "left": 100, "top": 300, "fontSize": 30, "fill": "#000000"},
            ],
        },
        "formatId": "instagram-feed",
    }
    r = await client.post("/api/v1/compliance/fabric", json=body)
    assert r.status_code == 200
    assert [f["ruleId"] for f in r.json()["errors"]] == ["COPY_001"]


@pytest.mark.asyncio
async def test_fabric_context_gates_alcohol_rule(client):
    body = {"canvas": {"objects": []}, "context": {"isAlcoholProduct": True}}
    r = await client.post("/api/v1/compliance/fabric", json=body)
    assert [f["ruleId"] for f in r.json()["errors"]] == ["ALC_001"]


@pytest.mark.asyncio
async def test_fabric_invalid_canvas_is_422(client):
    body = {"canvas": {"objects": [{"type": "rect", "width": -1}]}}
    r = await client.post("/api/v1/compliance/fabric", json=body)
    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_last_verdict(client):
    r = await client.get("/api/v1/compliance/last")
    assert r.status_code == 404

    await client.post("/api/v1/compliance/quick", json=PRICE_SNAPSHOT)
    r = await client.get("/api/v1/compliance/last")
    assert r.status_code == 200
    assert r.json()["errors"][0]["ruleId"] == "COPY_005"


class SlowEntailment(CapabilityProvider):
    """Entailment that never entails, slowly enough to overlap other requests."""

    def __init__(self, delay: float = 0.2):
        self.delay = delay

    @property
    def name(self) -> str:
        return "slow"

    async def check_entailment(self, premise: str, hypothesis: str) -> EntailmentResult:
        await asyncio.sleep(self.delay)
        return EntailmentResult(entails=False, confidence=0.0, provider=self.name)


GUARANTEE_SNAPSHOT = {
    "elements": [
        {"id": "claim", "kind": "text", "text": "Money back guarantee on this deal", "x": 100, "y": 600,
         "width": 600, "height": 40, "fontSize": 40, "fill": "#000000"},
    ],
}


@pytest.mark.asyncio
async def test_concurrent_requests_get_their_own_verdicts(app, client):
    app.state.capabilities = SlowEntailment()

    full, quick = await asyncio.gather(
        client.post("/api/v1/compliance/full", json=CLEAN_SNAPSHOT),
        client.post("/api/v1/compliance/quick", json=GUARANTEE_SNAPSHOT),
    )

    assert full.json()["canExport"] is True
    body = quick.json()
    assert body["canExport"] is False
    assert [(f["ruleId"], f["objectId"]) for f in body["errors"]] == [("COPY_006", "claim")]


@pytest.mark.asyncio
async def test_last_verdict_is_scoped_to_the_client(app, client):
    other_transport = httpx.ASGITransport(app=app, client=("10.0.0.2", 4000))
    async with httpx.AsyncClient(transport=other_transport, base_url="http://testserver") as other:
        await client.post("/api/v1/compliance/quick", json=PRICE_SNAPSHOT)

        r = await other.get("/api/v1/compliance/last")
        assert r.status_code == 404

        await other.post("/api/v1/compliance/quick", json=CLEAN_SNAPSHOT)
        r = await other.get("/api/v1/compliance/last")
        assert r.json()["canExport"] is True

    r = await client.get("/api/v1/compliance/last")
    assert r.json()["errors"][0]["ruleId"] == "COPY_005"


@pytest.mark.asyncio
async def test_deadline_stops_evaluation_before_vision(app, client):
    app.state.capabilities = SlowEntailment()

    r = await client.post("/api/v1/compliance/full", params={"deadline": 0.05}, json=CLEAN_SNAPSHOT)

    assert r.status_code == 200
    warnings = r.json()["warnings"]
    assert [w["ruleId"] for w in warnings] == ["ENGINE_TIMEOUT"]


@pytest.mark.asyncio
async def test_fabric_deadline_must_be_positive(client):
    body = {"canvas": {"objects": []}, "deadline": 0}
    r = await client.post("/api/v1/compliance/fabric", json=body)
    assert r.status_code == 422
