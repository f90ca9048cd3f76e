"""Compliance API — quick, full and canvas evaluations, last verdict."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

import structlog

from creative_compliance.compliance.adapters import snapshot_from_fabric
from creative_compliance.compliance.creative import CreativeSnapshot
from creative_compliance.compliance.detectors.semantic import SemanticDetector
from creative_compliance.compliance.engine import ComplianceEngine
from creative_compliance.compliance.models import Verdict
from creative_compliance.config import get_settings
from creative_compliance.models.requests import FabricEvaluationRequest

logger = structlog.get_logger()

router = APIRouter()

DEADLINE_QUERY = Query(
    default=None,
    gt=0,
    description="Seconds allowed for the evaluation; phases not started in time are reported as ENGINE_TIMEOUT",
)


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _engine(request: Request) -> ComplianceEngine:
    """A fresh engine per request over the app's shared schema and providers.

    Engines share in-flight verdicts between their callers, so one must never
    serve two clients' creatives.
    """
    state = request.app.state
    settings = get_settings()
    return ComplianceEngine(
        schema=state.schema,
        capabilities=state.capabilities,
        semantic_detector=SemanticDetector(
            state.capabilities,
            batch_size=settings.SEMANTIC_BATCH_SIZE,
            confidence_threshold=settings.SEMANTIC_CONFIDENCE_THRESHOLD,
            batch_timeout=settings.SEMANTIC_BATCH_TIMEOUT_SECONDS,
        ),
        image_loader=state.image_loader,
    )


def _charge_ai_phases(request: Request, snapshot: CreativeSnapshot) -> None:
    """Full evaluations call paid providers, so their AI phases are limited per client."""
    limiter = request.app.state.rate_limiter
    client = _client_key(request)
    decision = limiter.charge(client, snapshot)
    if not decision.allowed:
        logger.warning("rate_limit_exceeded", client=client, cost=decision.cost, path=request.url.path)
        raise HTTPException(
            status_code=429,
            detail={
                "error": "Rate limit exceeded",
                "message": (
                    f"Maximum {limiter.max_evaluations} image-bearing full evaluations "
                    f"per {limiter.window_seconds:g} seconds."
                ),
                "cost": decision.cost,
                "remaining": decision.remaining,
                "retry_after_seconds": round(decision.retry_after_seconds, 1),
            },
        )


def _respond(request: Request, verdict: Verdict) -> dict:
    request.app.state.last_verdicts[_client_key(request)] = verdict
    return verdict.to_dict()


@router.post("/compliance/quick")
async def evaluate_quick(
    snapshot: CreativeSnapshot,
    request: Request,
    deadline: Optional[float] = DEADLINE_QUERY,
):
    """Deterministic layout and copy checks, for feedback on every edit."""
    verdict = await _engine(request).evaluate_quick(snapshot, deadline=deadline)
    return _respond(request, verdict)


@router.post("/compliance/full")
async def evaluate_full(
    snapshot: CreativeSnapshot,
    request: Request,
    deadline: Optional[float] = DEADLINE_QUERY,
):
    """All phases including semantic and vision; run before export."""
    _charge_ai_phases(request, snapshot)
    verdict = await _engine(request).evaluate_full(snapshot, deadline=deadline)
    return _respond(request, verdict)


@router.post("/compliance/fabric")
async def evaluate_fabric(body: FabricEvaluationRequest, request: Request):
    """Evaluate a Fabric.js canvas document.

    Raises ValueError (→ 422) when the canvas cannot be adapted.
    """
    snapshot = snapshot_from_fabric(body.canvas, body.format_id, body.context)
    engine = _engine(request)
    if body.full:
        _charge_ai_phases(request, snapshot)
        verdict = await engine.evaluate_full(snapshot, deadline=body.deadline)
    else:
        verdict = await engine.evaluate_quick(snapshot, deadline=body.deadline)
    return _respond(request, verdict)


@router.get("/compliance/last")
async def get_last_verdict(request: Request):
    """The most recent verdict returned to this client."""
    verdict = request.app.state.last_verdicts.get(_client_key(request))
    if verdict is None:
        raise HTTPException(status_code=404, detail="No evaluation has run yet")
    return verdict.to_dict()
