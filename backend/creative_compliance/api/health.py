"""Health check endpoint."""

import time
from fastapi import APIRouter, Request

from creative_compliance.models.responses import HealthResponse, HealthDependency

router = APIRouter()

_start_time = time.time()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """System health check with rule schema and capability status."""
    dependencies = {}

    schema = getattr(request.app.state, "schema", None)
    if schema is None:
        dependencies["rule_schema"] = HealthDependency(status="unhealthy", message="Rule schema not loaded")
    else:
        dependencies["rule_schema"] = HealthDependency(
            status="healthy" if len(schema) else "degraded",
            message=f"{len(schema)} rules loaded",
        )

    # AI providers are optional; without them only deterministic phases report
    chain = getattr(request.app.state, "capabilities", None)
    provider_names = getattr(chain, "provider_names", [])
    if provider_names:
        dependencies["capabilities"] = HealthDependency(
            status="healthy", message=", ".join(provider_names)
        )
    else:
        dependencies["capabilities"] = HealthDependency(
            status="degraded", message="No AI providers configured"
        )

    all_healthy = all(d.status == "healthy" for d in dependencies.values())
    any_unhealthy = any(d.status == "unhealthy" for d in dependencies.values())

    if all_healthy:
        status = "healthy"
    elif any_unhealthy:
        status = "unhealthy"
    else:
        status = "degraded"

    return HealthResponse(
        status=status,
        uptime_seconds=round(time.time() - _start_time, 2),
        dependencies=dependencies,
    )
