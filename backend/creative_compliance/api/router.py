"""Main API router — combines all endpoint routers."""

from fastapi import APIRouter

from creative_compliance.api.health import router as health_router
from creative_compliance.api.rules import router as rules_router
from creative_compliance.api.compliance import router as compliance_router

api_router = APIRouter()

# Health check
api_router.include_router(health_router, tags=["Health"])

# Rule catalog and formats
api_router.include_router(rules_router, tags=["Rules"])

# Evaluations
api_router.include_router(compliance_router, tags=["Compliance"])
