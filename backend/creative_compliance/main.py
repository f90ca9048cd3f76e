"""Creative Compliance — rule evaluation service for retail media creatives.

Main FastAPI application with lifespan management, CORS, and global error handling.
"""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from creative_compliance.config import get_settings
from creative_compliance.api.router import api_router
from creative_compliance.capabilities.factory import build_capability_chain, build_image_loader
from creative_compliance.compliance.rules import load_default_schema
from creative_compliance.services.rate_limiter import PhaseCreditLimiter

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if get_settings().DEBUG else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(get_settings().LOG_LEVEL.upper())
    ),
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    settings = get_settings()

    # ── Startup ──
    logger.info("app_starting", debug=settings.DEBUG)

    app.state.capabilities = build_capability_chain(settings)
    app.state.image_loader = build_image_loader(settings)
    app.state.schema = load_default_schema()
    app.state.rate_limiter = PhaseCreditLimiter()
    app.state.last_verdicts = {}

    logger.info(
        "app_started",
        rules=len(app.state.schema),
        providers=app.state.capabilities.provider_names,
    )

    yield

    # ── Shutdown ──
    logger.info("app_shutting_down")

    await app.state.capabilities.aclose()
    await app.state.image_loader.aclose()

    logger.info("app_stopped")


# ── Create Application ──

app = FastAPI(
    title="Creative Compliance",
    description=(
        "Compliance evaluation for retail media creatives. "
        "Deterministic layout and copy checks run on every edit; "
        "semantic and vision checks gate export."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ── Middleware ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Global Exception Handlers ──

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all error handler for unhandled exceptions."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again.",
        },
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle canvas and snapshot errors raised outside request validation."""
    return JSONResponse(
        status_code=422,
        content={"error": "validation_error", "message": str(exc)},
    )


# ── Routes ──

app.include_router(api_router, prefix="/api/v1")


# ── Root endpoint ──

@app.get("/")
async def root():
    """Root endpoint — API info."""
    return {
        "name": "Creative Compliance",
        "version": "1.0.0",
        "description": "Compliance evaluation for retail media creatives",
        "docs": "/docs",
        "health": "/api/v1/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "creative_compliance.main:app",
        host=get_settings().HOST,
        port=get_settings().PORT,
        reload=get_settings().DEBUG,
    )
