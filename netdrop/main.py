"""FastAPI application for the NetDrop signaling server."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response

from .core.config import settings
from .routers import signaling as signaling_router
from .routers import stats as stats_router
from .services.signaling import SignalingManager
from .services.stats import StatsService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Signaling server starting (%s)", settings.app_env)
    try:
        yield
    finally:
        app.state.signaling.close()
        logger.info("Signaling server stopped")


app = FastAPI(title="NetDrop Signaling API", version="0.1.0", lifespan=lifespan)

app.state.settings = settings
app.state.signaling = SignalingManager.from_settings(settings)
app.state.stats = StatsService(display_offset=settings.stats_display_offset)

if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(signaling_router.router, tags=["signaling"])
app.include_router(stats_router.router, prefix="/api/stats", tags=["stats"])


@app.get("/api/health", tags=["meta"])
async def health() -> dict[str, str]:
    """Simple liveness probe."""

    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.head("/api/health", tags=["meta"])
async def health_head() -> Response:
    """Allow HEAD for uptime monitors that only need the status code."""

    return Response(status_code=200)


@app.get("/robots.txt", response_class=PlainTextResponse, include_in_schema=False)
async def robots() -> PlainTextResponse:
    """Serve a minimal robots.txt to avoid 404 noise."""

    return PlainTextResponse("User-agent: *\nDisallow:")
