"""Transfer statistics endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Request

from ..schemas import stats as stats_schema
from ..services.stats import StatsService

router = APIRouter()


def _stats(request: Request) -> StatsService:
    return request.app.state.stats


@router.get("", response_model=stats_schema.StatsResponse, response_model_by_alias=True)
async def get_stats(request: Request) -> stats_schema.StatsResponse:
    """Return today's counters."""

    return stats_schema.StatsResponse(**_stats(request).snapshot())


@router.post("/file-shared", response_model=stats_schema.FileSharedResponse, response_model_by_alias=True)
async def file_shared(
    request: Request,
    payload: stats_schema.FileSharedRequest | None = None,
) -> stats_schema.FileSharedResponse:
    """Record a completed transfer reported by a client."""

    payload = payload or stats_schema.FileSharedRequest()
    service = _stats(request)
    if payload.bytes:
        service.add_bytes_transferred(payload.bytes)
    total = service.increment_file_count(payload.count)
    return stats_schema.FileSharedResponse(files_shared_today=total)
