"""Tests for the daily transfer counters."""
from __future__ import annotations

from datetime import date

import pytest
from httpx import ASGITransport, AsyncClient

from netdrop.services.stats import StatsService


def test_counters_reset_when_the_day_changes():
    current = {"day": date(2026, 1, 1)}
    service = StatsService(display_offset=100, today=lambda: current["day"])

    assert service.increment_file_count() == 1
    assert service.increment_file_count(3) == 4
    service.add_bytes_transferred(2048)
    assert service.snapshot() == {
        "files_shared_today": 4,
        "bytes_transferred_today": 2048,
        "display_count": 104,
    }

    current["day"] = date(2026, 1, 2)
    assert service.snapshot() == {
        "files_shared_today": 0,
        "bytes_transferred_today": 0,
        "display_count": 100,
    }


@pytest.mark.asyncio
async def test_stats_endpoints(fresh_app) -> None:
    transport = ASGITransport(app=fresh_app)

    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        initial = await client.get("/api/stats")
        shared = await client.post("/api/stats/file-shared", json={"count": 2, "bytes": 512})
        default = await client.post("/api/stats/file-shared")
        invalid = await client.post("/api/stats/file-shared", json={"count": 0})
        after = await client.get("/api/stats")

    assert initial.json() == {"filesSharedToday": 0, "bytesTransferredToday": 0, "displayCount": 1247}
    assert shared.json() == {"success": True, "filesSharedToday": 2}
    assert default.json() == {"success": True, "filesSharedToday": 3}
    assert invalid.status_code == 422
    assert after.json() == {"filesSharedToday": 3, "bytesTransferredToday": 512, "displayCount": 1250}
