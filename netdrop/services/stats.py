"""Daily transfer counters shown on the landing page."""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable

logger = logging.getLogger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class StatsService:
    """In-memory counters that reset when the UTC date changes."""

    def __init__(self, display_offset: int = 0, today: Callable[[], date] = _utc_today) -> None:
        self._display_offset = display_offset
        self._today = today
        self._files_shared = 0
        self._bytes_transferred = 0
        self._day = today()

    def _check_daily_reset(self) -> None:
        today = self._today()
        if today != self._day:
            logger.info("Daily stats reset, previous file count: %d", self._files_shared)
            self._files_shared = 0
            self._bytes_transferred = 0
            self._day = today

    def increment_file_count(self, count: int = 1) -> int:
        self._check_daily_reset()
        self._files_shared += count
        return self._files_shared

    def add_bytes_transferred(self, amount: int) -> int:
        self._check_daily_reset()
        self._bytes_transferred += amount
        return self._bytes_transferred

    def snapshot(self) -> dict[str, int]:
        self._check_daily_reset()
        return {
            "files_shared_today": self._files_shared,
            "bytes_transferred_today": self._bytes_transferred,
            "display_count": self._files_shared + self._display_offset,
        }
