"""
Sync Window Planning

Works out which calendar days to fetch next. Windows never reach today
(today's data is still incomplete) and never exceed ``max_span_days``.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from .models import SyncWindow

logger = logging.getLogger(__name__)

DEFAULT_MAX_SPAN_DAYS = 14


def plan_window(
    watermark: Optional[date],
    today: date,
    max_span_days: int = DEFAULT_MAX_SPAN_DAYS,
) -> Optional[SyncWindow]:
    """Compute the next window after the watermark.

    Args:
        watermark: Last fully synced day (None = no progress yet)
        today: Current local date
        max_span_days: Maximum number of days in one window

    Returns:
        SyncWindow, or None when there is nothing to do
    """
    if watermark is None:
        return None

    yesterday = today - timedelta(days=1)
    start = watermark + timedelta(days=1)
    if start > yesterday:
        return None

    end = min(start + timedelta(days=max_span_days - 1), yesterday)
    return SyncWindow(start=start, end=end)


class WindowPlanner:
    """Plans windows against an injected clock."""

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        max_span_days: int = DEFAULT_MAX_SPAN_DAYS,
        seed_start: Optional[date] = None,
    ):
        """Initialize planner.

        Args:
            clock: Returns the current local time
            max_span_days: Maximum number of days per window
            seed_start: First day to fetch when no watermark exists yet
        """
        if max_span_days < 1:
            raise ValueError("max_span_days must be at least 1")
        self.clock = clock
        self.max_span_days = max_span_days
        self.seed_start = seed_start

    def today(self) -> date:
        return self.clock().date()

    def effective_watermark(self, watermark: Optional[date]) -> Optional[date]:
        """Stored watermark, or the day before the seed if none is stored."""
        if watermark is not None:
            return watermark
        if self.seed_start is not None:
            return self.seed_start - timedelta(days=1)
        return None

    def next_window(self, watermark: Optional[date]) -> Optional[SyncWindow]:
        effective = self.effective_watermark(watermark)
        if effective is None:
            logger.warning(
                "No watermark stored and no backfill start configured; "
                "create the watermark file or set backfill_start"
            )
            return None
        return plan_window(effective, self.today(), self.max_span_days)
