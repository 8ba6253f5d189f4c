"""Tests for sync window planning."""

from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from core.ecobee_influx.models import SyncWindow
from core.ecobee_influx.planner import WindowPlanner, plan_window


class TestPlanWindow:
    def test_no_watermark_means_no_window(self) -> None:
        assert plan_window(None, date(2022, 3, 10)) is None

    def test_window_starts_day_after_watermark(self) -> None:
        window = plan_window(date(2022, 3, 1), date(2022, 3, 10))
        assert window == SyncWindow(date(2022, 3, 2), date(2022, 3, 9))

    def test_window_capped_at_fourteen_days(self) -> None:
        window = plan_window(date(2022, 1, 1), date(2022, 3, 10))
        assert window.start == date(2022, 1, 2)
        assert window.end == date(2022, 1, 15)
        assert window.days == 14

    def test_caught_up_returns_none(self) -> None:
        # Watermark is yesterday
        assert plan_window(date(2022, 3, 9), date(2022, 3, 10)) is None

    def test_watermark_in_future_returns_none(self) -> None:
        assert plan_window(date(2022, 3, 20), date(2022, 3, 10)) is None

    def test_single_day_window(self) -> None:
        window = plan_window(date(2022, 3, 8), date(2022, 3, 10))
        assert window.start == window.end == date(2022, 3, 9)

    def test_custom_span(self) -> None:
        window = plan_window(date(2022, 1, 1), date(2022, 3, 10), max_span_days=3)
        assert window.end == date(2022, 1, 4)

    @pytest.mark.parametrize("offset_days", [0, 1, 2, 5, 13, 14, 15, 40, 400])
    def test_window_bounds_hold(self, offset_days: int) -> None:
        today = date(2022, 3, 10)
        watermark = today - timedelta(days=offset_days)
        window = plan_window(watermark, today)

        if watermark + timedelta(days=1) > today - timedelta(days=1):
            assert window is None
            return

        assert window.start == watermark + timedelta(days=1)
        assert window.end <= today - timedelta(days=1)
        assert (window.end - window.start).days <= 13


class TestWindowPlanner:
    def test_uses_injected_clock(self, clock) -> None:
        planner = WindowPlanner(clock=clock)
        window = planner.next_window(date(2022, 3, 7))
        assert window == SyncWindow(date(2022, 3, 8), date(2022, 3, 9))

    def test_blocks_without_watermark_or_seed(self, clock) -> None:
        assert WindowPlanner(clock=clock).next_window(None) is None

    def test_seed_start_is_first_day_fetched(self, clock) -> None:
        planner = WindowPlanner(clock=clock, seed_start=date(2022, 3, 1))
        window = planner.next_window(None)
        assert window.start == date(2022, 3, 1)
        assert window.end == date(2022, 3, 9)

    def test_stored_watermark_wins_over_seed(self, clock) -> None:
        planner = WindowPlanner(clock=clock, seed_start=date(2021, 1, 1))
        window = planner.next_window(date(2022, 3, 5))
        assert window.start == date(2022, 3, 6)

    def test_time_of_day_is_ignored(self) -> None:
        late = WindowPlanner(clock=lambda: datetime(2022, 3, 10, 23, 59))
        early = WindowPlanner(clock=lambda: datetime(2022, 3, 10, 0, 1))
        assert late.next_window(date(2022, 3, 1)) == early.next_window(date(2022, 3, 1))

    def test_rejects_empty_span(self) -> None:
        with pytest.raises(ValueError):
            WindowPlanner(max_span_days=0)


def test_sync_window_rejects_inverted_range() -> None:
    with pytest.raises(ValueError):
        SyncWindow(date(2022, 3, 2), date(2022, 3, 1))
