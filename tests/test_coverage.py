"""
Unit tests for synchronization coverage windows
"""
import pytest
from datetime import datetime, timedelta, timezone

from tidecal.coverage import MAX_COVERAGE, MIN_COVERAGE, CoverageWindow, compute_window, coverage_days
from tidecal.events import CalendarEvent

NOW = datetime(2025, 7, 8, 12, 0, tzinfo=timezone.utc)


def _event(start, end=None, event_id=None):
    return CalendarEvent(
        id=event_id or f"ev-{start.isoformat()}",
        summary="Tide",
        start=start,
        end=end,
    )


def _events_until(days_ahead, with_end=True):
    """One event per day up to days_ahead days after NOW."""
    events = []
    for day in range(days_ahead + 1):
        start = NOW + timedelta(days=day) - timedelta(minutes=1 if with_end else 0)
        end = start + timedelta(minutes=1) if with_end else None
        events.append(_event(start, end))
    return events


class TestCoverageDays:
    """Tests for existing coverage measurement."""

    def test_empty_calendar(self):
        assert coverage_days([], NOW) == 0

    def test_counts_whole_days_to_latest_end(self):
        assert coverage_days(_events_until(10), NOW) == 10

    def test_start_used_without_end(self):
        """An event without an end counts up to its start."""
        events = [_event(NOW + timedelta(days=5))]
        assert coverage_days(events, NOW) == 5

    def test_partial_days_are_floored(self):
        events = [_event(NOW + timedelta(days=3, hours=23))]
        assert coverage_days(events, NOW) == 3

    def test_past_events_count_as_zero(self):
        """Coverage is never negative."""
        events = [_event(NOW - timedelta(days=10), NOW - timedelta(days=10) + timedelta(minutes=1))]
        assert coverage_days(events, NOW) == 0

    def test_order_does_not_matter(self):
        events = list(reversed(_events_until(6)))
        assert coverage_days(events, NOW) == 6


class TestComputeWindow:
    """Tests for deciding how many days to fetch."""

    def test_empty_calendar_gets_minimum(self):
        assert compute_window(7, [], NOW) == CoverageWindow(0, MIN_COVERAGE, MIN_COVERAGE)

    def test_tops_up_existing_coverage(self):
        """Ten days already stored means fetching 24."""
        window = compute_window(7, _events_until(10), NOW)
        assert window == CoverageWindow(10, 24, 24)

    def test_target_capped_at_maximum(self):
        """Fifty days already stored is capped at forty."""
        window = compute_window(7, _events_until(50), NOW)
        assert window == CoverageWindow(50, MAX_COVERAGE, MAX_COVERAGE)

    def test_requested_days_respected(self):
        """A request larger than the target wins."""
        window = compute_window(30, _events_until(5), NOW)
        assert window == CoverageWindow(5, 19, 30)

    def test_zero_requested(self):
        window = compute_window(0, [], NOW)
        assert window.fetch_days == MIN_COVERAGE

    def test_events_without_end(self):
        window = compute_window(7, _events_until(5, with_end=False), NOW)
        assert window == CoverageWindow(5, 19, 19)

    @pytest.mark.parametrize("existing", [0, 3, 14, 26, 27, 60])
    def test_bounds(self, existing):
        """Target always lies between the minimum and maximum."""
        window = compute_window(1, _events_until(existing), NOW)
        assert MIN_COVERAGE <= window.target_days <= MAX_COVERAGE
        assert window.fetch_days >= window.target_days
