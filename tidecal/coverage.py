"""
How many days of events to produce on a synchronization run.

The goal is to always hold at least MIN_COVERAGE days of lead time beyond
what is already stored, without producing more than MAX_COVERAGE days in one
run, and never fewer days than the caller asked for.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from .events import CalendarEvent
from .harmonic_model import to_utc

MIN_COVERAGE = 14
MAX_COVERAGE = 40

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class CoverageWindow:
    existing_coverage_days: int
    target_days: int
    fetch_days: int


def coverage_days(events: Iterable[CalendarEvent], now: datetime) -> int:
    """Whole days from now to the latest end (or start) of any event, never negative."""
    now = to_utc(now)
    latest = now
    for event in events:
        if event.last_instant > latest:
            latest = event.last_instant
    return int((latest - now).total_seconds() // SECONDS_PER_DAY)


def compute_window(
    requested_days: int,
    existing_events: Iterable[CalendarEvent],
    now: datetime,
) -> CoverageWindow:
    """
    Work out how many days to fetch given what a calendar already holds.

    Args:
        requested_days: Days the caller asked for
        existing_events: Events already in the calendar
        now: Reference instant

    Returns:
        CoverageWindow with existing coverage, target and days to fetch
    """
    existing = coverage_days(existing_events, now)
    target = min(max(existing + MIN_COVERAGE, MIN_COVERAGE), MAX_COVERAGE)
    return CoverageWindow(
        existing_coverage_days=existing,
        target_days=target,
        fetch_days=max(requested_days, target),
    )
