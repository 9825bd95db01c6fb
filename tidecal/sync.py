"""
Calendar synchronization: top up a persisted calendar with fresh events.

A run reads the calendar once, works out how many days to produce, asks the
provider for them, merges by event id and rewrites the file once.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from .calendar_codec import load_calendar, save_calendar
from .coverage import CoverageWindow, compute_window
from .events import CalendarEvent
from .merge import merge_events
from .providers import EventProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    path: str
    window: CoverageWindow
    existing: int
    added: int
    total: int


def synchronize(
    existing: Sequence[CalendarEvent],
    requested_days: int,
    now: datetime,
    replace_existing: bool,
    provider: EventProvider,
) -> Tuple[List[CalendarEvent], CoverageWindow]:
    """
    Merge freshly produced events into an existing collection.

    When replacing, coverage is computed as if the calendar were empty and
    the existing events are dropped.

    Returns:
        (merged events, coverage window used)

    Raises:
        UpstreamFailure: Propagated unchanged from the provider
    """
    window = compute_window(requested_days, [] if replace_existing else existing, now)
    fresh = provider.get_events(window.fetch_days, now=now)
    merged = merge_events(existing, fresh, replace_existing)
    logger.debug(f"Coverage {window.existing_coverage_days}d, target {window.target_days}d, "
                 f"fetched {len(fresh)} events for {window.fetch_days}d")
    return merged, window


def sync_calendar_file(
    path: str,
    provider: EventProvider,
    requested_days: int,
    now: Optional[datetime] = None,
    replace_existing: bool = False,
    calendar_name: Optional[str] = None,
) -> SyncResult:
    """
    Load the calendar at path, synchronize it and write it back.

    The file is only rewritten after the provider succeeded, so a failed
    run leaves the previous calendar in place.
    """
    now = now or datetime.now(timezone.utc)
    existing = load_calendar(path)
    merged, window = synchronize(existing, requested_days, now, replace_existing, provider)
    save_calendar(path, merged, provider.time_zone_id, calendar_name)

    known = set() if replace_existing else {e.id for e in existing}
    result = SyncResult(
        path=path,
        window=window,
        existing=len(existing),
        added=sum(1 for e in merged if e.id not in known),
        total=len(merged),
    )
    logger.info(f"Calendar {path}: added {result.added} new events ({result.total} total)")
    return result
