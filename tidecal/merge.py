"""Identity-based merging of calendar events."""
from typing import Iterable, List, Sequence

from .events import CalendarEvent


def _unique(events: Iterable[CalendarEvent], seen: set) -> List[CalendarEvent]:
    result = []
    for event in events:
        if event.id in seen:
            continue
        seen.add(event.id)
        result.append(event)
    return result


def merge_events(
    existing: Sequence[CalendarEvent],
    fresh: Sequence[CalendarEvent],
    replace_existing: bool = False,
) -> List[CalendarEvent]:
    """
    Union fresh events into an existing collection by id.

    Existing events are kept unchanged and in order; fresh events are
    appended in their own order unless their id is already present. With
    replace_existing the existing collection is discarded. The first event
    seen for an id always wins. Neither input is modified.
    """
    if replace_existing:
        return _unique(fresh, set())

    seen = set()
    merged = _unique(existing, seen)
    merged.extend(_unique(fresh, seen))
    return merged
