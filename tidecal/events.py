"""
Calendar events and their construction from tide extremes.

Event instants are always aware UTC datetimes. The zone an event should be
shown in travels separately as an IANA identifier, so re-serialising an
event never depends on whatever zone a datetime happens to carry.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from .extrema import Extreme, TideKind
from .harmonic_model import to_utc

logger = logging.getLogger(__name__)

TIDE_EVENT_DURATION = timedelta(minutes=1)


@dataclass(frozen=True)
class CalendarEvent:
    """One calendar entry. Two events with the same id are the same event."""
    id: str
    summary: str
    start: datetime
    end: Optional[datetime] = None
    description: Optional[str] = None
    location: Optional[str] = None
    time_zone_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'start', to_utc(self.start))
        if self.end is not None:
            end = to_utc(self.end)
            if end < self.start:
                raise ValueError(f"Event {self.id} ends ({end.isoformat()}) before it starts")
            object.__setattr__(self, 'end', end)

    @property
    def last_instant(self) -> datetime:
        """End if the event has one, else start."""
        return self.end if self.end is not None else self.start

    def local_start(self) -> datetime:
        """Start in the event's own zone (UTC when it has none)."""
        if self.time_zone_id:
            return self.start.astimezone(ZoneInfo(self.time_zone_id))
        return self.start


def tide_event_id(instant: datetime) -> str:
    """Stable id for a tide at an instant, e.g. 'tide-2025-07-15T03:39:00.000Z'."""
    utc = to_utc(instant)
    return f"tide-{utc.strftime('%Y-%m-%dT%H:%M:%S')}.{utc.microsecond // 1000:03d}Z"


def _round_to_minute(dt: datetime) -> datetime:
    rounded = dt.replace(second=0, microsecond=0)
    if dt.second >= 30:
        rounded += timedelta(minutes=1)
    return rounded


def tide_event(
    instant: datetime,
    kind: TideKind,
    height: float,
    location: Optional[str] = None,
    time_zone_id: Optional[str] = None,
) -> CalendarEvent:
    """Calendar event for one high or low tide, rounded to the minute."""
    start = _round_to_minute(to_utc(instant))
    label = "High Tide" if kind == TideKind.HIGH else "Low Tide"
    return CalendarEvent(
        id=tide_event_id(start),
        summary=f"{label} {height:.1f} m",
        start=start,
        end=start + TIDE_EVENT_DURATION,
        description=f"Height: {height:.2f} m",
        location=location,
        time_zone_id=time_zone_id,
    )


def events_from_extremes(
    extremes: Iterable[Extreme],
    location: Optional[str] = None,
    time_zone_id: Optional[str] = None,
    datum_offset: float = 0.0,
) -> List[CalendarEvent]:
    """Map modelled extremes to calendar events, adding datum_offset to each level."""
    return [
        tide_event(e.instant, e.kind, e.level + datum_offset, location, time_zone_id)
        for e in extremes
    ]


def parse_raw_extreme(record: Dict) -> Extreme:
    """
    Parse one {time, type, height} record from an external tide source.

    Raises:
        ValueError: If a field is missing or malformed
    """
    try:
        time_str = record['time']
        kind = TideKind(str(record['type']).lower())
        height = float(record['height'])
    except KeyError as e:
        raise ValueError(f"Tide record missing field {e}: {record!r}") from e
    except (TypeError, ValueError) as e:
        raise ValueError(f"Malformed tide record {record!r}: {e}") from e

    instant = datetime.fromisoformat(str(time_str).replace('Z', '+00:00'))
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return Extreme(instant=to_utc(instant), level=height, kind=kind)


def events_from_raw_extremes(
    records: Iterable[Dict],
    location: Optional[str] = None,
    time_zone_id: Optional[str] = None,
    datum_offset: float = 0.0,
) -> List[CalendarEvent]:
    """
    Map raw tide records to calendar events sorted by start.

    Malformed records are skipped with a warning.
    """
    extremes = []
    for record in records:
        try:
            extremes.append(parse_raw_extreme(record))
        except ValueError as e:
            logger.warning(f"Skipping tide record: {e}")
    extremes.sort(key=lambda e: e.instant)
    return events_from_extremes(extremes, location, time_zone_id, datum_offset)
