"""
iCalendar (RFC 5545) encoding and decoding of tide calendars.

Zone handling rules:
- An event's start/end are written with TZID=<zone> when the event carries
  its own zone or a calendar zone is given; the event's zone wins.
- Without any zone, times are written floating, as UTC wall-clock values.
- UTC zones are written with an explicit TZID too, never as a bare 'Z'.
- On decode the TZID of DTSTART is kept on the event if ZoneInfo knows it.
  Floating times are read back as UTC wall-clock. Events left without a
  usable zone (floating, bare 'Z' or a non-IANA TZID) are tagged with the
  calendar's declared zone when there is one.

Losing the TZID on a load/save cycle would shift every time by the zone's
UTC offset the next time the file is written, so the round trip keeps it.
"""
import logging
import os
import tempfile
from datetime import date, datetime, time, timezone
from typing import List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from icalendar import Calendar, Event

from .errors import DecodeFailure
from .events import CalendarEvent
from .harmonic_model import to_utc

logger = logging.getLogger(__name__)

PRODID = "-//tidecal//Tide Calendar//EN"


def _local(instant: datetime, zone: Optional[str]) -> datetime:
    if zone:
        return instant.astimezone(ZoneInfo(zone))
    return instant.replace(tzinfo=None)


def _known_zone(zone: Optional[str]) -> bool:
    if not zone:
        return False
    try:
        ZoneInfo(zone)
        return True
    except (ValueError, ZoneInfoNotFoundError):
        return False


def _pin_tzid(vevent: Event, zone: str) -> None:
    """
    Name the zone on start/end values icalendar wrote as bare UTC.

    icalendar serializes any UTC-equivalent zone (UTC, Etc/UTC) with a 'Z'
    suffix and no TZID, which would lose the zone on decode.
    """
    for name in ('DTSTART', 'DTEND'):
        prop = vevent.get(name)
        if prop is None or prop.params.get('TZID'):
            continue
        wall_clock = to_utc(prop.dt).replace(tzinfo=None)
        del vevent[name]
        vevent.add(name, wall_clock, parameters={'TZID': zone})


def encode(
    events: Sequence[CalendarEvent],
    time_zone_id: Optional[str] = None,
    calendar_name: Optional[str] = None,
    stamp: Optional[datetime] = None,
) -> str:
    """
    Serialize events to iCalendar text.

    Args:
        events: Events to write, in order
        time_zone_id: Calendar-level IANA zone, applied to events without one
        calendar_name: Calendar display name
        stamp: DTSTAMP for every event (defaults to now)

    Returns:
        iCalendar text with CRLF line endings
    """
    stamp = to_utc(stamp) if stamp is not None else datetime.now(timezone.utc)

    cal = Calendar()
    cal.add('prodid', PRODID)
    cal.add('version', '2.0')
    if calendar_name:
        cal.add('name', calendar_name)
        cal.add('x-wr-calname', calendar_name)
    if time_zone_id:
        cal.add('timezone-id', time_zone_id)
        cal.add('x-wr-timezone', time_zone_id)

    zoned = []
    for ev in events:
        zone = ev.time_zone_id or time_zone_id
        vevent = Event()
        vevent.add('uid', ev.id)
        vevent.add('dtstamp', stamp)
        vevent.add('dtstart', _local(ev.start, zone))
        if ev.end is not None:
            vevent.add('dtend', _local(ev.end, zone))
        vevent.add('summary', ev.summary)
        if ev.location:
            vevent.add('location', ev.location)
        if ev.description:
            vevent.add('description', ev.description)
        cal.add_component(vevent)
        if zone:
            zoned.append((vevent, zone))

    cal.add_missing_timezones()
    # After the VTIMEZONE pass, so UTC zones get no definition
    for vevent, zone in zoned:
        _pin_tzid(vevent, zone)
    return cal.to_ical().decode('utf-8')


def _decode_time(prop, calendar_zone: Optional[str]) -> Tuple[datetime, Optional[str]]:
    """UTC instant and zone id for a DTSTART/DTEND property."""
    value = prop.dt
    tzid = prop.params.get('TZID')

    if not isinstance(value, datetime) and isinstance(value, date):
        value = datetime.combine(value, time())

    tzid = str(tzid) if tzid else None
    if tzid and not _known_zone(tzid):
        # e.g. Outlook's 'GMT Standard Time'; icalendar already applied its VTIMEZONE
        logger.debug(f"Dropping non-IANA TZID '{tzid}'")
        tzid = None

    if value.tzinfo is None:
        value = value.replace(tzinfo=ZoneInfo(tzid) if tzid else timezone.utc)
    elif tzid is None:
        key = getattr(value.tzinfo, 'key', None)
        if key != 'UTC' and _known_zone(key):
            tzid = key

    return to_utc(value), tzid or calendar_zone


def _optional_text(component, name: str) -> Optional[str]:
    value = component.get(name)
    return str(value) if value is not None else None


def _parse(text: str) -> List[CalendarEvent]:
    """
    Parse iCalendar text.

    Raises:
        DecodeFailure: If the text is not an iCalendar document
    """
    if 'BEGIN:VCALENDAR' not in text:
        raise DecodeFailure("No VCALENDAR component found")
    try:
        cal = Calendar.from_ical(text)
    except Exception as e:
        raise DecodeFailure(f"Unparsable calendar: {e}") from e

    calendar_zone = cal.get('X-WR-TIMEZONE') or cal.get('TIMEZONE-ID')
    calendar_zone = str(calendar_zone) if _known_zone(str(calendar_zone or '')) else None

    events = []
    for component in cal.walk('VEVENT'):
        uid = component.get('UID')
        dtstart = component.get('DTSTART')
        if uid is None or dtstart is None:
            logger.warning(f"Skipping VEVENT without UID or DTSTART (UID={uid})")
            continue
        try:
            start, zone = _decode_time(dtstart, calendar_zone)
            end = None
            if component.get('DTEND') is not None:
                end, _ = _decode_time(component.get('DTEND'), calendar_zone)
            events.append(CalendarEvent(
                id=str(uid),
                summary=str(component.get('SUMMARY', '')),
                start=start,
                end=end,
                description=_optional_text(component, 'DESCRIPTION'),
                location=_optional_text(component, 'LOCATION'),
                time_zone_id=zone,
            ))
        except (KeyError, ValueError) as e:
            logger.warning(f"Skipping unreadable VEVENT {uid}: {e}")

    return events


def decode(text: Optional[str]) -> List[CalendarEvent]:
    """
    Read events from iCalendar text.

    Empty or unparsable text gives an empty list; the failure is logged and
    treated as "no prior state".
    """
    if not text or not text.strip():
        return []
    try:
        return _parse(text)
    except DecodeFailure as e:
        logger.warning(f"Ignoring unreadable calendar: {e}")
        return []


def load_calendar(path: str) -> List[CalendarEvent]:
    """Events from a calendar file; a missing file gives an empty list."""
    if not os.path.exists(path):
        logger.info(f"No existing calendar at {path}")
        return []
    with open(path, 'r', encoding='utf-8') as f:
        return decode(f.read())


def save_calendar(
    path: str,
    events: Sequence[CalendarEvent],
    time_zone_id: Optional[str] = None,
    calendar_name: Optional[str] = None,
) -> None:
    """Replace the calendar file at path with the encoded events."""
    content = encode(events, time_zone_id, calendar_name)
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix='.tidecal-', suffix='.ics', dir=directory)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
