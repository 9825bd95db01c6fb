"""
Unit tests for iCalendar encoding and decoding
"""
import os
import pytest
from datetime import datetime, timedelta, timezone

from tidecal.calendar_codec import decode, encode, load_calendar, save_calendar
from tidecal.events import CalendarEvent, tide_event
from tidecal.extrema import TideKind

JERSEY = 'Europe/Jersey'
STAMP = datetime(2025, 7, 1, tzinfo=timezone.utc)
SUMMER_LOW = datetime(2025, 7, 15, 3, 39, tzinfo=timezone.utc)


@pytest.fixture
def jersey_events():
    return [
        tide_event(SUMMER_LOW, TideKind.LOW, 1.23, 'St Helier, Jersey', JERSEY),
        tide_event(SUMMER_LOW + timedelta(hours=6, minutes=12), TideKind.HIGH, 10.87,
                   'St Helier, Jersey', JERSEY),
    ]


def _ics(*lines):
    return "\r\n".join(lines) + "\r\n"


class TestEncode:
    """Tests for writing calendars."""

    def test_local_time_with_tzid(self, jersey_events):
        """Summer times in Jersey are written at UTC+1 with the zone named."""
        text = encode(jersey_events, JERSEY, 'tides', stamp=STAMP)
        assert 'DTSTART;TZID=Europe/Jersey:20250715T043900' in text
        assert 'DTEND;TZID=Europe/Jersey:20250715T044000' in text

    def test_winter_offset(self):
        winter = tide_event(datetime(2025, 1, 15, 3, 39, tzinfo=timezone.utc), TideKind.HIGH, 9.0,
                            time_zone_id=JERSEY)
        text = encode([winter], JERSEY, stamp=STAMP)
        assert 'DTSTART;TZID=Europe/Jersey:20250115T033900' in text

    def test_calendar_headers(self, jersey_events):
        text = encode(jersey_events, JERSEY, 'tides', stamp=STAMP)
        assert text.startswith('BEGIN:VCALENDAR')
        assert 'VERSION:2.0' in text
        assert 'NAME:tides' in text
        assert 'X-WR-CALNAME:tides' in text
        assert 'TIMEZONE-ID:Europe/Jersey' in text
        assert 'X-WR-TIMEZONE:Europe/Jersey' in text

    def test_timezone_definition_included(self, jersey_events):
        """The zone used by events is defined in the calendar."""
        text = encode(jersey_events, JERSEY, stamp=STAMP)
        assert 'BEGIN:VTIMEZONE' in text
        assert 'TZID:Europe/Jersey' in text

    def test_event_fields(self, jersey_events):
        text = encode(jersey_events, JERSEY, stamp=STAMP)
        assert 'UID:tide-2025-07-15T03:39:00.000Z' in text
        assert 'SUMMARY:Low Tide 1.2 m' in text
        assert 'DESCRIPTION:Height: 1.23 m' in text
        assert 'DTSTAMP:20250701T000000Z' in text

    def test_event_zone_wins_over_calendar_zone(self):
        event = CalendarEvent(
            id='ny', summary='Elsewhere',
            start=datetime(2025, 7, 5, 14, 0, tzinfo=timezone.utc),
            time_zone_id='America/New_York',
        )
        text = encode([event], JERSEY, stamp=STAMP)
        assert 'DTSTART;TZID=America/New_York:20250705T100000' in text

    def test_floating_without_any_zone(self):
        """With no zone at all, times are written as floating UTC wall-clock."""
        event = CalendarEvent(id='x', summary='X', start=datetime(2025, 7, 5, 14, 0, tzinfo=timezone.utc))
        text = encode([event], stamp=STAMP)
        assert 'DTSTART:20250705T140000\r\n' in text
        assert 'DTEND' not in text
        assert 'X-WR-TIMEZONE' not in text

    def test_empty_calendar(self):
        text = encode([], JERSEY, 'tides', stamp=STAMP)
        assert 'BEGIN:VCALENDAR' in text
        assert 'BEGIN:VEVENT' not in text


class TestDecode:
    """Tests for reading calendars."""

    def test_round_trip(self, jersey_events):
        """Events survive encode and decode unchanged, zone included."""
        decoded = decode(encode(jersey_events, JERSEY, 'tides', stamp=STAMP))
        assert decoded == jersey_events

    def test_round_trip_is_stable(self, jersey_events):
        """Re-encoding decoded events never shifts their times."""
        once = encode(jersey_events, JERSEY, stamp=STAMP)
        twice = encode(decode(once), JERSEY, stamp=STAMP)
        assert once == twice

    def test_round_trip_without_zone(self):
        event = CalendarEvent(id='x', summary='X', start=datetime(2025, 7, 5, 14, 0, tzinfo=timezone.utc))
        decoded = decode(encode([event], stamp=STAMP))
        assert decoded == [event]
        assert decoded[0].time_zone_id is None

    def test_floating_times_tagged_with_calendar_zone(self):
        """A calendar written without TZIDs is repaired on the next save."""
        text = _ics(
            'BEGIN:VCALENDAR',
            'VERSION:2.0',
            'PRODID:-//test//EN',
            'X-WR-TIMEZONE:Europe/Jersey',
            'BEGIN:VEVENT',
            'UID:tide-2025-07-15T03:39:00.000Z',
            'DTSTAMP:20250701T000000Z',
            'DTSTART:20250715T033900',
            'DTEND:20250715T034000',
            'SUMMARY:Low Tide 1.2 m',
            'END:VEVENT',
            'END:VCALENDAR',
        )
        events = decode(text)
        assert len(events) == 1
        assert events[0].start == SUMMER_LOW
        assert events[0].time_zone_id == JERSEY
        assert 'DTSTART;TZID=Europe/Jersey:20250715T043900' in encode(events, JERSEY, stamp=STAMP)

    @pytest.mark.parametrize("zone", ['UTC', 'Etc/UTC'])
    def test_round_trip_utc_zone(self, zone):
        """A UTC calendar zone is written as a TZID and survives decoding."""
        event = tide_event(SUMMER_LOW, TideKind.LOW, 1.0, time_zone_id=zone)
        text = encode([event], zone, stamp=STAMP)
        assert f'DTSTART;TZID={zone}:20250715T033900' in text
        decoded = decode(text)
        assert decoded == [event]
        assert decoded[0].time_zone_id == zone

    def test_utc_event_zone_in_other_calendar(self):
        """An event's own UTC zone is kept inside a calendar declaring another zone."""
        event = tide_event(SUMMER_LOW, TideKind.LOW, 1.0, time_zone_id='Etc/UTC')
        decoded = decode(encode([event], JERSEY, stamp=STAMP))
        assert decoded[0].time_zone_id == 'Etc/UTC'

    def test_bare_utc_times_tagged_with_calendar_zone(self):
        text = _ics(
            'BEGIN:VCALENDAR',
            'VERSION:2.0',
            'PRODID:-//test//EN',
            'X-WR-TIMEZONE:UTC',
            'BEGIN:VEVENT',
            'UID:u1',
            'DTSTART:20250715T033900Z',
            'SUMMARY:UTC',
            'END:VEVENT',
            'END:VCALENDAR',
        )
        events = decode(text)
        assert events[0].start == SUMMER_LOW
        assert events[0].time_zone_id == 'UTC'

    def test_non_iana_tzid_can_be_rewritten(self):
        """A Windows zone name defined by a VTIMEZONE decodes to the right instant and re-encodes."""
        text = _ics(
            'BEGIN:VCALENDAR',
            'VERSION:2.0',
            'PRODID:-//Microsoft Corporation//Outlook 16.0 MIMEDIR//EN',
            'BEGIN:VTIMEZONE',
            'TZID:GMT Standard Time',
            'BEGIN:STANDARD',
            'DTSTART:16010101T020000',
            'TZOFFSETFROM:+0100',
            'TZOFFSETTO:+0000',
            'RRULE:FREQ=YEARLY;INTERVAL=1;BYDAY=-1SU;BYMONTH=10',
            'END:STANDARD',
            'BEGIN:DAYLIGHT',
            'DTSTART:16010101T010000',
            'TZOFFSETFROM:+0000',
            'TZOFFSETTO:+0100',
            'RRULE:FREQ=YEARLY;INTERVAL=1;BYDAY=-1SU;BYMONTH=3',
            'END:DAYLIGHT',
            'END:VTIMEZONE',
            'BEGIN:VEVENT',
            'UID:outlook-1',
            'DTSTART;TZID=GMT Standard Time:20250715T043900',
            'SUMMARY:Imported',
            'END:VEVENT',
            'END:VCALENDAR',
        )
        events = decode(text)
        assert len(events) == 1
        assert events[0].start == SUMMER_LOW
        assert events[0].time_zone_id != 'GMT Standard Time'

        rewritten = encode(events, JERSEY, stamp=STAMP)
        assert 'GMT Standard Time' not in rewritten
        assert ';TZID=Europe/' in rewritten
        assert ':20250715T043900' in rewritten

    def test_utc_times(self):
        text = _ics(
            'BEGIN:VCALENDAR',
            'VERSION:2.0',
            'PRODID:-//test//EN',
            'BEGIN:VEVENT',
            'UID:u1',
            'DTSTART:20250715T033900Z',
            'SUMMARY:UTC',
            'END:VEVENT',
            'END:VCALENDAR',
        )
        events = decode(text)
        assert events[0].start == SUMMER_LOW
        assert events[0].end is None
        assert events[0].time_zone_id is None

    def test_event_without_start_skipped(self):
        text = _ics(
            'BEGIN:VCALENDAR',
            'VERSION:2.0',
            'PRODID:-//test//EN',
            'BEGIN:VEVENT',
            'UID:broken',
            'SUMMARY:No start',
            'END:VEVENT',
            'BEGIN:VEVENT',
            'UID:ok',
            'DTSTART:20250715T033900Z',
            'SUMMARY:Fine',
            'END:VEVENT',
            'END:VCALENDAR',
        )
        assert [e.id for e in decode(text)] == ['ok']

    @pytest.mark.parametrize("text", [None, "", "   \n", "not a calendar at all"])
    def test_unreadable_input_is_empty(self, text):
        assert decode(text) == []


class TestFiles:
    """Tests for loading and saving calendar files."""

    def test_missing_file(self, tmp_path):
        assert load_calendar(str(tmp_path / 'missing.ics')) == []

    def test_save_and_load(self, tmp_path, jersey_events):
        path = str(tmp_path / 'tides.ics')
        save_calendar(path, jersey_events, JERSEY, 'tides')
        assert load_calendar(path) == jersey_events

    def test_save_creates_directory(self, tmp_path, jersey_events):
        path = str(tmp_path / 'nested' / 'dir' / 'tides.ics')
        save_calendar(path, jersey_events, JERSEY)
        assert os.path.exists(path)

    def test_save_overwrites(self, tmp_path, jersey_events):
        path = str(tmp_path / 'tides.ics')
        save_calendar(path, jersey_events, JERSEY)
        save_calendar(path, jersey_events[:1], JERSEY)
        assert len(load_calendar(path)) == 1
        assert sorted(os.listdir(tmp_path)) == ['tides.ics']

    def test_garbage_file_is_empty(self, tmp_path):
        path = tmp_path / 'tides.ics'
        path.write_text("garbage", encoding='utf-8')
        assert load_calendar(str(path)) == []
