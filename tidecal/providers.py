"""
Event providers: sources of tide events for a number of days.

- harmonic: computes extremes locally from the station's constituent table
- stormglass: fetches extremes from the Storm Glass tide API

Both return CalendarEvents tagged with the station's zone. Upstream errors
are raised as UpstreamFailure and never retried here.
"""
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from .config import Settings
from .datum import resolve_datum_offset
from .errors import UpstreamFailure
from .events import CalendarEvent, events_from_extremes, events_from_raw_extremes
from .extrema import DEFAULT_PADDING_HOURS, DEFAULT_SAMPLE_INTERVAL_SECONDS, find_extremes
from .harmonic_model import HarmonicModel, to_utc
from .stations import Station, get_station

logger = logging.getLogger(__name__)

STORMGLASS_URL = "https://api.stormglass.io/v2/tide/extremes/point"

# Maximum response size from external APIs (1 MB)
MAX_RESPONSE_SIZE = 1 * 1024 * 1024


def safe_read_response(response, max_size: int = MAX_RESPONSE_SIZE) -> bytes:
    """
    Read an HTTP response with a size limit.

    Raises:
        ValueError: If the response exceeds max_size
    """
    content_length = response.headers.get('Content-Length')
    if content_length and int(content_length) > max_size:
        raise ValueError(f"Response too large: {content_length} bytes (max: {max_size})")

    # One extra byte detects overflow
    data = response.read(max_size + 1)
    if len(data) > max_size:
        raise ValueError(f"Response exceeded size limit of {max_size} bytes")
    return data


class EventProvider(ABC):
    """Something that produces calendar events for the coming days."""

    name = ''

    def __init__(self, station: Station):
        self.station = station

    @property
    def time_zone_id(self) -> Optional[str]:
        return self.station.time_zone_id

    @abstractmethod
    def get_events(
        self,
        days: int,
        offset_days: int = 0,
        now: Optional[datetime] = None,
    ) -> List[CalendarEvent]:
        """Events for `days` days, starting `offset_days` after today."""


class HarmonicTideProvider(EventProvider):
    """Tide events computed from the station's harmonic constituents."""

    name = 'harmonic'

    def __init__(
        self,
        station: Station,
        sample_interval_seconds: float = DEFAULT_SAMPLE_INTERVAL_SECONDS,
        padding_hours: float = DEFAULT_PADDING_HOURS,
        datum_offset: float = 0.0,
        interpolate: bool = False,
    ):
        super().__init__(station)
        self.model = HarmonicModel(station.series)
        self.sample_interval_seconds = sample_interval_seconds
        self.padding_hours = padding_hours
        self.datum_offset = datum_offset
        self.interpolate = interpolate

    def _window(self, days: int, offset_days: int, now: datetime):
        """Local midnight of today + offset_days, through `days` local days."""
        tz = ZoneInfo(self.time_zone_id or 'UTC')
        day = to_utc(now).astimezone(tz).date() + timedelta(days=offset_days)
        start = datetime(day.year, day.month, day.day, tzinfo=tz)
        end = start + timedelta(days=days)
        return to_utc(start), to_utc(end)

    def get_events(
        self,
        days: int,
        offset_days: int = 0,
        now: Optional[datetime] = None,
    ) -> List[CalendarEvent]:
        now = now or datetime.now(timezone.utc)
        start, end = self._window(days, offset_days, now)
        extremes = find_extremes(
            self.model,
            start,
            end,
            sample_interval_seconds=self.sample_interval_seconds,
            padding_hours=self.padding_hours,
            interpolate=self.interpolate,
        )
        logger.debug(f"Computed {len(extremes)} extremes for {self.station.name} "
                     f"from {start.isoformat()} to {end.isoformat()}")
        return events_from_extremes(
            extremes,
            location=self.station.name,
            time_zone_id=self.time_zone_id,
            datum_offset=self.datum_offset,
        )


class StormGlassProvider(EventProvider):
    """Tide events from the Storm Glass extremes endpoint."""

    name = 'stormglass'

    def __init__(
        self,
        station: Station,
        api_key: str,
        datum_offset: float = 0.0,
        timeout: int = 10,
    ):
        super().__init__(station)
        self.api_key = api_key
        self.datum_offset = datum_offset
        self.timeout = timeout

    def _fetch(self, start: datetime, end: datetime) -> List[Dict]:
        if not self.api_key:
            raise UpstreamFailure("STORMGLASS_API_KEY is required for the stormglass provider")

        query = urllib.parse.urlencode({
            'lat': self.station.latitude,
            'lng': self.station.longitude,
            'start': start.isoformat(),
            'end': end.isoformat(),
        })
        req = urllib.request.Request(
            f"{STORMGLASS_URL}?{query}",
            headers={'Authorization': self.api_key},
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                data = json.loads(safe_read_response(response).decode())
        except urllib.error.HTTPError as e:
            body = e.read().decode(errors='replace') if e.fp is not None else ''
            logger.warning(f"Storm Glass request failed: {e.code}")
            raise UpstreamFailure(f"Storm Glass request failed: {e.code} {body}".strip()) from e
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.warning(f"Storm Glass fetch failed: {e}")
            raise UpstreamFailure(f"Storm Glass fetch failed: {e}") from e

        if not isinstance(data, dict):
            raise UpstreamFailure("Storm Glass response is not a JSON object")
        records = data.get('data')
        if records is None:
            records = data.get('extremes', [])
        return records

    def get_events(
        self,
        days: int,
        offset_days: int = 0,
        now: Optional[datetime] = None,
    ) -> List[CalendarEvent]:
        start = to_utc(now or datetime.now(timezone.utc)) + timedelta(days=offset_days)
        end = start + timedelta(days=days)
        records = self._fetch(start, end)
        return events_from_raw_extremes(
            records,
            location=self.station.name,
            time_zone_id=self.time_zone_id,
            datum_offset=self.datum_offset,
        )


PROVIDERS = {
    HarmonicTideProvider.name: HarmonicTideProvider,
    StormGlassProvider.name: StormGlassProvider,
}


def load_provider(settings: Settings) -> EventProvider:
    """
    Build the provider named in settings.

    Raises:
        ValueError: If the provider or station is unknown
        InvalidModel: If the station's constituent table is unusable
    """
    if settings.provider not in PROVIDERS:
        raise ValueError(f"Unknown provider '{settings.provider}' (known: {', '.join(sorted(PROVIDERS))})")

    station = get_station(settings.station, settings.constituents_file)

    if settings.provider == StormGlassProvider.name:
        return StormGlassProvider(
            station,
            api_key=settings.stormglass_api_key,
            datum_offset=settings.stormglass_datum_offset,
            timeout=settings.api_timeout_seconds,
        )

    model = HarmonicModel(station.series)
    return HarmonicTideProvider(
        station,
        sample_interval_seconds=settings.sample_interval_seconds,
        padding_hours=settings.padding_hours,
        datum_offset=resolve_datum_offset(model, settings.datum),
        interpolate=settings.interpolate,
    )
