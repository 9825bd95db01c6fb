"""
Tide stations and their constituent tables.

Each station couples a display name, coordinates and IANA zone with a
HarmonicSeries. Tables are configuration data: the built-in ones live here,
and others can be loaded from a JSON file of the form

    {"mean_level": 6.01, "epoch": "2000-01-01T12:00:00Z",
     "constituents": [{"name": "M2", "amplitude": 3.19, "phase": 179.2, "speed": 28.98}, ...]}
"""
import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from timezonefinder import TimezoneFinder

from .errors import InvalidModel
from .harmonic_model import HarmonicSeries, build_series

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Station:
    key: str
    name: str
    latitude: float
    longitude: float
    time_zone_id: Optional[str]
    series: HarmonicSeries


# St Helier, Jersey: HRET14-derived constants tuned against local observations,
# referred to chart datum (metres).
JERSEY_SERIES = build_series(
    [
        {'name': 'M2', 'amplitude': 3.1973, 'phase': 179.2, 'speed': 28.9841042},
        {'name': 'S2', 'amplitude': 1.3061, 'phase': 244.51, 'speed': 30.0},
        {'name': 'N2', 'amplitude': 0.6188, 'phase': 248.4, 'speed': 28.4397295},
        {'name': 'K1', 'amplitude': 0.0936, 'phase': 163.75, 'speed': 15.0410686},
        {'name': 'O1', 'amplitude': 0.0889, 'phase': 119.22, 'speed': 13.9430356},
        {'name': 'P1', 'amplitude': 0.0292, 'phase': 144.36, 'speed': 14.9589314},
        {'name': 'K2', 'amplitude': 0.4327, 'phase': 116.74, 'speed': 30.0821373},
        {'name': 'Q1', 'amplitude': 0.0278, 'phase': 201.95, 'speed': 13.3986609},
        {'name': 'M4', 'amplitude': 0.1932, 'phase': 32.18, 'speed': 57.9682084},
        {'name': 'MS4', 'amplitude': 0.101, 'phase': 85.12, 'speed': 58.9841042},
    ],
    mean_level_offset=6.01437,
)

STATIONS: Dict[str, Station] = {
    'jersey': Station(
        key='jersey',
        name='St Helier, Jersey',
        latitude=49.1844,
        longitude=-2.1090,
        time_zone_id='Europe/Jersey',
        series=JERSEY_SERIES,
    ),
}

_tz_finder = None


def resolve_timezone(lat: float, lon: float, timezone_str: Optional[str] = None) -> str:
    """
    IANA zone id for coordinates, with auto-detection if not specified.

    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees
        timezone_str: Optional timezone string (e.g., 'Europe/Jersey')

    Returns:
        A zone id that ZoneInfo accepts; 'UTC' when nothing better is known
    """
    global _tz_finder
    if timezone_str is None:
        if _tz_finder is None:
            _tz_finder = TimezoneFinder()
        timezone_str = _tz_finder.timezone_at(lat=lat, lng=lon)
        if timezone_str is None:
            timezone_str = 'UTC'
    try:
        ZoneInfo(timezone_str)
        return timezone_str
    except (ValueError, ZoneInfoNotFoundError):
        logger.warning(f"Unknown timezone '{timezone_str}', using UTC")
        return 'UTC'


def load_series_file(path: str) -> HarmonicSeries:
    """
    Load a constituent table from a JSON file.

    Raises:
        InvalidModel: If the file is not a usable table
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidModel(f"Cannot read constituent file {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get('constituents'), list):
        raise InvalidModel(f"Constituent file {path} has no 'constituents' list")

    epoch = data.get('epoch')
    if epoch is not None:
        try:
            epoch = datetime.fromisoformat(str(epoch).replace('Z', '+00:00'))
        except ValueError as e:
            raise InvalidModel(f"Invalid epoch {epoch!r} in {path}") from e

    return build_series(data['constituents'], data.get('mean_level', 0.0), epoch)


def get_station(key: str, constituents_file: Optional[str] = None) -> Station:
    """
    Look up a station, optionally swapping in a constituent table from a file.

    Raises:
        ValueError: If the station key is unknown
    """
    try:
        station = STATIONS[key.lower()]
    except KeyError:
        raise ValueError(f"Unknown station '{key}' (known: {', '.join(sorted(STATIONS))})")

    if constituents_file:
        station = replace(station, series=load_series_file(constituents_file))
    return replace(
        station,
        time_zone_id=resolve_timezone(station.latitude, station.longitude, station.time_zone_id),
    )
