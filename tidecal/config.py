"""
Runtime configuration for tidecal.

Values come from environment variables, after loading a .env file from the
working directory if one exists.
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .datum import TidalDatum


def _get_float_env(key: str, default: float) -> float:
    """Get a float value from environment variable or use default."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            pass
    return default


def _get_int_env(key: str, default: int) -> int:
    """Get an int value from environment variable or use default."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            pass
    return default


def _get_bool_env(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _get_datum_env(key: str, default: TidalDatum) -> TidalDatum:
    try:
        return TidalDatum(os.environ.get(key, default.value).strip().lower())
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    provider: str = 'harmonic'
    station: str = 'jersey'
    constituents_file: Optional[str] = None
    calendar_path: str = 'tides.ics'
    calendar_name: str = 'tides'
    days: int = 7
    sample_interval_seconds: int = 300
    padding_hours: float = 12.0
    datum: TidalDatum = TidalDatum.CHART
    interpolate: bool = False
    stormglass_api_key: str = ''
    stormglass_datum_offset: float = 0.0
    api_timeout_seconds: int = 10
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, dotenv: bool = True) -> 'Settings':
        """Build settings from the environment (and .env unless dotenv=False)."""
        if dotenv:
            load_dotenv()
        return cls(
            provider=os.environ.get('TIDECAL_PROVIDER', 'harmonic').strip().lower(),
            station=os.environ.get('TIDECAL_STATION', 'jersey'),
            constituents_file=os.environ.get('TIDECAL_CONSTITUENTS_FILE') or None,
            calendar_path=os.environ.get('TIDECAL_CALENDAR_PATH', 'tides.ics'),
            calendar_name=os.environ.get('TIDECAL_CALENDAR_NAME', 'tides'),
            days=_get_int_env('TIDECAL_DAYS', 7),
            sample_interval_seconds=_get_int_env('TIDECAL_SAMPLE_INTERVAL_SECONDS', 300),
            padding_hours=_get_float_env('TIDECAL_PADDING_HOURS', 12.0),
            datum=_get_datum_env('TIDECAL_DATUM', TidalDatum.CHART),
            interpolate=_get_bool_env('TIDECAL_INTERPOLATE', False),
            stormglass_api_key=os.environ.get('STORMGLASS_API_KEY', ''),
            stormglass_datum_offset=_get_float_env('STORMGLASS_DATUM_OFFSET', 0.0),
            api_timeout_seconds=_get_int_env('TIDECAL_API_TIMEOUT', 10),
            log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
        )
