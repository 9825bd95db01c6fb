"""
Harmonic Tide Model - tide level from a fixed set of constituents

The level at an instant is the superposition of cosine terms:

    h(t) = Z0 + Σ A_i * cos(ω_i * t - g_i)

where:
- Z0 = mean level offset of the series (height units)
- A_i = constituent amplitude
- ω_i = constituent speed in degrees per hour
- g_i = constituent phase in degrees at the reference epoch
- t = hours elapsed since the reference epoch

No nodal corrections or equilibrium arguments are applied; the phases are
taken as already referred to the series epoch.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidModel


# J2000.0 (JD 2451545.0)
J2000_EPOCH = datetime(2000, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

# Standard constituent speeds (degrees per hour), used when a table omits them
STANDARD_SPEEDS = {
    'm2': 28.9841042,   # Principal lunar semidiurnal
    's2': 30.0,         # Principal solar semidiurnal
    'n2': 28.4397295,   # Larger lunar elliptic semidiurnal
    'k1': 15.0410686,   # Lunisolar diurnal
    'o1': 13.9430356,   # Principal lunar diurnal
    'p1': 14.9589314,   # Principal solar diurnal
    'k2': 30.0821373,   # Lunisolar semidiurnal
    'q1': 13.3986609,   # Larger lunar elliptic diurnal
    'm4': 57.9682084,   # Shallow water overtides of principal lunar
    'ms4': 58.9841042,  # Shallow water compound
    'mn4': 57.4238337,  # Shallow water compound
    '2n2': 27.8953548,  # Variational
    'mu2': 27.9682084,  # Variational
    'nu2': 28.5125831,  # Larger lunar evectional
    'l2': 29.5284789,   # Smaller lunar elliptic semidiurnal
    't2': 29.9589333,   # Larger solar elliptic
    'j1': 15.5854433,   # Smaller lunar elliptic diurnal
    'oo1': 16.1391017,  # Lunar diurnal
    'mf': 1.0980331,    # Lunisolar fortnightly
    'mm': 0.5443747,    # Lunar monthly
    'ssa': 0.0821373,   # Solar semiannual
    'sa': 0.0410686,    # Solar annual
    'm3': 43.4761563,   # Lunar terdiurnal
    'm6': 86.9523126,   # Shallow water overtides
}


def to_utc(dt: datetime) -> datetime:
    """Return dt as an aware UTC datetime; naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class Constituent:
    """One sinusoidal component of a tide signal."""
    name: str
    amplitude: float
    phase_degrees: float
    speed_degrees_per_hour: float


@dataclass(frozen=True)
class HarmonicSeries:
    """The tidal signature of one location."""
    constituents: Tuple[Constituent, ...]
    mean_level_offset: float = 0.0
    epoch: datetime = field(default=J2000_EPOCH)

    def with_offset(self, delta: float) -> 'HarmonicSeries':
        """Copy of the series with its mean level shifted by delta."""
        return HarmonicSeries(
            constituents=self.constituents,
            mean_level_offset=self.mean_level_offset + delta,
            epoch=self.epoch,
        )


def build_series(
    records: Iterable[dict],
    mean_level_offset: float = 0.0,
    epoch: Optional[datetime] = None,
) -> HarmonicSeries:
    """
    Build a HarmonicSeries from plain constituent records.

    Each record needs 'name', 'amplitude' and 'phase'. 'speed' may be
    omitted for constituents listed in STANDARD_SPEEDS.

    Raises:
        InvalidModel: If a record is incomplete or names an unknown constituent
                      without a speed
    """
    constituents = []
    for record in records:
        try:
            name = str(record['name'])
            amplitude = float(record['amplitude'])
            phase = float(record.get('phase', record.get('phase_GMT')))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidModel(f"Malformed constituent record {record!r}: {e}") from e

        speed = record.get('speed')
        if speed is None:
            speed = STANDARD_SPEEDS.get(name.lower())
            if speed is None:
                raise InvalidModel(f"No speed given for non-standard constituent '{name}'")

        constituents.append(Constituent(name, amplitude, phase, float(speed)))

    return HarmonicSeries(
        constituents=tuple(constituents),
        mean_level_offset=float(mean_level_offset),
        epoch=to_utc(epoch) if epoch is not None else J2000_EPOCH,
    )


class HarmonicModel:
    """
    Evaluates the tide level of a HarmonicSeries at any instant.

    Constituent parameters are held as numpy arrays so whole sample grids
    are evaluated in one pass.
    """

    def __init__(self, series: HarmonicSeries):
        """
        Args:
            series: Constituent table and mean level for one location

        Raises:
            InvalidModel: If the table is empty or has a non-positive
                          amplitude or speed
        """
        self._validate(series.constituents)
        self.series = series
        self.epoch = to_utc(series.epoch)
        self._amplitudes = np.array([c.amplitude for c in series.constituents], dtype=np.float64)
        self._phases = np.array([c.phase_degrees for c in series.constituents], dtype=np.float64)
        self._speeds = np.array([c.speed_degrees_per_hour for c in series.constituents], dtype=np.float64)

    @staticmethod
    def _validate(constituents: Sequence[Constituent]) -> None:
        if not constituents:
            raise InvalidModel("Constituent table is empty")
        for c in constituents:
            if not c.amplitude > 0:
                raise InvalidModel(f"Constituent '{c.name}' has non-positive amplitude {c.amplitude}")
            if not c.speed_degrees_per_hour > 0:
                raise InvalidModel(
                    f"Constituent '{c.name}' has non-positive speed {c.speed_degrees_per_hour}"
                )

    def hours_since_epoch(self, instant: datetime) -> float:
        return (to_utc(instant) - self.epoch).total_seconds() / 3600.0

    def levels_at(self, hours: np.ndarray) -> np.ndarray:
        """
        Tide levels for an array of hours since the epoch (vectorized).

        Args:
            hours: 1-D array of hours since the series epoch

        Returns:
            Array of levels, same length as hours
        """
        hours = np.asarray(hours, dtype=np.float64)
        # Angles reduced to [0, 360) before trig to keep precision over decades
        args = np.mod(np.outer(hours, self._speeds) - self._phases, 360.0)
        heights = (self._amplitudes * np.cos(np.radians(args))).sum(axis=1)
        return heights + self.series.mean_level_offset

    def level_at(self, instant: datetime) -> float:
        """Tide level at a single instant."""
        hours = np.array([self.hours_since_epoch(instant)])
        return float(self.levels_at(hours)[0])
