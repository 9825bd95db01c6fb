"""
High/low tide detection by discrete sampling of a HarmonicModel.

The query window is padded on both sides so that a turning point sitting on
a window boundary still has neighbours on each side, then the level curve is
sampled at a fixed interval and local maxima/minima are read off the samples.
A smaller sample interval buys timing precision at linear cost.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Union

import numpy as np

from .errors import InvalidWindow
from .harmonic_model import HarmonicModel, HarmonicSeries, to_utc


DEFAULT_SAMPLE_INTERVAL_SECONDS = 300
DEFAULT_PADDING_HOURS = 12.0


class TideKind(str, Enum):
    """Kind of tide extreme."""
    HIGH = "high"
    LOW = "low"


@dataclass(frozen=True)
class Extreme:
    """A local maximum or minimum of the modelled tide level."""
    instant: datetime
    level: float
    kind: TideKind


def _sample_grid(
    model: HarmonicModel,
    start: datetime,
    end: datetime,
    interval_seconds: float,
):
    """Sample offsets (seconds from start) and levels from start to end inclusive."""
    span = (end - start).total_seconds()
    steps = int(span // interval_seconds)
    offsets = np.arange(steps + 1, dtype=np.float64) * interval_seconds
    hours = model.hours_since_epoch(start) + offsets / 3600.0
    return offsets, model.levels_at(hours)


def _classify(levels: np.ndarray) -> List[tuple]:
    """
    Find turning points in a sampled curve.

    A run of equal levels counts once, at its earliest sample, and only if
    the levels on both sides of the run are strictly lower (HIGH) or
    strictly higher (LOW).

    Returns:
        List of (index, TideKind) in ascending index order
    """
    found = []
    n = len(levels)
    i = 1
    while i < n - 1:
        value = levels[i]
        if value == levels[i - 1]:
            i += 1
            continue

        j = i
        while j + 1 < n and levels[j + 1] == value:
            j += 1
        if j + 1 >= n:
            break

        left, right = levels[i - 1], levels[j + 1]
        if value > left and value > right:
            found.append((i, TideKind.HIGH))
        elif value < left and value < right:
            found.append((i, TideKind.LOW))
        i = j + 1
    return found


def _refine(levels: np.ndarray, idx: int):
    """
    Parabolic interpolation through samples idx-1, idx, idx+1.

    Returns:
        (offset in samples from idx, interpolated level)
    """
    h1, h2, h3 = levels[idx - 1], levels[idx], levels[idx + 1]
    denom = h1 - 2 * h2 + h3
    if abs(denom) > 1e-12:
        return 0.5 * (h1 - h3) / denom, float(h2 - (h1 - h3) * (h1 - h3) / (8.0 * denom))
    return 0.0, float(h2)


def find_extremes(
    source: Union[HarmonicModel, HarmonicSeries],
    window_start: datetime,
    window_end: datetime,
    sample_interval_seconds: float = DEFAULT_SAMPLE_INTERVAL_SECONDS,
    padding_hours: float = DEFAULT_PADDING_HOURS,
    interpolate: bool = False,
) -> List[Extreme]:
    """
    Find high and low tides in [window_start, window_end).

    Args:
        source: HarmonicModel, or a HarmonicSeries to build one from
        window_start: Start of the window (inclusive); naive values are UTC
        window_end: End of the window (exclusive)
        sample_interval_seconds: Spacing of level samples
        padding_hours: Extra sampling on each side of the window
        interpolate: Refine instant and level between samples with a parabola

    Returns:
        Extremes in ascending time order, instants in UTC

    Raises:
        InvalidWindow: If window_end <= window_start or the interval is not positive
        InvalidModel: If the constituent table is invalid
    """
    start = to_utc(window_start)
    end = to_utc(window_end)
    if end <= start:
        raise InvalidWindow(f"Window end {end.isoformat()} is not after start {start.isoformat()}")
    if not sample_interval_seconds > 0:
        raise InvalidWindow(f"Sample interval must be positive, got {sample_interval_seconds}")
    if padding_hours < 0:
        raise InvalidWindow(f"Padding must not be negative, got {padding_hours}")

    model = source if isinstance(source, HarmonicModel) else HarmonicModel(source)

    padded_start = start - timedelta(hours=padding_hours)
    padded_end = end + timedelta(hours=padding_hours)
    offsets, levels = _sample_grid(model, padded_start, padded_end, sample_interval_seconds)

    extremes = []
    for idx, kind in _classify(levels):
        seconds = offsets[idx]
        level = float(levels[idx])
        if interpolate:
            shift, level = _refine(levels, idx)
            seconds += shift * sample_interval_seconds

        instant = padded_start + timedelta(seconds=float(seconds))
        if start <= instant < end:
            extremes.append(Extreme(instant=instant, level=level, kind=kind))

    return extremes
