"""
Tidal datum resolution.

Constituent tables are referred to the level their mean_level_offset is
measured from (chart datum for the built-in tables). A datum choice is
turned into one numeric offset here, which providers then add to every
reported height.
"""
from collections import defaultdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

import numpy as np

from .extrema import TideKind, find_extremes
from .harmonic_model import HarmonicModel, to_utc


class TidalDatum(str, Enum):
    """
    Supported tidal datum reference levels.

    - CHART: Heights exactly as modelled (chart datum for the built-in tables).
      This is the default.
    - MSL (Mean Sea Level): Removes the series' mean level offset.
    - MLLW (Mean Lower Low Water): Average of the lower of each day's low tides.
    - LAT (Lowest Astronomical Tide): The lowest low tide in the sample period.
    """
    CHART = "chart"
    MSL = "msl"
    MLLW = "mllw"
    LAT = "lat"


def resolve_datum_offset(
    model: HarmonicModel,
    datum: TidalDatum,
    start: Optional[datetime] = None,
    days: int = 30,
    sample_interval_seconds: float = 300,
) -> float:
    """
    Calculate the offset that converts modelled heights to the target datum.

    Args:
        model: Model whose heights are being converted
        datum: Target datum
        start: Start of the analysis period (defaults to model epoch)
        days: Number of days to analyze for MLLW/LAT
        sample_interval_seconds: Sampling used to find the lows

    Returns:
        Offset in height units, to be added to modelled heights
    """
    if datum == TidalDatum.CHART:
        return 0.0
    if datum == TidalDatum.MSL:
        return -model.series.mean_level_offset

    begin = to_utc(start) if start is not None else model.epoch
    lows = [
        e for e in find_extremes(model, begin, begin + timedelta(days=days), sample_interval_seconds)
        if e.kind == TideKind.LOW
    ]
    if not lows:
        return 0.0

    if datum == TidalDatum.MLLW:
        daily_lows = defaultdict(list)
        for e in lows:
            daily_lows[e.instant.date()].append(e.level)
        lower_lows = [min(levels) for levels in daily_lows.values()]
        return -float(np.mean(lower_lows))

    # LAT
    return -min(e.level for e in lows)
