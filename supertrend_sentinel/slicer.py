from __future__ import annotations

from bisect import bisect_right
from datetime import datetime
from typing import Dict, Mapping, Tuple

from .models import Candle, Timeframe, TimeframeSeries


def causal_slice(series_by_timeframe: Mapping, target: datetime) -> Dict[Timeframe, Tuple[Candle, ...]]:
    """Per-timeframe prefix of candles with ``timestamp <= target``.

    Plain mappings are normalized through TimeframeSeries (sorted copies), so the
    caller's lists are never touched. Timeframes missing from the input are missing
    from the output; a timeframe with nothing at or before ``target`` maps to ().
    """
    series = TimeframeSeries.of(series_by_timeframe)
    out: Dict[Timeframe, Tuple[Candle, ...]] = {}
    for tf in series:
        cut = bisect_right(series.timestamps(tf), target)
        out[tf] = series[tf][:cut]
    return out
