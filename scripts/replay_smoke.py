from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta

from supertrend_sentinel.indicators import annotate_supertrend
from supertrend_sentinel.models import (
    AnalysisResult,
    Candle,
    SignalCombination,
    SignalLevel,
    Timeframe,
    TimeframeSeries,
    TrendDirection,
)
from supertrend_sentinel.replay import ReplayEngine


T0 = datetime(2025, 1, 1)


def synthetic(tf: Timeframe, n: int):
    """Sine-wave closes so the SuperTrend flips a few times."""
    step = timedelta(minutes=tf.minutes)
    out = []
    for i in range(n):
        ts = T0 + step * i
        mid = 100 + 10 * math.sin((ts - T0).total_seconds() / 86400.0)
        out.append(Candle(timestamp=ts, open=mid, high=mid + 0.5, low=mid - 0.5, close=mid, volume=1.0))
    return annotate_supertrend(out)


class AlignmentStub:
    """Smoke-test stand-in: all-up / all-down / otherwise mixed. Not a real classifier."""

    LEVEL = SignalLevel(icon="🧪", name="Smoke")

    def classify(self, symbol, slices):
        trends = {}
        for tf, candles in slices.items():
            st = candles[-1].supertrend if candles else None
            trends[tf] = st.direction if st else TrendDirection.INDETERMINATE
        values = set(trends.values())
        if values == {TrendDirection.UP}:
            combo = SignalCombination.STRONG_BULLISH
        elif values == {TrendDirection.DOWN}:
            combo = SignalCombination.STRONG_BEARISH
        else:
            combo = SignalCombination.MIXED_SIGNALS
        last = slices[Timeframe.M15][-1].timestamp
        return AnalysisResult(symbol=symbol, trends=trends, combination=combo, level=self.LEVEL, analysis_time=last)


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    series = TimeframeSeries({tf: synthetic(tf, 500) for tf in Timeframe.ordered()})
    outcome = ReplayEngine(AlignmentStub()).run("SMOKEUSDT", series)
    print(f"sampled={len(outcome.sampled_indices)} failed={len(outcome.failed_indices)} notifications={len(outcome.notifications)}")
    for n in outcome.notifications:
        print(n.text)
        print("-" * 40)


if __name__ == "__main__":
    main()
