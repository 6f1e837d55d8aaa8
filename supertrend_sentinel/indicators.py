from __future__ import annotations

from typing import List, Optional, Sequence

from .models import Candle, SuperTrend, TrendDirection


def true_range(high: float, low: float, prev_close: Optional[float]) -> float:
    if prev_close is None:
        return high - low
    return max(high - low, abs(high - prev_close), abs(low - prev_close))


def rma_series(values: Sequence[float], length: int) -> List[Optional[float]]:
    """Wilder's RMA seeded with the SMA of the first ``length`` values (Pine ta.rma)."""
    out: List[Optional[float]] = [None] * len(values)
    if length <= 0 or len(values) < length:
        return out
    prev = sum(values[:length]) / float(length)
    out[length - 1] = prev
    alpha = 1.0 / float(length)
    for i in range(length, len(values)):
        prev = prev + alpha * (values[i] - prev)
        out[i] = prev
    return out


def atr_series(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], length: int = 14) -> List[Optional[float]]:
    trs = [
        true_range(highs[i], lows[i], closes[i - 1] if i > 0 else None)
        for i in range(len(closes))
    ]
    return rma_series(trs, length)


def supertrend_series(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 10,
    multiplier: float = 3.0,
) -> List[Optional[SuperTrend]]:
    """Pine ``ta.supertrend`` parity: ratcheting bands, first defined bar starts down."""
    atr = atr_series(highs, lows, closes, period)
    out: List[Optional[SuperTrend]] = [None] * len(closes)

    prev_upper: Optional[float] = None
    prev_lower: Optional[float] = None
    prev_st: Optional[SuperTrend] = None
    for i in range(len(closes)):
        if atr[i] is None:
            continue
        hl2 = (highs[i] + lows[i]) / 2.0
        upper = hl2 + multiplier * atr[i]
        lower = hl2 - multiplier * atr[i]
        prev_close = closes[i - 1] if i > 0 else None

        if prev_lower is not None and not (lower > prev_lower or (prev_close is not None and prev_close < prev_lower)):
            lower = prev_lower
        if prev_upper is not None and not (upper < prev_upper or (prev_close is not None and prev_close > prev_upper)):
            upper = prev_upper

        if prev_st is None:
            direction = TrendDirection.DOWN
        elif prev_st.direction is TrendDirection.DOWN:
            direction = TrendDirection.UP if closes[i] > upper else TrendDirection.DOWN
        else:
            direction = TrendDirection.DOWN if closes[i] < lower else TrendDirection.UP

        st = SuperTrend(value=lower if direction is TrendDirection.UP else upper, direction=direction)
        out[i] = st
        prev_st = st
        prev_upper = upper
        prev_lower = lower
    return out


def annotate_supertrend(candles: Sequence[Candle], period: int = 10, multiplier: float = 3.0) -> List[Candle]:
    sts = supertrend_series(
        [c.high for c in candles],
        [c.low for c in candles],
        [c.close for c in candles],
        period=period,
        multiplier=multiplier,
    )
    return [c.with_supertrend(st) for c, st in zip(candles, sts)]
