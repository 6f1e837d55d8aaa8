from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple


class Timeframe(str, Enum):
    M15 = "15m"
    H1 = "1h"
    H4 = "4h"
    D1 = "1d"

    @property
    def minutes(self) -> int:
        return _TF_MINUTES[self]

    @property
    def label(self) -> str:
        return _TF_LABELS[self]

    @classmethod
    def ordered(cls) -> List["Timeframe"]:
        """Finest -> coarsest."""
        return sorted(cls, key=lambda tf: tf.minutes)

    @classmethod
    def finest(cls) -> "Timeframe":
        return cls.ordered()[0]

    @classmethod
    def parse(cls, value) -> "Timeframe":
        if isinstance(value, cls):
            return value
        code = str(value or "").strip().lower()
        for tf in cls:
            if tf.value == code:
                return tf
        raise ValueError(f"Unsupported timeframe: {value!r}")


_TF_MINUTES = {
    Timeframe.M15: 15,
    Timeframe.H1: 60,
    Timeframe.H4: 240,
    Timeframe.D1: 1440,
}

_TF_LABELS = {
    Timeframe.M15: "15m",
    Timeframe.H1: "1H",
    Timeframe.H4: "4H",
    Timeframe.D1: "1D",
}


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    INDETERMINATE = "indeterminate"

    @classmethod
    def coerce(cls, value) -> "TrendDirection":
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.UP if value else cls.DOWN
        if isinstance(value, str):
            v = value.strip().lower()
            if v == "up":
                return cls.UP
            if v == "down":
                return cls.DOWN
        return cls.INDETERMINATE


@dataclass(frozen=True)
class SuperTrend:
    value: float
    direction: TrendDirection

    @property
    def is_uptrend(self) -> bool:
        return self.direction is TrendDirection.UP


@dataclass(frozen=True)
class Candle:
    timestamp: datetime  # naive wall clock
    open: float
    high: float
    low: float
    close: float
    volume: Optional[float] = None
    supertrend: Optional[SuperTrend] = None

    def with_supertrend(self, st: Optional[SuperTrend]) -> "Candle":
        return dataclasses.replace(self, supertrend=st)


class TimeframeSeries(Mapping):
    """Read-only per-timeframe candle container, built once per replay.

    Every series is sorted ascending by timestamp (stable sort). If a series
    holds duplicate timestamps the candle that appears last in the input wins.
    The input sequences are copied, never mutated; ``None`` series are skipped.
    """

    def __init__(self, data: Optional[Mapping] = None):
        series: Dict[Timeframe, Tuple[Candle, ...]] = {}
        stamps: Dict[Timeframe, Tuple[datetime, ...]] = {}
        for key, candles in (data or {}).items():
            if candles is None:
                continue
            tf = Timeframe.parse(key)
            ordered = _sort_dedupe(candles)
            series[tf] = ordered
            stamps[tf] = tuple(c.timestamp for c in ordered)
        self._series = series
        self._stamps = stamps

    @classmethod
    def of(cls, data) -> "TimeframeSeries":
        return data if isinstance(data, cls) else cls(data)

    def __getitem__(self, key) -> Tuple[Candle, ...]:
        try:
            tf = Timeframe.parse(key)
        except ValueError:
            raise KeyError(key) from None
        return self._series[tf]

    def __iter__(self) -> Iterator[Timeframe]:
        return iter(tf for tf in Timeframe.ordered() if tf in self._series)

    def __len__(self) -> int:
        return len(self._series)

    def __contains__(self, key) -> bool:
        try:
            return Timeframe.parse(key) in self._series
        except ValueError:
            return False

    def timestamps(self, tf: Timeframe) -> Tuple[datetime, ...]:
        return self._stamps[Timeframe.parse(tf)]

    def counts(self) -> Dict[str, int]:
        return {tf.value: len(self._series[tf]) for tf in self}

    def __repr__(self) -> str:
        return f"TimeframeSeries({self.counts()})"


def _sort_dedupe(candles: Iterable[Candle]) -> Tuple[Candle, ...]:
    latest: Dict[datetime, Candle] = {}
    for c in candles:
        latest[c.timestamp] = c
    return tuple(sorted(latest.values(), key=lambda c: c.timestamp))


class SignalCombination(str, Enum):
    STRONG_BULLISH = "strong_bullish"
    PULLBACK_IN_BULL = "pullback_in_bull"
    SHORT_TERM_BOUNCE = "short_term_bounce"
    HOURLY_STRONG_BUT_DIVERGENT = "hourly_strong_but_divergent"
    POTENTIAL_BOTTOM_REVERSAL = "potential_bottom_reversal"
    POTENTIAL_REVERSAL_ATTEMPT = "potential_reversal_attempt"
    STRONG_BEARISH = "strong_bearish"
    SHORT_TERM_REBOUND = "short_term_rebound"
    PULLBACK_CONFIRMATION = "pullback_confirmation"
    MIXED_SIGNALS = "mixed_signals"

    @property
    def emoji(self) -> str:
        return _COMBINATION_TEXT[self][0]

    @property
    def description(self) -> str:
        return _COMBINATION_TEXT[self][1]

    @property
    def strategy(self) -> str:
        return _COMBINATION_TEXT[self][2]


# (emoji, description, strategy)
_COMBINATION_TEXT = {
    SignalCombination.STRONG_BULLISH: (
        "🚀", "All timeframes trending up", "Hold longs, buy pullbacks"),
    SignalCombination.PULLBACK_IN_BULL: (
        "📈", "Higher timeframes up, short term pulling back", "Wait for the 15m trend to turn up before adding"),
    SignalCombination.SHORT_TERM_BOUNCE: (
        "↗️", "Short-term bounce against the broader trend", "Small size, quick targets"),
    SignalCombination.HOURLY_STRONG_BUT_DIVERGENT: (
        "⚡", "Hourly strength diverging from the daily trend", "Trade the hourly move, respect the daily level"),
    SignalCombination.POTENTIAL_BOTTOM_REVERSAL: (
        "🔄", "Lower timeframes turning up under a bearish daily", "Watch for confirmation on the 4H"),
    SignalCombination.POTENTIAL_REVERSAL_ATTEMPT: (
        "🌱", "Early reversal attempt from the short term", "Starter size only, stop below the recent low"),
    SignalCombination.STRONG_BEARISH: (
        "📉", "All timeframes trending down", "Hold shorts, sell rallies"),
    SignalCombination.SHORT_TERM_REBOUND: (
        "↘️", "Short-term rebound inside a downtrend", "Look to short into strength"),
    SignalCombination.PULLBACK_CONFIRMATION: (
        "⏸️", "Pullback confirmed, trend continuation unclear", "Stand aside until timeframes realign"),
    SignalCombination.MIXED_SIGNALS: (
        "❓", "Timeframes disagree, no consensus", "Stay flat"),
}


@dataclass(frozen=True)
class SignalLevel:
    icon: str
    name: str


@dataclass(frozen=True)
class AnalysisResult:
    symbol: str
    trends: Mapping
    combination: SignalCombination
    level: SignalLevel
    analysis_time: Optional[datetime] = None

    def trend(self, tf: Timeframe) -> TrendDirection:
        return TrendDirection.coerce(self.trends.get(tf) if self.trends else None)


@dataclass(frozen=True)
class Notification:
    symbol: str
    trigger_time: datetime
    previous: Optional[SignalCombination]
    combination: SignalCombination
    change: str
    trends: Tuple[Tuple[Timeframe, TrendDirection], ...]
    level: SignalLevel
    text: str


def latest(candles: Sequence[Candle]) -> Optional[Candle]:
    return candles[-1] if candles else None
