from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Optional

from .classifier import Classifier
from .errors import ConfigError, InsufficientData, StepFailure
from .formatters import build_notification
from .models import AnalysisResult, Notification, SignalCombination, SignalLevel, Timeframe, TimeframeSeries
from .slicer import causal_slice
from .timeutil import fmt_short
from .transitions import TransitionDetector, changed

log = logging.getLogger("replay")

SHORT_SERIES_POLICIES = ("clamp", "fail")


@dataclass
class ReplayOutcome:
    symbol: str
    start_index: int
    notifications: List[Notification] = field(default_factory=list)
    results: List[AnalysisResult] = field(default_factory=list)
    sampled_indices: List[int] = field(default_factory=list)
    failed_indices: List[int] = field(default_factory=list)
    cancelled: bool = False


class ReplayEngine:
    """Walks the 15m series forward and reports classification changes.

    Each sampled step sees only candles at or before the sampled 15m timestamp on
    every timeframe. A failing step is logged and skipped; the run carries on with
    the previous combination untouched.
    """

    def __init__(
        self,
        classifier: Classifier,
        *,
        stride: int = 20,
        warmup_index: int = 100,
        tail_reserve: int = 50,
        short_series: str = "clamp",
    ):
        if int(stride) < 1:
            raise ConfigError(f"stride must be >= 1, got {stride}")
        if int(warmup_index) < 0 or int(tail_reserve) < 0:
            raise ConfigError("warmup_index and tail_reserve must be >= 0")
        if short_series not in SHORT_SERIES_POLICIES:
            raise ConfigError(f"short_series must be one of {SHORT_SERIES_POLICIES}, got {short_series!r}")
        self.classifier = classifier
        self.stride = int(stride)
        self.warmup_index = int(warmup_index)
        self.tail_reserve = int(tail_reserve)
        self.short_series = short_series

    def start_index(self, master_len: int) -> int:
        idx = min(self.warmup_index, master_len - self.tail_reserve)
        if idx >= 0:
            return idx
        if self.short_series == "fail":
            raise InsufficientData(
                f"master series has {master_len} candles, need at least {self.tail_reserve}"
            )
        log.info("replay_start_clamped master_len=%d tail_reserve=%d", master_len, self.tail_reserve)
        return 0

    def sample_indices(self, master_len: int) -> List[int]:
        return list(range(self.start_index(master_len), master_len, self.stride))

    def run(
        self,
        symbol: str,
        series_by_timeframe: Mapping,
        *,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> ReplayOutcome:
        series = TimeframeSeries.of(series_by_timeframe)
        master_tf = Timeframe.finest()
        master = series.get(master_tf)
        if not master:
            raise InsufficientData(f"{symbol}: no {master_tf.value} candles to drive the replay")

        indices = self.sample_indices(len(master))
        outcome = ReplayOutcome(symbol=symbol, start_index=indices[0] if indices else len(master))
        detector = TransitionDetector()
        log.info(
            "replay_start symbol=%s master=%d start=%d stride=%d steps=%d",
            symbol, len(master), outcome.start_index, self.stride, len(indices),
        )

        for i in indices:
            if should_stop is not None and should_stop():
                outcome.cancelled = True
                log.info("replay_cancelled symbol=%s at_idx=%d notifications=%d", symbol, i, len(outcome.notifications))
                break

            ts = master[i].timestamp
            outcome.sampled_indices.append(i)
            prev = detector.previous
            try:
                result = self._step(symbol, series, i, ts)
                note = self._notification(symbol, i, ts, result, prev)
            except StepFailure as e:
                outcome.failed_indices.append(i)
                log.warning("replay_step_failed symbol=%s idx=%d ts=%s err=%s", symbol, i, ts, e.reason)
                continue

            # Only a fully rendered step moves the carried state.
            outcome.results.append(result)
            detector.observe(result.combination)
            if note is None:
                continue

            outcome.notifications.append(note)
            log.info("signal_change symbol=%s %s - %s", symbol, fmt_short(ts), note.change)

        log.info(
            "replay_done symbol=%s sampled=%d failed=%d notifications=%d",
            symbol, len(outcome.sampled_indices), len(outcome.failed_indices), len(outcome.notifications),
        )
        return outcome

    def replay(
        self,
        symbol: str,
        series_by_timeframe: Mapping,
        *,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> List[Notification]:
        return self.run(symbol, series_by_timeframe, should_stop=should_stop).notifications

    def _step(self, symbol: str, series: TimeframeSeries, i: int, ts) -> AnalysisResult:
        try:
            slices = causal_slice(series, ts)
            result = self.classifier.classify(symbol, slices)
        except Exception as e:
            raise StepFailure(i, ts, f"{type(e).__name__}: {e}") from e
        if not isinstance(result, AnalysisResult):
            raise StepFailure(i, ts, f"classifier returned {type(result).__name__}, expected AnalysisResult")
        if not isinstance(result.combination, SignalCombination):
            raise StepFailure(i, ts, f"combination {result.combination!r} is not a SignalCombination")
        if not isinstance(result.level, SignalLevel):
            raise StepFailure(i, ts, f"level {result.level!r} is not a SignalLevel")
        return result

    def _notification(self, symbol: str, i: int, ts, result: AnalysisResult, prev) -> Optional[Notification]:
        if not changed(prev, result.combination):
            return None
        try:
            return build_notification(symbol, ts, result, prev)
        except Exception as e:
            raise StepFailure(i, ts, f"notification rendering failed: {type(e).__name__}: {e}") from e


def replay(symbol: str, series_by_timeframe: Mapping, classifier: Classifier, **kwargs) -> List[Notification]:
    should_stop = kwargs.pop("should_stop", None)
    return ReplayEngine(classifier, **kwargs).replay(symbol, series_by_timeframe, should_stop=should_stop)
