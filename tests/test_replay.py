from datetime import datetime, timedelta

import pytest

from supertrend_sentinel.errors import ClassifierError, ConfigError, InsufficientData
from supertrend_sentinel.models import (
    AnalysisResult,
    Candle,
    SignalCombination as SC,
    SignalLevel,
    Timeframe,
    TrendDirection,
)
from supertrend_sentinel.replay import ReplayEngine, replay


T0 = datetime(2025, 6, 1)
LEVEL = SignalLevel(icon="🟢", name="Strong")


def _tf_candles(tf: Timeframe, n: int):
    step = timedelta(minutes=tf.minutes)
    return [
        Candle(timestamp=T0 + step * i, open=100.0, high=101.0, low=99.0, close=100.0 + i * 0.1)
        for i in range(n)
    ]


def _series(n15: int = 200):
    return {
        Timeframe.M15: _tf_candles(Timeframe.M15, n15),
        Timeframe.H1: _tf_candles(Timeframe.H1, n15 // 4 + 1),
        Timeframe.H4: _tf_candles(Timeframe.H4, n15 // 16 + 1),
        Timeframe.D1: _tf_candles(Timeframe.D1, 10),
    }


def _idx(ts: datetime) -> int:
    return int((ts - T0) / timedelta(minutes=15))


class Scripted:
    """Returns pick(master_index); raises on fail_at."""

    def __init__(self, pick, fail_at=()):
        self.pick = pick
        self.fail_at = set(fail_at)
        self.calls = []
        self.slices = []

    def classify(self, symbol, slices):
        ts = slices[Timeframe.M15][-1].timestamp
        i = _idx(ts)
        self.calls.append(i)
        self.slices.append((ts, slices))
        if i in self.fail_at:
            raise ClassifierError(f"boom at {i}")
        trends = {tf: TrendDirection.UP for tf in Timeframe}
        return AnalysisResult(symbol=symbol, trends=trends, combination=self.pick(i), level=LEVEL, analysis_time=ts)


def test_start_index_and_stride_for_200_candles():
    clf = Scripted(lambda i: SC.MIXED_SIGNALS)
    outcome = ReplayEngine(clf).run("BTCUSDT", _series(200))
    assert outcome.start_index == 100
    assert outcome.sampled_indices == [100, 120, 140, 160, 180]
    assert clf.calls == [100, 120, 140, 160, 180]


def test_start_index_caps_at_warmup_for_long_series():
    eng = ReplayEngine(Scripted(lambda i: SC.MIXED_SIGNALS))
    assert eng.start_index(500) == 100
    assert eng.start_index(120) == 70
    assert eng.sample_indices(500)[-1] == 480


def test_every_slice_is_causal():
    clf = Scripted(lambda i: SC.MIXED_SIGNALS)
    ReplayEngine(clf, stride=7).run("BTCUSDT", _series(200))
    assert clf.slices
    for target, slices in clf.slices:
        assert set(slices) == set(Timeframe)
        for tf, candles in slices.items():
            assert all(c.timestamp <= target for c in candles)
            expected = [c for c in _tf_candles(tf, 1000) if c.timestamp <= target]
            # every available candle up to the target is present
            assert len(candles) == min(len(expected), len(_series(200)[tf]))


def test_replay_is_deterministic():
    def pick(i):
        return SC.STRONG_BULLISH if (i // 40) % 2 == 0 else SC.STRONG_BEARISH

    a = replay("BTCUSDT", _series(300), Scripted(pick))
    b = replay("BTCUSDT", _series(300), Scripted(pick))
    assert a
    assert a == b


def test_neutral_first_observation_is_suppressed():
    out = replay("BTCUSDT", _series(200), Scripted(lambda i: SC.MIXED_SIGNALS))
    assert out == []


def test_first_non_neutral_observation_notifies():
    out = replay("BTCUSDT", _series(200), Scripted(lambda i: SC.PULLBACK_CONFIRMATION))
    assert len(out) == 1
    assert out[0].trigger_time == T0 + timedelta(minutes=15 * 100)
    assert out[0].previous is None
    assert out[0].change == "first signal: neutral"


def test_single_transition_at_first_changed_index():
    out = replay("BTCUSDT", _series(200), Scripted(lambda i: SC.MIXED_SIGNALS if i < 140 else SC.STRONG_BEARISH))
    assert len(out) == 1
    n = out[0]
    assert n.trigger_time == T0 + timedelta(minutes=15 * 140)
    assert n.previous == SC.MIXED_SIGNALS
    assert n.combination == SC.STRONG_BEARISH
    assert n.change == "direction reversal: neutral → bearish"


def test_repeated_combination_does_not_renotify():
    out = replay("BTCUSDT", _series(200), Scripted(lambda i: SC.STRONG_BULLISH if i < 140 else SC.PULLBACK_IN_BULL))
    assert [n.change for n in out] == [
        "first signal: bullish",
        "signal adjustment: strong bullish → pullback bullish",
    ]
    assert [n.trigger_time for n in out] == [T0 + timedelta(minutes=15 * 100), T0 + timedelta(minutes=15 * 140)]


def test_failed_step_is_skipped_and_state_carried_over():
    script = {100: SC.STRONG_BULLISH, 120: SC.STRONG_BULLISH, 160: SC.STRONG_BULLISH, 180: SC.PULLBACK_IN_BULL}
    clf = Scripted(lambda i: script[i], fail_at={140})
    outcome = ReplayEngine(clf).run("BTCUSDT", _series(200))

    assert outcome.sampled_indices == [100, 120, 140, 160, 180]
    assert outcome.failed_indices == [140]
    assert len(outcome.results) == 4
    # 160 sees the state from 120, so no notification there
    assert [n.trigger_time for n in outcome.notifications] == [
        T0 + timedelta(minutes=15 * 100),
        T0 + timedelta(minutes=15 * 180),
    ]
    assert outcome.notifications[1].previous == SC.STRONG_BULLISH


def test_failure_between_different_combinations_still_reports_change():
    script = {100: SC.MIXED_SIGNALS, 120: SC.STRONG_BULLISH, 160: SC.STRONG_BEARISH, 180: SC.STRONG_BEARISH}
    outcome = ReplayEngine(Scripted(lambda i: script[i], fail_at={140})).run("BTCUSDT", _series(200))
    assert [n.change for n in outcome.notifications] == [
        "direction reversal: neutral → bullish",
        "direction reversal: bullish → bearish",
    ]


def test_classifier_returning_wrong_type_is_a_step_failure():
    class Bad:
        def classify(self, symbol, slices):
            return "strong_bullish"

    outcome = ReplayEngine(Bad()).run("BTCUSDT", _series(200))
    assert outcome.failed_indices == outcome.sampled_indices
    assert outcome.notifications == []


class BrokenFieldsAt(Scripted):
    """Returns an AnalysisResult with one unusable field at the given indices."""

    def __init__(self, pick, broken_at, **fields):
        super().__init__(pick)
        self.broken_at = set(broken_at)
        self.fields = fields

    def classify(self, symbol, slices):
        result = super().classify(symbol, slices)
        if _idx(result.analysis_time) not in self.broken_at:
            return result
        return AnalysisResult(
            symbol=symbol,
            trends=result.trends,
            combination=self.fields.get("combination", result.combination),
            level=self.fields.get("level", result.level),
            analysis_time=result.analysis_time,
        )


def test_result_with_missing_level_is_skipped_and_run_continues():
    pick = lambda i: SC.STRONG_BEARISH if i >= 140 else SC.STRONG_BULLISH
    clf = BrokenFieldsAt(pick, broken_at={140}, level=None)
    outcome = ReplayEngine(clf).run("BTCUSDT", _series(200))

    assert outcome.failed_indices == [140]
    assert outcome.sampled_indices == [100, 120, 140, 160, 180]
    assert [_idx(r.analysis_time) for r in outcome.results] == [100, 120, 160, 180]
    # The bad step never became the carried combination.
    assert [(n.previous, n.combination) for n in outcome.notifications] == [
        (None, SC.STRONG_BULLISH),
        (SC.STRONG_BULLISH, SC.STRONG_BEARISH),
    ]
    assert _idx(outcome.notifications[1].trigger_time) == 160


def test_result_with_plain_string_combination_is_a_step_failure():
    clf = BrokenFieldsAt(lambda i: SC.STRONG_BULLISH, broken_at={100, 120}, combination="strong_bearish")
    outcome = ReplayEngine(clf).run("BTCUSDT", _series(200))

    assert outcome.failed_indices == [100, 120]
    assert len(outcome.notifications) == 1
    assert outcome.notifications[0].previous is None
    assert _idx(outcome.notifications[0].trigger_time) == 140


@pytest.mark.parametrize("data", [
    {},
    {Timeframe.H1: _tf_candles(Timeframe.H1, 100)},
    {Timeframe.M15: [], Timeframe.H1: _tf_candles(Timeframe.H1, 100)},
    {Timeframe.M15: None},
])
def test_missing_or_empty_master_raises_insufficient_data(data):
    clf = Scripted(lambda i: SC.STRONG_BULLISH)
    with pytest.raises(InsufficientData):
        ReplayEngine(clf).run("BTCUSDT", data)
    assert clf.calls == []


def test_short_master_is_clamped_to_zero_by_default():
    clf = Scripted(lambda i: SC.MIXED_SIGNALS)
    outcome = ReplayEngine(clf).run("BTCUSDT", _series(30))
    assert outcome.start_index == 0
    assert outcome.sampled_indices == [0, 20]


def test_short_master_fails_under_fail_policy():
    clf = Scripted(lambda i: SC.STRONG_BULLISH)
    with pytest.raises(InsufficientData):
        ReplayEngine(clf, short_series="fail").run("BTCUSDT", _series(30))
    assert clf.calls == []


def test_cancellation_between_steps_keeps_partial_output():
    checks = []

    def should_stop():
        checks.append(1)
        return len(checks) > 2

    clf = Scripted(lambda i: SC.STRONG_BULLISH if i < 120 else SC.STRONG_BEARISH)
    outcome = ReplayEngine(clf).run("BTCUSDT", _series(200), should_stop=should_stop)
    assert outcome.cancelled
    assert outcome.sampled_indices == [100, 120]
    assert [n.combination for n in outcome.notifications] == [SC.STRONG_BULLISH, SC.STRONG_BEARISH]


def test_input_lists_are_not_mutated():
    data = _series(200)
    shuffled = list(reversed(data[Timeframe.M15]))
    data[Timeframe.M15] = shuffled
    before = list(shuffled)
    outcome = ReplayEngine(Scripted(lambda i: SC.MIXED_SIGNALS)).run("BTCUSDT", data)
    assert outcome.sampled_indices == [100, 120, 140, 160, 180]
    assert shuffled == before


def test_custom_stride():
    outcome = ReplayEngine(Scripted(lambda i: SC.MIXED_SIGNALS), stride=50).run("BTCUSDT", _series(200))
    assert outcome.sampled_indices == [100, 150]


@pytest.mark.parametrize("kwargs", [
    {"stride": 0},
    {"warmup_index": -1},
    {"tail_reserve": -5},
    {"short_series": "wrap"},
])
def test_invalid_engine_parameters(kwargs):
    with pytest.raises(ConfigError):
        ReplayEngine(Scripted(lambda i: SC.MIXED_SIGNALS), **kwargs)
