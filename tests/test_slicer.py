from datetime import datetime, timedelta

from supertrend_sentinel.models import Candle, Timeframe, TimeframeSeries
from supertrend_sentinel.slicer import causal_slice


T0 = datetime(2025, 3, 10, 8, 0)


def _c(minutes: int, close: float = 1.0) -> Candle:
    return Candle(timestamp=T0 + timedelta(minutes=minutes), open=1.0, high=2.0, low=0.5, close=close)


def _data():
    return {
        Timeframe.M15: [_c(15 * i) for i in range(40)],
        Timeframe.H1: [_c(60 * i) for i in range(10)],
        Timeframe.H4: [_c(240 * i) for i in range(3)],
        Timeframe.D1: [_c(1440 * i) for i in range(2)],
    }


def test_slice_never_contains_future_candles():
    data = _data()
    for m in range(0, 600, 7):
        target = T0 + timedelta(minutes=m)
        out = causal_slice(data, target)
        for tf, candles in out.items():
            assert all(c.timestamp <= target for c in candles)
            assert len(candles) == sum(1 for c in data[tf] if c.timestamp <= target)


def test_target_equal_to_timestamp_is_included():
    out = causal_slice(_data(), T0 + timedelta(minutes=60))
    assert out[Timeframe.H1][-1].timestamp == T0 + timedelta(minutes=60)
    assert len(out[Timeframe.M15]) == 5


def test_unsorted_input_is_sorted_and_left_untouched():
    m15 = [_c(30, 3.0), _c(0, 1.0), _c(15, 2.0), _c(45, 4.0)]
    before = list(m15)
    out = causal_slice({Timeframe.M15: m15}, T0 + timedelta(minutes=30))
    assert [c.close for c in out[Timeframe.M15]] == [1.0, 2.0, 3.0]
    assert m15 == before


def test_missing_timeframes_are_absent_and_early_targets_give_empty():
    data = {Timeframe.M15: [_c(15 * i) for i in range(4)], Timeframe.D1: [_c(1440)]}
    out = causal_slice(data, T0 + timedelta(minutes=20))
    assert set(out) == {Timeframe.M15, Timeframe.D1}
    assert out[Timeframe.D1] == ()
    assert Timeframe.H1 not in out


def test_string_keys_and_none_series():
    out = causal_slice({"15m": [_c(0)], "1h": None}, T0)
    assert list(out) == [Timeframe.M15]


def test_duplicate_timestamps_last_wins():
    series = TimeframeSeries({Timeframe.M15: [_c(0, 1.0), _c(15, 2.0), _c(0, 9.0)]})
    assert [c.close for c in series[Timeframe.M15]] == [9.0, 2.0]
    assert series.timestamps(Timeframe.M15) == (T0, T0 + timedelta(minutes=15))


def test_series_iterates_finest_first():
    series = TimeframeSeries({"1d": [_c(0)], "15m": [_c(0)], "4h": [_c(0)]})
    assert list(series) == [Timeframe.M15, Timeframe.H4, Timeframe.D1]
    assert "1d" in series
    assert "1w" not in series
    assert series.counts() == {"15m": 1, "4h": 1, "1d": 1}
