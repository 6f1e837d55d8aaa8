import sys
import types

import pytest

from supertrend_sentinel.classifier import CallableClassifier, load_classifier
from supertrend_sentinel.errors import ConfigError


class _Fixed:
    def classify(self, symbol, slices):
        return ("fixed", symbol)


def _fn(symbol, slices):
    return ("fn", symbol)


@pytest.fixture
def fake_module(monkeypatch):
    mod = types.ModuleType("fake_signal_classifier")
    mod.Fixed = _Fixed
    mod.instance = _Fixed()
    mod.fn = _fn
    mod.constant = 42
    monkeypatch.setitem(sys.modules, "fake_signal_classifier", mod)
    return mod


def test_class_target_is_instantiated(fake_module):
    clf = load_classifier("fake_signal_classifier:Fixed")
    assert isinstance(clf, _Fixed)
    assert clf.classify("BTCUSDT", {}) == ("fixed", "BTCUSDT")


def test_instance_target_is_returned(fake_module):
    assert load_classifier("fake_signal_classifier:instance") is fake_module.instance


def test_plain_function_is_wrapped(fake_module):
    clf = load_classifier("fake_signal_classifier:fn")
    assert isinstance(clf, CallableClassifier)
    assert clf.classify("ETHUSDT", {}) == ("fn", "ETHUSDT")


@pytest.mark.parametrize("target", [
    "",
    "no_colon_here",
    "fake_signal_classifier:",
    "fake_signal_classifier:missing",
    "fake_signal_classifier:constant",
    "definitely_not_a_module_xyz:thing",
])
def test_bad_targets(fake_module, target):
    with pytest.raises(ConfigError):
        load_classifier(target)
