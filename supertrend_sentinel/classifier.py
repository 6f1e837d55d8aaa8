from __future__ import annotations

import importlib
import inspect
from typing import Callable, Dict, Protocol, Tuple

from .errors import ConfigError
from .models import AnalysisResult, Candle, Timeframe


Slices = Dict[Timeframe, Tuple[Candle, ...]]


class Classifier(Protocol):
    """Maps a causal multi-timeframe slice to an AnalysisResult.

    Called once per sampled replay step, so it should be quick and must not mutate
    ``slices``. Any exception it raises makes the replay skip that step.
    """

    def classify(self, symbol: str, slices: Slices) -> AnalysisResult:
        ...


class CallableClassifier:
    def __init__(self, fn: Callable[[str, Slices], AnalysisResult]):
        self.fn = fn

    def classify(self, symbol: str, slices: Slices) -> AnalysisResult:
        return self.fn(symbol, slices)


def load_classifier(target: str) -> Classifier:
    """Resolve ``package.module:attr`` into a classifier instance."""
    target = (target or "").strip()
    mod_name, sep, attr = target.partition(":")
    if not sep or not mod_name or not attr:
        raise ConfigError(f"classifier target must look like 'package.module:attr', got {target!r}")
    try:
        module = importlib.import_module(mod_name)
    except ImportError as e:
        raise ConfigError(f"cannot import classifier module {mod_name!r}: {e}") from e
    obj = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise ConfigError(f"classifier {target!r} not found") from e

    if inspect.isclass(obj):
        obj = obj()
    if callable(getattr(obj, "classify", None)):
        return obj
    if callable(obj):
        return CallableClassifier(obj)
    raise ConfigError(f"classifier {target!r} is neither callable nor has classify()")
