from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .models import SignalCombination as SC


class Direction(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


_DIRECTION = {
    SC.STRONG_BULLISH: Direction.BULLISH,
    SC.PULLBACK_IN_BULL: Direction.BULLISH,
    SC.SHORT_TERM_BOUNCE: Direction.BULLISH,
    SC.HOURLY_STRONG_BUT_DIVERGENT: Direction.BULLISH,
    SC.POTENTIAL_BOTTOM_REVERSAL: Direction.BULLISH,
    SC.POTENTIAL_REVERSAL_ATTEMPT: Direction.BULLISH,
    SC.STRONG_BEARISH: Direction.BEARISH,
    SC.SHORT_TERM_REBOUND: Direction.BEARISH,
}

_TYPE = {
    SC.STRONG_BULLISH: "strong bullish",
    SC.PULLBACK_IN_BULL: "pullback bullish",
    SC.SHORT_TERM_BOUNCE: "short-term bounce",
    SC.HOURLY_STRONG_BUT_DIVERGENT: "divergent bullish",
    SC.STRONG_BEARISH: "strong bearish",
    SC.SHORT_TERM_REBOUND: "short-term rebound",
    SC.POTENTIAL_REVERSAL_ATTEMPT: "reversal attempt",
    SC.POTENTIAL_BOTTOM_REVERSAL: "bottom reversal",
    SC.PULLBACK_CONFIRMATION: "pullback confirmation",
}


def direction(combination: SC) -> Direction:
    return _DIRECTION.get(combination, Direction.NEUTRAL)


def signal_type(combination: SC) -> str:
    return _TYPE.get(combination, "mixed signals")


def changed(previous: Optional[SC], current: SC) -> bool:
    # A neutral first observation is not a transition.
    if previous is None:
        return current != SC.MIXED_SIGNALS
    return previous != current


def describe(previous: Optional[SC], current: SC) -> str:
    if previous is None:
        return f"first signal: {direction(current).value}"
    prev_dir = direction(previous)
    cur_dir = direction(current)
    if prev_dir != cur_dir:
        return f"direction reversal: {prev_dir.value} → {cur_dir.value}"
    return f"signal adjustment: {signal_type(previous)} → {signal_type(current)}"


@dataclass(frozen=True)
class Transition:
    previous: Optional[SC]
    current: SC
    description: str


class TransitionDetector:
    """Carries the last observed combination of one replay run."""

    def __init__(self) -> None:
        self.previous: Optional[SC] = None

    def observe(self, current: SC) -> Optional[Transition]:
        prev = self.previous
        self.previous = current
        if not changed(prev, current):
            return None
        return Transition(previous=prev, current=current, description=describe(prev, current))
