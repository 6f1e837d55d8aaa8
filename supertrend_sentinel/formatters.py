from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from .models import AnalysisResult, Notification, SignalCombination, Timeframe, TrendDirection
from .timeutil import fmt_ts
from .transitions import describe


# Fixed display order: day -> 4h -> 1h -> 15m.
DISPLAY_ORDER = (Timeframe.D1, Timeframe.H4, Timeframe.H1, Timeframe.M15)

RULE = "----------------------------------------"

_GLYPHS = {
    TrendDirection.UP: "↑ up",
    TrendDirection.DOWN: "↓ down",
    TrendDirection.INDETERMINATE: "/ unclear",
}


def trend_glyph(trend) -> str:
    return _GLYPHS[TrendDirection.coerce(trend)]


def display_trends(result: AnalysisResult) -> Tuple[Tuple[Timeframe, TrendDirection], ...]:
    return tuple((tf, result.trend(tf)) for tf in DISPLAY_ORDER)


def _trend_lines(trends: Sequence[Tuple[Timeframe, TrendDirection]]) -> List[str]:
    lines = []
    last = len(trends) - 1
    for i, (tf, trend) in enumerate(trends):
        branch = "└" if i == last else "├"
        lines.append(f"{branch} {tf.label}: {trend_glyph(trend)}")
    return lines


def _trailer(result: AnalysisResult) -> List[str]:
    combo = result.combination
    return [
        f"{result.level.icon} {result.level.name} level",
        f"{combo.emoji} {combo.description}",
        f"💡 Strategy: {combo.strategy}",
    ]


def format_notification(
    symbol: str,
    trigger_time: datetime,
    result: AnalysisResult,
    previous: Optional[SignalCombination],
) -> str:
    """Render one transition as the fixed historical-signal text block."""
    lines = [
        f"🔔 [Historical Signal - {symbol}]",
        f"📅 {fmt_ts(trigger_time)}",
        f"🔄 {describe(previous, result.combination)}",
        "",
        "🕐 Timeframe trends:",
    ]
    lines.extend(_trend_lines(display_trends(result)))
    lines.append("")
    lines.extend(_trailer(result))
    return "\n".join(lines)


def build_notification(
    symbol: str,
    trigger_time: datetime,
    result: AnalysisResult,
    previous: Optional[SignalCombination],
) -> Notification:
    return Notification(
        symbol=symbol,
        trigger_time=trigger_time,
        previous=previous,
        combination=result.combination,
        change=describe(previous, result.combination),
        trends=display_trends(result),
        level=result.level,
        text=format_notification(symbol, trigger_time, result, previous),
    )


def format_result(result: AnalysisResult) -> str:
    """Current-state snapshot, used by the live analysis path."""
    lines = [f"=== SuperTrend signal: {result.symbol} ==="]
    if result.analysis_time is not None:
        lines.append(f"Analysis time: {fmt_ts(result.analysis_time)}")
    lines.extend(_trend_lines(display_trends(result)))
    lines.extend(_trailer(result))
    return "\n".join(lines)


def format_summary(symbol: str, notifications: Sequence[Notification]) -> str:
    lines = [f"=== {symbol} historical signal summary ===", f"Signal changes detected: {len(notifications)}"]
    for i, n in enumerate(notifications, start=1):
        lines.append(f"Notification {i}:")
        lines.append(n.text)
        lines.append(RULE)
    return "\n".join(lines)
