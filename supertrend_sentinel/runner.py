from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from .classifier import Classifier, load_classifier
from .config import Config
from .formatters import format_result, format_summary
from .models import AnalysisResult, Notification, Timeframe, TimeframeSeries, latest
from .providers.binance import BinanceProvider
from .replay import ReplayEngine
from .slicer import causal_slice
from .timeutil import parse_tz

log = logging.getLogger("runner")


class SignalRunner:
    def __init__(self, cfg: Config, *, provider=None, classifier: Optional[Classifier] = None):
        self.cfg = cfg
        self.provider = provider or BinanceProvider(
            market=cfg.provider.market,
            tz=parse_tz(cfg.provider.timezone),
            supertrend_period=cfg.indicator.supertrend_period,
            supertrend_multiplier=cfg.indicator.supertrend_multiplier,
            rest_timeout_s=cfg.provider.rest_timeout_s,
        )
        self.classifier = classifier or load_classifier(cfg.classifier.target)
        self.engine = ReplayEngine(
            self.classifier,
            stride=cfg.replay.stride,
            warmup_index=cfg.replay.warmup_index,
            tail_reserve=cfg.replay.tail_reserve,
            short_series=cfg.replay.short_series,
        )
        self._stopping = False

    def stop(self) -> None:
        """Ask in-flight replays to stop before their next step."""
        self._stopping = True

    def _should_stop(self) -> bool:
        return self._stopping

    async def fetch_series(self, symbol: str) -> TimeframeSeries:
        sem = asyncio.Semaphore(max(1, int(self.cfg.provider.concurrency)))

        async def _one(tf: Timeframe):
            async with sem:
                return await self.provider.get_candles(
                    symbol, tf, self.cfg.provider.contract_type, self.cfg.provider.limit
                )

        tfs = Timeframe.ordered()
        results = await asyncio.gather(*[_one(tf) for tf in tfs])
        for tf, candles in zip(tfs, results):
            log.info("candles_loaded symbol=%s tf=%s count=%d", symbol, tf.value, len(candles))
        return TimeframeSeries(dict(zip(tfs, results)))

    def validate_series(self, series: TimeframeSeries) -> None:
        for tf in series:
            last = latest(series[tf])
            if last is None:
                continue
            if last.supertrend is None:
                log.warning("supertrend_missing tf=%s; classification accuracy may degrade", tf.value)
            else:
                log.info("supertrend_ok tf=%s direction=%s", tf.value, last.supertrend.direction.value)

    async def analyze_current(self, symbol: str) -> Optional[AnalysisResult]:
        """Classify the latest state. Errors are logged and yield None."""
        try:
            series = await self.fetch_series(symbol)
            self.validate_series(series)
            master = series.get(Timeframe.finest())
            if not master:
                log.warning("current_analysis_skipped symbol=%s reason=no_%s_candles", symbol, Timeframe.finest().value)
                return None
            result = self.classifier.classify(symbol, causal_slice(series, master[-1].timestamp))
        except Exception as e:
            log.exception("current_analysis_failed symbol=%s err=%s", symbol, e)
            return None
        log.info("current signal\n%s", format_result(result))
        return result

    async def analyze_historical(self, symbol: str) -> List[Notification]:
        log.info("historical_analysis_start symbol=%s", symbol)
        series = await self.fetch_series(symbol)
        notifications = self.engine.replay(symbol, series, should_stop=self._should_stop)
        log.info("%s", format_summary(symbol, notifications))
        return notifications

    async def analyze_signal(self, symbol: str) -> List[Notification]:
        await self.analyze_current(symbol)
        return await self.analyze_historical(symbol)

    async def run(self, mode: str = "historical") -> Dict[str, List[Notification]]:
        symbols = list(self.cfg.provider.symbols or [])
        if not symbols:
            raise ValueError("No symbols configured.")

        async def _one(sym: str):
            try:
                if mode == "current":
                    await self.analyze_current(sym)
                    return sym, []
                if mode == "both":
                    return sym, await self.analyze_signal(sym)
                return sym, await self.analyze_historical(sym)
            except Exception as e:
                log.warning("symbol_failed symbol=%s err=%s", sym, e)
                return sym, None

        results = await asyncio.gather(*[_one(s) for s in symbols])
        out: Dict[str, List[Notification]] = {}
        for sym, notes in results:
            if notes is not None:
                out[sym] = notes
        log.info("run_done symbols=%d ok=%d", len(symbols), len(out))
        return out
