from __future__ import annotations

import asyncio
import logging
import time
from datetime import timezone
from typing import Any, Dict, List, Optional

import aiohttp

from ..indicators import annotate_supertrend
from ..models import Candle, Timeframe
from ..timeutil import ms_to_wall_clock

log = logging.getLogger("binance")


def _rest_base(market: str) -> str:
    return "https://fapi.binance.com" if market == "futures" else "https://api.binance.com"


def _klines_path(market: str) -> str:
    return "/fapi/v1/continuousKlines" if market == "futures" else "/api/v3/klines"


def _klines_params(market: str, symbol: str, timeframe: Timeframe, contract_type: str, limit: int) -> Dict[str, Any]:
    if market == "futures":
        return {
            "pair": symbol.upper(),
            "contractType": (contract_type or "PERPETUAL").upper(),
            "interval": timeframe.value,
            "limit": int(limit),
        }
    return {"symbol": symbol.upper(), "interval": timeframe.value, "limit": int(limit)}


def parse_kline_rows(rows: List[list], tz: timezone = timezone.utc, now_ms: Optional[int] = None) -> List[Candle]:
    """Candles stamped at bar end (close time + 1ms), so a bar is visible only once it has closed.

    With ``now_ms`` given, rows whose close time has not passed yet are dropped.
    """
    out: List[Candle] = []
    for row in rows:
        # [0]=open time, [1..4]=OHLC, [5]=volume, [6]=close time (end of bar minus 1ms)
        close_ms = int(row[6])
        if now_ms is not None and close_ms >= now_ms:
            continue
        out.append(Candle(
            timestamp=ms_to_wall_clock(close_ms + 1, tz),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
        ))
    return out


class BinanceProvider:
    def __init__(
        self,
        market: str = "futures",
        *,
        tz: timezone = timezone.utc,
        supertrend_period: int = 10,
        supertrend_multiplier: float = 3.0,
        rest_timeout_s: int = 20,
        rest_max_retries: int = 4,
        rest_backoff_s: float = 0.8,
        rest_conn_limit: int = 40,
        rest_conn_limit_per_host: int = 10,
    ):
        self.market = market
        self.tz = tz
        self.supertrend_period = supertrend_period
        self.supertrend_multiplier = supertrend_multiplier
        self.rest_timeout_s = rest_timeout_s

        # REST robustness
        self.rest_max_retries = rest_max_retries
        self.rest_backoff_s = rest_backoff_s
        self.rest_conn_limit = rest_conn_limit
        self.rest_conn_limit_per_host = rest_conn_limit_per_host

        self._session: Optional[aiohttp.ClientSession] = None

    async def close(self) -> None:
        """Close the shared aiohttp session (best-effort)."""
        if self._session is not None and not self._session.closed:
            await self._session.close()

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=self.rest_timeout_s,
            connect=min(10, self.rest_timeout_s),
            sock_connect=min(10, self.rest_timeout_s),
            sock_read=max(10, int(self.rest_timeout_s * 0.75)),
        )

    def _connector(self) -> aiohttp.TCPConnector:
        return aiohttp.TCPConnector(
            limit=self.rest_conn_limit,
            limit_per_host=self.rest_conn_limit_per_host,
            ttl_dns_cache=300,
            enable_cleanup_closed=True,
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout(), connector=self._connector())
        return self._session

    async def _get_json(self, url: str, params: Dict[str, Any], symbol: str, tf: str) -> Any:
        sess = await self._get_session()

        backoff = float(self.rest_backoff_s)
        last_err: Optional[BaseException] = None
        for attempt in range(1, int(self.rest_max_retries) + 1):
            try:
                async with sess.get(url, params=params) as resp:
                    if resp.status in (418, 429):
                        txt = await resp.text()
                        retry_after = resp.headers.get("Retry-After")
                        sleep_s = float(retry_after) if (retry_after and retry_after.isdigit()) else backoff
                        log.warning(
                            "rest_rate_limited status=%s symbol=%s tf=%s sleep=%.1fs body=%s",
                            resp.status, symbol, tf, sleep_s, txt[:200],
                        )
                        await asyncio.sleep(sleep_s)
                        backoff = min(backoff * 2.0, 20.0)
                        continue

                    if resp.status != 200:
                        txt = await resp.text()
                        raise RuntimeError(f"Binance klines failed: {resp.status} {txt[:500]}")

                    # Some proxies return a wrong content-type; be tolerant.
                    return await resp.json(content_type=None)

            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                last_err = e
                if attempt >= int(self.rest_max_retries):
                    break
                log.warning(
                    "rest_timeout_or_client_err attempt=%d/%d symbol=%s tf=%s backoff=%.1fs err=%s",
                    attempt, self.rest_max_retries, symbol, tf, backoff, e,
                )
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2.0, 20.0)

        if last_err is not None:
            raise last_err
        raise RuntimeError(f"Binance klines rate limited after {self.rest_max_retries} attempts: {symbol} {tf}")

    async def get_candles(self, symbol: str, timeframe, contract_type: str = "PERPETUAL", limit: int = 500) -> List[Candle]:
        """Closed klines for one timeframe, oldest first, stamped at bar close, SuperTrend annotated."""
        tf = Timeframe.parse(timeframe)
        url = _rest_base(self.market) + _klines_path(self.market)
        params = _klines_params(self.market, symbol, tf, contract_type, limit)

        data = await self._get_json(url, params, symbol, tf.value)
        candles = parse_kline_rows(data, self.tz, now_ms=int(time.time() * 1000))
        candles.sort(key=lambda c: c.timestamp)
        return annotate_supertrend(candles, self.supertrend_period, self.supertrend_multiplier)
