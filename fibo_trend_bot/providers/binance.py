from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Dict, List, Optional

import aiohttp

from ..models import Candle, Ticker

log = logging.getLogger("binance")


def _rest_base(market: str) -> str:
    return "https://fapi.binance.com" if market == "futures" else "https://api.binance.com"


def _klines_path(market: str) -> str:
    return "/fapi/v1/klines" if market == "futures" else "/api/v3/klines"


def _ticker_path(market: str) -> str:
    return "/fapi/v1/ticker/24hr" if market == "futures" else "/api/v3/ticker/24hr"


def parse_klines(data: List[list]) -> List[Candle]:
    """Kline rows -> candles, dropping rows with non-finite OHLC."""
    out: List[Candle] = []
    for row in data:
        # [0]=open time, [6]=close time
        c = Candle(
            timestamp=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
            close_time_ms=int(row[6]) if len(row) > 6 else None,
        )
        if not all(math.isfinite(v) for v in (c.open, c.high, c.low, c.close)):
            continue
        out.append(c)
    dropped = len(data) - len(out)
    if dropped:
        log.warning("klines_dropped_malformed count=%d", dropped)
    return out


def parse_ticker(data: Dict[str, Any]) -> Ticker:
    def _num(key: str) -> float:
        try:
            val = float(data.get(key))
        except (TypeError, ValueError):
            return 0.0
        return val if math.isfinite(val) else 0.0

    return Ticker(
        symbol=str(data.get("symbol", "")).upper(),
        price=_num("lastPrice"),
        change=_num("priceChange"),
        change_pct=_num("priceChangePercent"),
    )


class BinanceProvider:
    def __init__(
        self,
        market: str = "spot",
        *,
        rest_timeout_s: int = 20,
        rest_max_retries: int = 4,
        rest_backoff_s: float = 0.8,
        rest_conn_limit: int = 40,
        rest_conn_limit_per_host: int = 10,
    ):
        self.market = market
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

    async def _get_json(self, path: str, params: Dict[str, Any], what: str) -> Any:
        url = _rest_base(self.market) + path
        sess = await self._get_session()

        backoff = float(self.rest_backoff_s)
        last_err: Optional[BaseException] = None
        for attempt in range(1, int(self.rest_max_retries) + 1):
            try:
                async with sess.get(url, params=params) as resp:
                    # Rate-limit / ban signals
                    if resp.status in (418, 429):
                        txt = await resp.text()
                        retry_after = resp.headers.get("Retry-After")
                        sleep_s = float(retry_after) if (retry_after and retry_after.isdigit()) else backoff
                        log.warning(
                            "rest_rate_limited status=%s what=%s params=%s sleep=%.1fs body=%s",
                            resp.status,
                            what,
                            params,
                            sleep_s,
                            txt[:200],
                        )
                        await asyncio.sleep(sleep_s)
                        backoff = min(backoff * 2.0, 20.0)
                        continue

                    if resp.status != 200:
                        txt = await resp.text()
                        raise RuntimeError(f"Binance {what} failed: {resp.status} {txt[:500]}")

                    # Some proxies return a wrong content-type; be tolerant.
                    return await resp.json(content_type=None)

            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                last_err = e
                if attempt >= int(self.rest_max_retries):
                    break
                log.warning(
                    "rest_timeout_or_client_err attempt=%d/%d what=%s params=%s backoff=%.1fs err=%s",
                    attempt,
                    self.rest_max_retries,
                    what,
                    params,
                    backoff,
                    e,
                )
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2.0, 20.0)

        if last_err is not None:
            raise last_err
        raise RuntimeError(f"Binance {what} failed: rate limited after {self.rest_max_retries} attempts")

    async def fetch_klines(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        params = {"symbol": symbol.upper(), "interval": timeframe, "limit": int(limit)}
        data = await self._get_json(_klines_path(self.market), params, "klines")
        if not isinstance(data, list):
            raise RuntimeError(f"Binance klines returned unexpected payload: {str(data)[:200]}")
        return parse_klines(data)

    async def fetch_ticker(self, symbol: str) -> Ticker:
        data = await self._get_json(_ticker_path(self.market), {"symbol": symbol.upper()}, "ticker")
        if not isinstance(data, dict):
            raise RuntimeError(f"Binance ticker returned unexpected payload: {str(data)[:200]}")
        return parse_ticker(data)
