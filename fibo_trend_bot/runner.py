from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from typing import Dict, List, Optional, Set, Tuple

from .config import Config, tf_minutes
from .models import Candle, EnrichedCandle, Signal
from .strategy import compute
from .formatters import format_signal
from .notifier.telegram import TelegramNotifier
from .notifier.webhook import WebhookNotifier
from .providers.binance import BinanceProvider

log = logging.getLogger("runner")


def _stable_strategy_signature(cfg: Config) -> str:
    sig = cfg.strategy.signature()
    payload = json.dumps(sig, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _fmt_opt(x: Optional[float]) -> str:
    return "na" if x is None else f"{x:.4f}"


class SignalRunner:
    """Polls candles per symbol, recomputes indicators and alerts on new signals."""

    def __init__(self, cfg: Config):
        self.cfg = cfg
        self.params = cfg.strategy.to_params()
        self.timeframe = cfg.provider.timeframe
        self._tf_ms = tf_minutes(self.timeframe) * 60_000
        self.provider = BinanceProvider(
            market=cfg.provider.market,
            rest_timeout_s=cfg.provider.rest_timeout_s,
        )
        self.tg = TelegramNotifier.from_config(cfg.telegram)
        self.webhook = WebhookNotifier(
            enabled=cfg.webhook.enabled,
            url=cfg.webhook.url,
            secret=cfg.webhook.secret,
            timeout_s=cfg.webhook.timeout_s,
            headers=cfg.webhook.headers or {},
        )

        self._strategy_sig = _stable_strategy_signature(cfg)
        self._dedupe: Set[str] = set()
        self._last_seen: Dict[str, Optional[int]] = {}
        self._metrics = {
            "signals_sent_total": 0,
            "signals_duplicate_total": 0,
        }

    def _now_ms(self) -> int:
        return int(time.time() * 1000)

    def _closed(self, candles: List[Candle]) -> List[Candle]:
        if not self.cfg.provider.closed_only or not candles:
            return candles
        now_ms = self._now_ms()
        last = candles[-1]
        close_ms = last.close_time_ms if last.close_time_ms is not None else last.timestamp + self._tf_ms - 1
        if close_ms >= now_ms:
            return candles[:-1]
        return candles

    def signal_id(self, symbol: str, sig: Signal) -> str:
        base = f"{symbol}:{self.timeframe}:{sig.type}:{sig.timestamp}:{self._strategy_sig}"
        return hashlib.sha256(base.encode("utf-8")).hexdigest()

    async def poll_symbol(self, symbol: str) -> Tuple[List[EnrichedCandle], List[Signal]]:
        candles = await self.provider.fetch_klines(symbol, self.timeframe, int(self.cfg.provider.candles))
        candles = self._closed(candles)
        rows, signals = compute(candles, self.params)

        last = rows[-1] if rows else None
        log.info(
            "poll symbol=%s tf=%s candles=%d signals=%d adx=%s slope=%s gog=%s",
            symbol,
            self.timeframe,
            len(rows),
            len(signals),
            _fmt_opt(last.adx if last else None),
            _fmt_opt(last.slope if last else None),
            _fmt_opt(last.gog if last else None),
        )

        try:
            ticker = await self.provider.fetch_ticker(symbol)
            log.info("ticker symbol=%s price=%s change=%s change_pct=%.2f", symbol, ticker.price, ticker.change, ticker.change_pct)
        except Exception as e:
            log.warning("ticker_failed symbol=%s err=%s", symbol, e)

        latest = signals[-1] if signals else None

        if symbol not in self._last_seen:
            # first pass only seeds state; history is not re-announced
            self._last_seen[symbol] = latest.timestamp if latest else None
            if latest is not None:
                self._dedupe.add(self.signal_id(symbol, latest))
            log.info("seeded symbol=%s latest_signal=%s", symbol, self._last_seen[symbol])
            return rows, signals

        # only strictly newer candles alert; an older signal resurfacing after
        # the fetch window slides is not news
        seen_ts = self._last_seen[symbol]
        if latest is not None and (seen_ts is None or latest.timestamp > seen_ts):
            await self._handle_signal(symbol, latest)
            self._last_seen[symbol] = latest.timestamp

        return rows, signals

    async def poll_all(self) -> None:
        symbols = list(self.cfg.provider.symbols or [])

        async def _one(sym: str):
            try:
                await self.poll_symbol(sym)
                return None
            except Exception as e:
                return (sym, repr(e))

        results = await asyncio.gather(*[_one(sym) for sym in symbols])
        for failure in results:
            if failure is not None:
                log.warning("poll_failed symbol=%s tf=%s err=%s", failure[0], self.timeframe, failure[1])

    async def run_forever(self) -> None:
        symbols = list(self.cfg.provider.symbols or [])
        if not symbols:
            raise ValueError("No symbols configured.")

        log.info(
            "start symbols=%s tf=%s poll_interval_s=%s params=%s",
            symbols,
            self.timeframe,
            self.cfg.provider.poll_interval_s,
            self.cfg.strategy.signature(),
        )
        await self.poll_all()
        if self.tg.enabled():
            await self.tg.send(f"✅ {self.cfg.app.name}: monitoring {len(symbols)} symbols on {self.timeframe}.")

        while True:
            await asyncio.sleep(max(1, int(self.cfg.provider.poll_interval_s)))
            await self.poll_all()

    async def _handle_signal(self, symbol: str, sig: Signal) -> None:
        sid = self.signal_id(symbol, sig)
        if self.cfg.alerts.dedupe and sid in self._dedupe:
            self._metrics["signals_duplicate_total"] += 1
            log.info(
                "signal_duplicate %s %s %s ts=%s price=%s signal_id=%s duplicates_total=%d",
                symbol,
                self.timeframe,
                sig.type,
                sig.timestamp,
                sig.price,
                sid,
                self._metrics["signals_duplicate_total"],
            )
            return

        # build the message first so a formatting error leaves the signal unsent
        msg = None
        parse_mode = getattr(self.cfg.alerts, "parse_mode", "HTML") or "HTML"
        if self.tg.enabled():
            msg = format_signal(sig, symbol, self.timeframe, self.cfg.alerts)

        self._dedupe.add(sid)
        self._metrics["signals_sent_total"] += 1

        latency_ms = self._now_ms() - int(sig.timestamp)
        log.info(
            "signal %s %s %s ts=%s price=%s sl=%s tp1=%s tp2=%s tp3=%s latency_ms=%s signal_id=%s sent_total=%d",
            symbol,
            self.timeframe,
            sig.type,
            sig.timestamp,
            sig.price,
            sig.sl,
            sig.tp1,
            sig.tp2,
            sig.tp3,
            latency_ms,
            sid,
            self._metrics["signals_sent_total"],
        )

        if self.webhook.enabled:
            try:
                await self.webhook.send_signal(sig, symbol=symbol, timeframe=self.timeframe, signal_id=sid)
            except Exception as e:
                log.warning("webhook_send_failed symbol=%s tf=%s err=%s", symbol, self.timeframe, e)

        if msg is not None:
            await self.tg.send(msg, parse_mode=parse_mode)
