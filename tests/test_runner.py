import asyncio

import pytest

from fibo_trend_bot import runner as runner_mod
from fibo_trend_bot.config import (
    AlertsConfig,
    AppConfig,
    Config,
    ProviderConfig,
    StrategyConfig,
    TelegramConfig,
    WebhookConfig,
)
from fibo_trend_bot.models import Candle, Signal, Ticker
from fibo_trend_bot.runner import SignalRunner

BAR_MS = 15 * 60_000

CLOSES = (
    [150, 140, 130, 120, 110, 100]
    + [110 + 10 * i for i in range(10)]
    + [150, 150, 130]
    + [128 - 2 * i for i in range(11)]
)


def _c(idx: int, close: float) -> Candle:
    return Candle(
        timestamp=idx * BAR_MS,
        open=close,
        high=close + 1,
        low=close - 1,
        close=close,
        volume=1.0,
        close_time_ms=(idx + 1) * BAR_MS - 1,
    )


CANDLES = [_c(i, float(x)) for i, x in enumerate(CLOSES)]


class FakeProvider:
    """Replays a fixed list of kline snapshots, one per poll."""

    def __init__(self, snapshots):
        self.snapshots = list(snapshots)
        self.calls = 0

    async def fetch_klines(self, symbol, timeframe, limit):
        snap = self.snapshots[min(self.calls, len(self.snapshots) - 1)]
        self.calls += 1
        return list(snap)

    async def fetch_ticker(self, symbol):
        return Ticker(symbol=symbol, price=1.0, change=0.0, change_pct=0.0)

    async def close(self):
        return None


def _cfg(**provider) -> Config:
    return Config(
        app=AppConfig(),
        provider=ProviderConfig(symbols=["BTCUSDT"], timeframe="15m", **provider),
        strategy=StrategyConfig(
            adx_period=5,
            adx_threshold=20.0,
            slope_window=10,
            slope_smooth=1,
            gog_span=1,
            swing_left=2,
            swing_right=2,
        ),
        telegram=TelegramConfig(enabled=False, token="", chat_ids=[]),
        webhook=WebhookConfig(enabled=False),
        alerts=AlertsConfig(dedupe=True),
    )


def test_first_poll_seeds_then_new_signal_alerts_once():
    async def _run():
        runner = SignalRunner(_cfg(closed_only=False))
        runner.provider = FakeProvider([CANDLES[:17], CANDLES[:18], CANDLES[:18], CANDLES])

        _, signals = await runner.poll_symbol("BTCUSDT")
        assert signals == []
        assert runner._metrics["signals_sent_total"] == 0

        _, signals = await runner.poll_symbol("BTCUSDT")
        assert [s.type for s in signals] == ["BUY"]
        assert runner._metrics["signals_sent_total"] == 1

        await runner.poll_symbol("BTCUSDT")
        await runner.poll_symbol("BTCUSDT")
        assert runner._metrics["signals_sent_total"] == 1
        assert runner._metrics["signals_duplicate_total"] == 0

    asyncio.run(_run())


def test_existing_signal_is_not_announced_on_startup():
    async def _run():
        runner = SignalRunner(_cfg(closed_only=False))
        runner.provider = FakeProvider([CANDLES])
        await runner.poll_all()
        await runner.poll_all()
        assert runner._metrics["signals_sent_total"] == 0
        assert len(runner._dedupe) == 1

    asyncio.run(_run())


def test_dedupe_same_signal():
    async def _run():
        runner = SignalRunner(_cfg())
        sig = Signal(
            timestamp=0,
            type="BUY",
            price=1.0,
            reason="",
            sl=0.9,
            tp1=1.1,
            tp2=1.2,
            tp3=1.3,
        )
        await runner._handle_signal("BTCUSDT", sig)
        await runner._handle_signal("BTCUSDT", sig)
        assert runner._metrics["signals_sent_total"] == 1
        assert runner._metrics["signals_duplicate_total"] == 1
        assert len(runner._dedupe) == 1

    asyncio.run(_run())


def test_signal_id_depends_on_parameters():
    sig = Signal(timestamp=0, type="SELL", price=1.0, reason="", sl=1.1, tp1=0.9, tp2=0.8, tp3=0.7)
    a = SignalRunner(_cfg())
    b_cfg = _cfg()
    b_cfg.strategy.adx_threshold = 25.0
    b = SignalRunner(b_cfg)
    assert a.signal_id("BTCUSDT", sig) == a.signal_id("BTCUSDT", sig)
    assert a.signal_id("BTCUSDT", sig) != b.signal_id("BTCUSDT", sig)
    assert a.signal_id("BTCUSDT", sig) != a.signal_id("ETHUSDT", sig)


def test_closed_only_drops_forming_candle():
    runner = SignalRunner(_cfg(closed_only=True))
    runner._now_ms = lambda: CANDLES[9].close_time_ms - 10
    assert runner._closed(CANDLES[:10]) == CANDLES[:9]
    runner._now_ms = lambda: CANDLES[9].close_time_ms + 10
    assert runner._closed(CANDLES[:10]) == CANDLES[:10]


def test_failed_poll_is_logged_not_raised():
    class Broken(FakeProvider):
        async def fetch_klines(self, symbol, timeframe, limit):
            raise RuntimeError("boom")

    async def _run():
        runner = SignalRunner(_cfg())
        runner.provider = Broken([[]])
        await runner.poll_all()
        assert runner._last_seen == {}

    asyncio.run(_run())


def _sig(ts: int, kind: str = "BUY") -> Signal:
    return Signal(timestamp=ts, type=kind, price=1.0, reason="", sl=0.9, tp1=1.1, tp2=1.2, tp3=1.3)


def test_unformattable_alert_is_not_counted_as_sent():
    async def _run():
        cfg = _cfg()
        cfg.telegram = TelegramConfig(enabled=True, token="t", chat_ids=["1"])
        cfg.alerts = AlertsConfig(timezone="America/Sao_Paulo")
        runner = SignalRunner(cfg)
        sig = _sig(0)
        with pytest.raises(ValueError):
            await runner._handle_signal("BTCUSDT", sig)
        assert runner._metrics["signals_sent_total"] == 0
        assert runner.signal_id("BTCUSDT", sig) not in runner._dedupe

    asyncio.run(_run())


def test_older_signal_resurfacing_is_not_alerted(monkeypatch):
    # the fetch window slides: the newest signal vanishes and an older one is latest again
    scripted = [[_sig(5 * BAR_MS)], [_sig(5 * BAR_MS), _sig(9 * BAR_MS)], [_sig(5 * BAR_MS)], [_sig(12 * BAR_MS, "SELL")]]
    monkeypatch.setattr(runner_mod, "compute", lambda candles, params: ([], scripted.pop(0)))

    async def _run():
        runner = SignalRunner(_cfg(closed_only=False))
        runner.provider = FakeProvider([CANDLES])
        sent = []

        async def _record(symbol, sig):
            sent.append(sig.timestamp)

        runner._handle_signal = _record
        for _ in range(4):
            await runner.poll_symbol("BTCUSDT")
        assert sent == [9 * BAR_MS, 12 * BAR_MS]
        assert runner._last_seen["BTCUSDT"] == 12 * BAR_MS

    asyncio.run(_run())
