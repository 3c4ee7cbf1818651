import json

import pytest

from fibo_trend_bot.config import AlertsConfig
from fibo_trend_bot.formatters import format_signal, parse_tz
from fibo_trend_bot.models import Signal
from fibo_trend_bot.notifier.webhook import build_payload


def _sig(**kw) -> Signal:
    base = dict(
        timestamp=0,
        type="BUY",
        price=150.0,
        reason="Fibonacci support zone\nADX above threshold (47.30)",
        sl=137.964,
        tp1=228.744,
        tp2=264.036,
        tp3=303.0,
    )
    base.update(kw)
    return Signal(**base)


def test_html_alert():
    msg = format_signal(_sig(), "BTCUSDT", "15m", AlertsConfig())
    assert msg.startswith("<b>")
    assert "BUY signal: BTCUSDT" in msg
    assert "<b>15m</b>" in msg
    assert "Time: 1970-01-01 00:00 (UTC)" in msg
    assert "Price: 150.00" in msg
    assert "Stop loss: 137.96" in msg
    assert "Targets: 228.74 / 264.04 / 303.00" in msg
    assert "- Fibonacci support zone" in msg
    assert "- ADX above threshold (47.30)" in msg


def test_alert_timezone_and_optional_sections():
    cfg = AlertsConfig(timezone="UTC-3", include_levels=False, include_reason=False, footer="not advice")
    msg = format_signal(_sig(type="SELL"), "ETHUSDT", "15m", cfg)
    assert "SELL signal: ETHUSDT" in msg
    assert "1969-12-31 21:00" in msg
    assert "Stop loss" not in msg
    assert "Fibonacci" not in msg
    assert msg.endswith("not advice")


def test_markdown_v2_escaping():
    msg = format_signal(_sig(), "BTCUSDT", "15m", AlertsConfig(parse_mode="MarkdownV2", include_reason=False))
    assert "Price: 150\\.00" in msg
    assert "\\|" in msg


def test_parse_tz():
    assert parse_tz("UTC+3").utcoffset(None).total_seconds() == 3 * 3600
    with pytest.raises(ValueError):
        parse_tz("America/Sao_Paulo")


def test_webhook_payload():
    payload = build_payload(_sig(), symbol="BTCUSDT", timeframe="15m", secret="s3", signal_id="abc")
    assert payload["symbol"] == "BTCUSDT"
    assert payload["tf"] == "15m"
    assert payload["type"] == "BUY"
    assert payload["tp3"] == 303.0
    assert payload["secret"] == "s3"
    assert payload["signal_id"] == "abc"
    json.dumps(payload)
