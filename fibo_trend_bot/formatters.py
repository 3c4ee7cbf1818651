from __future__ import annotations

import html
import re
from datetime import datetime, timezone, timedelta
from typing import Optional

from .models import Signal


_TZ_RE = re.compile(r"^UTC([+-])(\d{1,2})$")


def parse_tz(tz_str: str) -> timezone:
    tz_str = (tz_str or "UTC").strip().upper()
    if tz_str == "UTC":
        return timezone.utc
    m = _TZ_RE.match(tz_str)
    if not m:
        raise ValueError(f"Unsupported timezone format: {tz_str} (use 'UTC' or 'UTC+3' etc.)")
    sign = 1 if m.group(1) == "+" else -1
    hours = int(m.group(2))
    return timezone(timedelta(hours=sign * hours))


def _fmt_ms(ts_ms: int, tz: timezone) -> str:
    dt = datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc).astimezone(tz)
    return dt.strftime("%Y-%m-%d %H:%M")


def _escape_markdown_v2(text: str) -> str:
    specials = r"\_*[]()~`>#+-=|{}.!"
    escaped = []
    for ch in str(text):
        if ch in specials:
            escaped.append("\\" + ch)
        else:
            escaped.append(ch)
    return "".join(escaped)


def _escape_text(text: str, parse_mode: str) -> str:
    if parse_mode == "MARKDOWNV2":
        return _escape_markdown_v2(text)
    return html.escape(str(text), quote=False)


def _bold(text: str, parse_mode: str) -> str:
    escaped = _escape_text(text, parse_mode)
    if parse_mode == "MARKDOWNV2":
        return f"*{escaped}*"
    return f"<b>{escaped}</b>"


def _fmt_price(val: Optional[float]) -> str:
    if val is None:
        return "-"
    return f"{val:,.2f}" if abs(val) >= 1 else f"{val:.8g}"


def signal_title(signal: Signal, symbol: str) -> str:
    marker = "\U0001F7E2" if signal.type == "BUY" else "\U0001F534"
    return f"{marker} {signal.type} signal: {symbol}"


def format_signal(signal: Signal, symbol: str, timeframe: str, cfg) -> str:
    """Telegram alert text for a signal, escaped for the configured parse mode."""
    parse_mode = (getattr(cfg, "parse_mode", "HTML") or "HTML").upper()
    tz = parse_tz(getattr(cfg, "timezone", "UTC"))
    pipe = "\\|" if parse_mode == "MARKDOWNV2" else "|"

    lines = [
        _bold(signal_title(signal, symbol), parse_mode),
        f"{_escape_text(symbol, parse_mode)}  {pipe}  {_bold(timeframe, parse_mode)}",
        "",
        _escape_text(f"Time: {_fmt_ms(signal.timestamp, tz)} ({getattr(cfg, 'timezone', 'UTC')})", parse_mode),
        _escape_text(f"Price: {_fmt_price(signal.price)}", parse_mode),
    ]

    if getattr(cfg, "include_levels", True):
        lines.append(_escape_text(f"Stop loss: {_fmt_price(signal.sl)}", parse_mode))
        lines.append(_escape_text(
            f"Targets: {_fmt_price(signal.tp1)} / {_fmt_price(signal.tp2)} / {_fmt_price(signal.tp3)}",
            parse_mode,
        ))

    if getattr(cfg, "include_reason", True) and signal.reason:
        lines.append("")
        lines.append(_bold("Reasons:", parse_mode))
        for item in signal.reason.splitlines():
            lines.append(_escape_text(f"- {item}", parse_mode))

    footer = (getattr(cfg, "footer", "") or "").strip()
    if footer:
        lines.append("")
        lines.append(_escape_text(footer, parse_mode))

    return "\n".join(lines)
