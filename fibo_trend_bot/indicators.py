from __future__ import annotations
from typing import List, Optional, Sequence
import math

from .models import Candle

Series = List[Optional[float]]


def is_missing(x: Optional[float]) -> bool:
    return x is None or (isinstance(x, float) and math.isnan(x))


def ema_next(prev_ema: Optional[float], x: float, length: int) -> float:
    alpha = 2.0 / (length + 1.0)
    return x if prev_ema is None else (alpha * x + (1.0 - alpha) * prev_ema)


def wilder_next(prev: Optional[float], x: float, length: int) -> float:
    """Wilder's smoothing step (EMA with alpha = 1/length)."""
    if prev is None:
        return x
    return (prev * (length - 1) + x) / length


def _smooth(series: Sequence[Optional[float]], length: int, step) -> Series:
    out: Series = [None] * len(series)
    prev: Optional[float] = None
    for i, x in enumerate(series):
        if is_missing(x):
            # hold the last output; stays None until the first valid input
            out[i] = prev
            continue
        prev = step(prev, float(x), length)
        out[i] = prev
    return out


def ema(series: Sequence[Optional[float]], period: int) -> Series:
    """Exponential moving average, seeded at the first valid value (pandas ewm adjust=False)."""
    return _smooth(series, period, ema_next)


def wilder_ema(series: Sequence[Optional[float]], period: int) -> Series:
    return _smooth(series, period, wilder_next)


def true_range(high: float, low: float, prev_close: float) -> float:
    return max(high - low, abs(high - prev_close), abs(low - prev_close))


def adx(candles: Sequence[Candle], period: int) -> Series:
    """Average Directional Index with Wilder smoothing.

    Needs at least 2*period candles, otherwise the whole series is None.
    DX starts at index `period`; ADX is the Wilder average of DX.
    """
    n = len(candles)
    if n < period * 2:
        return [None] * n

    trs: Series = [None]
    plus_dms: Series = [None]
    minus_dms: Series = [None]
    for i in range(1, n):
        c = candles[i]
        prev = candles[i - 1]
        trs.append(true_range(c.high, c.low, prev.close))

        up_move = c.high - prev.high
        down_move = prev.low - c.low
        plus_dms.append(up_move if (up_move > down_move and up_move > 0) else 0.0)
        minus_dms.append(down_move if (down_move > up_move and down_move > 0) else 0.0)

    s_tr = wilder_ema(trs, period)
    s_plus = wilder_ema(plus_dms, period)
    s_minus = wilder_ema(minus_dms, period)

    dxs: Series = [None] * n
    for i in range(period, n):
        tr = s_tr[i]
        if tr is None or tr <= 0:
            continue
        plus_di = s_plus[i] / tr * 100.0
        minus_di = s_minus[i] / tr * 100.0
        di_sum = plus_di + minus_di
        if di_sum > 0:
            dxs[i] = abs(plus_di - minus_di) / di_sum * 100.0

    return wilder_ema(dxs, period)


def slope(candles: Sequence[Candle], window: int, smooth_span: int) -> Series:
    """Rolling OLS slope of close against bar position 0..window-1."""
    n = len(candles)
    raw: Series = [None] * n
    if n < window:
        return raw

    closes = [c.close for c in candles]
    xs = range(window)
    sum_x = float(sum(xs))
    sum_x2 = float(sum(x * x for x in xs))
    denominator = window * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return raw

    for i in range(window - 1, n):
        ys = closes[i - window + 1:i + 1]
        if any(is_missing(y) for y in ys):
            continue
        sum_y = sum(ys)
        sum_xy = sum(x * y for x, y in zip(xs, ys))
        raw[i] = (window * sum_xy - sum_x * sum_y) / denominator

    if smooth_span > 1:
        return ema(raw, smooth_span)
    return raw


def gog(slopes: Sequence[Optional[float]], span: int) -> Series:
    """Smoothed first difference of the slope series (trend acceleration)."""
    n = len(slopes)
    if n < 2:
        return [None] * n

    diffs: Series = [None]
    for i in range(1, n):
        cur, prev = slopes[i], slopes[i - 1]
        diffs.append(None if (is_missing(cur) or is_missing(prev)) else cur - prev)
    return ema(diffs, span)
