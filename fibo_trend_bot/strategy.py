from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from .models import Candle, EnrichedCandle, IndicatorParams, Signal
from .indicators import adx, slope, gog
from .swings import detect_swings
from .fibo import fibo_levels, fibo_levels_down


def _finite_or_none(x: Optional[float]) -> Optional[float]:
    if x is None or not math.isfinite(x):
        return None
    return x


def _buy_reason(adx_val: float) -> str:
    return "\n".join([
        "Fibonacci support zone",
        "Positive slope (uptrend)",
        "Rising GOG (positive acceleration)",
        f"ADX above threshold ({adx_val:.2f})",
        "Recent bullish momentum",
    ])


def _sell_reason(adx_val: float) -> str:
    return "\n".join([
        "Fibonacci resistance zone",
        "Negative slope (downtrend)",
        "Falling GOG (negative acceleration)",
        f"ADX above threshold ({adx_val:.2f})",
        "Recent bearish momentum",
    ])


def enrich(candles: Sequence[Candle], params: IndicatorParams) -> List[EnrichedCandle]:
    adx_vals = adx(candles, params.adx_period)
    slope_vals = slope(candles, params.slope_window, params.slope_smooth)
    gog_vals = gog(slope_vals, params.gog_span)
    swing_high, swing_low = detect_swings(candles, params.swing_left, params.swing_right)

    return [
        EnrichedCandle(
            timestamp=c.timestamp,
            open=c.open,
            high=c.high,
            low=c.low,
            close=c.close,
            volume=c.volume,
            adx=_finite_or_none(adx_vals[i]),
            slope=_finite_or_none(slope_vals[i]),
            gog=_finite_or_none(gog_vals[i]),
            is_swing_high=swing_high[i],
            is_swing_low=swing_low[i],
        )
        for i, c in enumerate(candles)
    ]


def compute(candles: Sequence[Candle], params: IndicatorParams) -> Tuple[List[EnrichedCandle], List[Signal]]:
    """Indicator series and BUY/SELL signals for a full candle history.

    `candles` must be sorted by timestamp and carry finite OHLC values; the
    caller filters malformed rows. Outputs are recomputed from scratch on every
    call, `enriched[i]` lines up with `candles[i]` and signals come out in scan
    order (oldest first).

    Swing flags look `swing_right` bars ahead, so the tail of the series can
    change once newer candles arrive.
    """
    if not candles:
        return [], []

    rows = enrich(candles, params)
    signals: List[Signal] = []

    last_swing_high: Optional[float] = None
    last_swing_low: Optional[float] = None
    prev_gog: Optional[float] = None

    for row in rows:
        if row.is_swing_high:
            last_swing_high = row.high
        if row.is_swing_low:
            last_swing_low = row.low

        cur_gog = row.gog
        if (
            row.adx is None
            or row.adx < params.adx_threshold
            or last_swing_high is None
            or last_swing_low is None
        ):
            prev_gog = cur_gog
            continue

        price = row.close
        has_gog = cur_gog is not None and prev_gog is not None
        is_uptrend = row.slope is not None and row.slope > 0
        is_downtrend = row.slope is not None and row.slope < 0

        if is_uptrend and last_swing_high > last_swing_low:
            fib = fibo_levels(last_swing_low, last_swing_high, params.fibo_retr_low, params.fibo_retr_high)
            if fib is not None:
                in_zone = fib.retr_lower_bound <= price <= fib.retr_upper_bound
                gog_cross_up = has_gog and prev_gog <= 0 and cur_gog > 0
                gog_rising = has_gog and cur_gog > prev_gog
                if in_zone and (gog_cross_up or gog_rising):
                    signals.append(Signal(
                        timestamp=row.timestamp,
                        type="BUY",
                        price=price,
                        reason=_buy_reason(row.adx),
                        sl=max(fib.retr_lower_bound, last_swing_low),
                        tp1=fib.x_127_2,
                        tp2=fib.x_161_8,
                        tp3=fib.x_200_0,
                    ))

        if is_downtrend and last_swing_low < last_swing_high:
            fib = fibo_levels_down(last_swing_high, last_swing_low, params.fibo_retr_low, params.fibo_retr_high)
            if fib is not None:
                in_zone = fib.retr_lower_bound <= price <= fib.retr_upper_bound
                gog_cross_down = has_gog and prev_gog >= 0 and cur_gog < 0
                gog_falling = has_gog and cur_gog < prev_gog
                if in_zone and (gog_cross_down or gog_falling):
                    signals.append(Signal(
                        timestamp=row.timestamp,
                        type="SELL",
                        price=price,
                        reason=_sell_reason(row.adx),
                        sl=min(fib.retr_upper_bound, last_swing_high),
                        tp1=fib.x_127_2,
                        tp2=fib.x_161_8,
                        tp3=fib.x_200_0,
                    ))

        prev_gog = cur_gog

    return rows, signals
