from __future__ import annotations

from fibo_trend_bot.models import Candle, IndicatorParams
from fibo_trend_bot.strategy import compute

BAR_MS = 15 * 60_000


def candle(idx: int, close: float, prev_close: float) -> Candle:
    return Candle(
        timestamp=idx * BAR_MS,
        open=prev_close,
        high=close + 1,
        low=close - 1,
        close=close,
        volume=1.0,
        close_time_ms=(idx + 1) * BAR_MS - 1,
    )


def pullback_sequence():
    """Drop to a swing low, rally to a swing high, pull back into the zone, then break down."""
    closes = [150, 140, 130, 120, 110, 100]
    closes += [110 + 10 * i for i in range(10)]  # up to 200
    closes += [150, 150, 130]
    closes += [128 - 2 * i for i in range(11)]
    out = []
    prev = closes[0]
    for i, c in enumerate(closes):
        out.append(candle(i, float(c), float(prev)))
        prev = c
    return out


def main():
    params = IndicatorParams(
        adx_period=5,
        adx_threshold=20.0,
        slope_window=10,
        slope_smooth=1,
        gog_span=1,
        swing_left=2,
        swing_right=2,
        fibo_retr_low=0.382,
        fibo_retr_high=0.618,
    )
    rows, signals = compute(pullback_sequence(), params)
    for i, r in enumerate(rows):
        flags = ("H" if r.is_swing_high else "") + ("L" if r.is_swing_low else "")
        print(f"{i:2d} close={r.close:7.2f} adx={r.adx} slope={r.slope} gog={r.gog} {flags}")
    print(f"signals={len(signals)}")
    for s in signals:
        print(s.type, s.timestamp // BAR_MS, s.price, "sl", s.sl, "tp", s.tp1, s.tp2, s.tp3)


if __name__ == "__main__":
    main()
