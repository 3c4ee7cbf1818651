from __future__ import annotations

from typing import List, Sequence, Tuple

from .models import Candle


def detect_swings(candles: Sequence[Candle], left: int, right: int) -> Tuple[List[bool], List[bool]]:
    """Flag local extrema confirmed by `left` bars before and `right` bars after.

    A candidate is disqualified only by a strictly higher high (swing high) or a
    strictly lower low (swing low). Equal neighbours do not disqualify, so a flat
    top flags every candle on it. The first `left` and last `right` bars are
    never flagged.
    """
    n = len(candles)
    is_swing_high = [False] * n
    is_swing_low = [False] * n

    for i in range(left, n - right):
        high = candles[i].high
        low = candles[i].low
        is_high = True
        is_low = True
        for j in range(i - left, i + right + 1):
            if j == i:
                continue
            if candles[j].high > high:
                is_high = False
            if candles[j].low < low:
                is_low = False
        is_swing_high[i] = is_high
        is_swing_low[i] = is_low

    return is_swing_high, is_swing_low
