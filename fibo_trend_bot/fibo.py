from __future__ import annotations

from typing import Optional

from .indicators import is_missing
from .models import FiboLevels

EXT_127_2 = 0.272
EXT_161_8 = 0.618
EXT_200_0 = 1.000


def _degenerate(swing_low: Optional[float], swing_high: Optional[float]) -> bool:
    return is_missing(swing_low) or is_missing(swing_high) or swing_high <= swing_low


def fibo_levels(swing_low: Optional[float], swing_high: Optional[float], retr_low: float, retr_high: float) -> Optional[FiboLevels]:
    """Uptrend leg low -> high: pullback zone below the high, targets above it."""
    if _degenerate(swing_low, swing_high):
        return None
    move = swing_high - swing_low
    return FiboLevels(
        retr_lower_bound=swing_high - retr_high * move,
        retr_upper_bound=swing_high - retr_low * move,
        x_127_2=swing_high + EXT_127_2 * move,
        x_161_8=swing_high + EXT_161_8 * move,
        x_200_0=swing_high + EXT_200_0 * move,
    )


def fibo_levels_down(swing_high: Optional[float], swing_low: Optional[float], retr_low: float, retr_high: float) -> Optional[FiboLevels]:
    """Downtrend leg high -> low: bounce zone above the low, targets below it."""
    if _degenerate(swing_low, swing_high):
        return None
    move = swing_high - swing_low
    return FiboLevels(
        retr_lower_bound=swing_low + retr_low * move,
        retr_upper_bound=swing_low + retr_high * move,
        x_127_2=swing_low - EXT_127_2 * move,
        x_161_8=swing_low - EXT_161_8 * move,
        x_200_0=swing_low - EXT_200_0 * move,
    )
