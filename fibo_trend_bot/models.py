from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True)
class Candle:
    timestamp: int  # open time, ms epoch
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time_ms: Optional[int] = None


@dataclass(frozen=True)
class Ticker:
    symbol: str
    price: float
    change: float
    change_pct: float


@dataclass(frozen=True)
class IndicatorParams:
    adx_period: int
    adx_threshold: float
    slope_window: int
    slope_smooth: int
    gog_span: int
    swing_left: int
    swing_right: int
    fibo_retr_low: float
    fibo_retr_high: float


@dataclass(frozen=True)
class EnrichedCandle:
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    adx: Optional[float]
    slope: Optional[float]
    gog: Optional[float]
    is_swing_high: bool
    is_swing_low: bool

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class FiboLevels:
    retr_lower_bound: float
    retr_upper_bound: float
    x_127_2: float
    x_161_8: float
    x_200_0: float


@dataclass(frozen=True)
class Signal:
    timestamp: int
    type: str  # BUY or SELL
    price: float
    reason: str
    sl: float
    tp1: float
    tp2: float
    tp3: float

    def as_dict(self) -> dict:
        return asdict(self)
