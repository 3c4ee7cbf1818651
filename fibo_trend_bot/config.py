from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List
import os
import yaml

from .models import IndicatorParams
from .formatters import parse_tz


def _env_override(value: Any, env_key: str) -> Any:
    env_val = os.getenv(env_key)
    if env_val is None:
        return value
    # basic parsing
    if isinstance(value, bool):
        return env_val.strip().lower() in ("1", "true", "yes", "y", "on")
    if isinstance(value, int):
        try:
            return int(env_val)
        except ValueError:
            return value
    if isinstance(value, float):
        try:
            return float(env_val)
        except ValueError:
            return value
    return env_val


def _env_list(env_key: str) -> List[str]:
    raw = os.getenv(env_key) or ""
    return [x.strip() for x in raw.split(",") if x.strip()]


def tf_minutes(tf: str) -> int:
    tf = (tf or "").strip().lower()
    if tf.endswith("m"):
        return int(tf[:-1])
    if tf.endswith("h"):
        return int(tf[:-1]) * 60
    if tf.endswith("d"):
        return int(tf[:-1]) * 1440
    raise ValueError(f"Unsupported timeframe: {tf}")


@dataclass
class StrategyConfig:
    adx_period: int = 14
    adx_threshold: float = 20.0
    slope_window: int = 14
    slope_smooth: int = 5
    gog_span: int = 5
    swing_left: int = 3
    swing_right: int = 3
    fibo_retr_low: float = 0.382
    fibo_retr_high: float = 0.618

    def signature(self) -> Dict[str, object]:
        return {
            "adx_period": self.adx_period,
            "adx_threshold": self.adx_threshold,
            "slope_window": self.slope_window,
            "slope_smooth": self.slope_smooth,
            "gog_span": self.gog_span,
            "swing_left": self.swing_left,
            "swing_right": self.swing_right,
            "fibo_retr_low": self.fibo_retr_low,
            "fibo_retr_high": self.fibo_retr_high,
        }

    def validate(self) -> None:
        errs = []
        for name in ("adx_period", "slope_smooth", "gog_span"):
            if int(getattr(self, name)) < 1:
                errs.append(f"{name} must be >= 1")
        if int(self.slope_window) < 2:
            errs.append("slope_window must be >= 2")
        for name in ("swing_left", "swing_right"):
            if int(getattr(self, name)) < 0:
                errs.append(f"{name} must be >= 0")
        if float(self.adx_threshold) < 0:
            errs.append("adx_threshold must be >= 0")
        if not (0.0 <= float(self.fibo_retr_low) < float(self.fibo_retr_high) <= 1.0):
            errs.append("fibo retracement ratios must satisfy 0 <= fibo_retr_low < fibo_retr_high <= 1")
        if errs:
            raise ValueError("Invalid strategy config: " + "; ".join(errs))

    def to_params(self) -> IndicatorParams:
        self.validate()
        return IndicatorParams(
            adx_period=int(self.adx_period),
            adx_threshold=float(self.adx_threshold),
            slope_window=int(self.slope_window),
            slope_smooth=int(self.slope_smooth),
            gog_span=int(self.gog_span),
            swing_left=int(self.swing_left),
            swing_right=int(self.swing_right),
            fibo_retr_low=float(self.fibo_retr_low),
            fibo_retr_high=float(self.fibo_retr_high),
        )


@dataclass
class ProviderConfig:
    type: str = "binance"
    market: str = "spot"  # spot|futures
    symbols: List[str] = None
    timeframe: str = "15m"
    candles: int = 500  # Binance caps a klines request at 1000
    poll_interval_s: int = 300
    closed_only: bool = True
    rest_timeout_s: int = 20


@dataclass
class TelegramConfig:
    enabled: bool = True
    token: str = ""
    chat_ids: List[str] = None
    disable_web_page_preview: bool = True


@dataclass
class WebhookConfig:
    enabled: bool = False
    url: str = ""
    secret: str = ""
    timeout_s: int = 10
    headers: Dict[str, str] = None


@dataclass
class AlertsConfig:
    parse_mode: str = "HTML"  # HTML | MarkdownV2
    timezone: str = "UTC"  # UTC or UTC+N / UTC-N
    include_levels: bool = True
    include_reason: bool = True
    footer: str = ""
    dedupe: bool = True


@dataclass
class AppConfig:
    name: str = "Fibo Trend Bot"
    log_level: str = "INFO"


@dataclass
class Config:
    app: AppConfig
    provider: ProviderConfig
    strategy: StrategyConfig
    telegram: TelegramConfig
    webhook: WebhookConfig
    alerts: AlertsConfig


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    cfg = Config(
        app=AppConfig(**raw.get("app", {})),
        provider=ProviderConfig(**raw.get("provider", {})),
        strategy=StrategyConfig(**raw.get("strategy", {})),
        telegram=TelegramConfig(**raw.get("telegram", {})),
        webhook=WebhookConfig(**raw.get("webhook", {})),
        alerts=AlertsConfig(**raw.get("alerts", {})),
    )

    if cfg.provider.symbols is None:
        cfg.provider.symbols = []
    cfg.provider.symbols = [str(s).strip().upper() for s in cfg.provider.symbols if str(s).strip()]
    tf_minutes(cfg.provider.timeframe)
    parse_tz(cfg.alerts.timezone)
    cfg.strategy.validate()

    # env overrides (useful on servers)
    cfg.telegram.token = _env_override(cfg.telegram.token, "TELEGRAM_TOKEN")
    if cfg.telegram.chat_ids is None:
        cfg.telegram.chat_ids = []
    # Allow TELEGRAM_CHAT_IDS="id1,id2"
    chat_env = _env_list("TELEGRAM_CHAT_IDS")
    if chat_env:
        cfg.telegram.chat_ids = chat_env

    cfg.webhook.secret = _env_override(cfg.webhook.secret, "WEBHOOK_SECRET")
    cfg.webhook.url = _env_override(cfg.webhook.url, "WEBHOOK_URL")
    if cfg.webhook.headers is None:
        cfg.webhook.headers = {}

    return cfg
