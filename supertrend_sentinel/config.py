from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List
import os
import yaml

from .errors import ConfigError
from .timeutil import parse_tz


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


@dataclass
class AppConfig:
    name: str = "SuperTrend Sentinel"
    log_level: str = "INFO"


@dataclass
class ProviderConfig:
    type: str = "binance"
    market: str = "futures"  # futures|spot
    contract_type: str = "PERPETUAL"
    symbols: List[str] = None
    limit: int = 500
    rest_timeout_s: int = 20
    concurrency: int = 4
    timezone: str = "UTC"  # wall clock for candle timestamps, e.g. UTC+8


@dataclass
class IndicatorConfig:
    supertrend_period: int = 10
    supertrend_multiplier: float = 3.0


@dataclass
class ReplayConfig:
    stride: int = 20
    warmup_index: int = 100
    tail_reserve: int = 50
    short_series: str = "clamp"  # clamp | fail

    def validate(self) -> None:
        errs = []
        if int(self.stride) < 1:
            errs.append("replay.stride must be >= 1")
        if int(self.warmup_index) < 0:
            errs.append("replay.warmup_index must be >= 0")
        if int(self.tail_reserve) < 0:
            errs.append("replay.tail_reserve must be >= 0")
        if self.short_series not in ("clamp", "fail"):
            errs.append("replay.short_series must be 'clamp' or 'fail'")
        if errs:
            raise ConfigError("Replay config violation: " + "; ".join(errs))


@dataclass
class ClassifierConfig:
    target: str = ""  # package.module:attr


@dataclass
class Config:
    app: AppConfig
    provider: ProviderConfig
    indicator: IndicatorConfig
    replay: ReplayConfig
    classifier: ClassifierConfig


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    cfg = Config(
        app=AppConfig(**raw.get("app", {})),
        provider=ProviderConfig(**raw.get("provider", {})),
        indicator=IndicatorConfig(**raw.get("indicator", {})),
        replay=ReplayConfig(**raw.get("replay", {})),
        classifier=ClassifierConfig(**raw.get("classifier", {})),
    )

    # env overrides (useful on servers)
    cfg.app.log_level = _env_override(cfg.app.log_level, "SENTINEL_LOG_LEVEL")
    cfg.provider.timezone = _env_override(cfg.provider.timezone, "SENTINEL_TIMEZONE")
    cfg.classifier.target = _env_override(cfg.classifier.target, "SENTINEL_CLASSIFIER")
    if cfg.provider.symbols is None:
        cfg.provider.symbols = []

    # Allow SENTINEL_SYMBOLS="BTCUSDT,ETHUSDT"
    sym_env = os.getenv("SENTINEL_SYMBOLS")
    if sym_env:
        cfg.provider.symbols = [x.strip() for x in sym_env.split(",") if x.strip()]
    cfg.provider.symbols = [str(s).strip().upper() for s in cfg.provider.symbols if str(s).strip()]

    try:
        parse_tz(cfg.provider.timezone)
    except ValueError as e:
        raise ConfigError(str(e)) from e
    cfg.replay.validate()
    return cfg
