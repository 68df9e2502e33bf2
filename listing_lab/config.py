# listing_lab/config.py
from pathlib import Path

import yaml
from pydantic import BaseModel


class UpbitConfig(BaseModel):
    base_url: str = "https://api.upbit.com"
    min_interval_ms: int = 350
    max_retries: int = 3
    retry_backoff_ms: int = 800


class BybitConfig(BaseModel):
    min_interval_ms: int = 100
    max_retries: int = 3
    retry_backoff_ms: int = 800


class RedisConfig(BaseModel):
    url: str | None = None
    ttl_seconds: int | None = None


class CatalogConfig(BaseModel):
    refresh_minutes: int = 60


class StrategyConfig(BaseModel):
    interval_hours: float = 3
    months: int = 3
    max_coins: int = 150
    cooldown_ms: int = 120
    persist_path: str = "data/listing_strategy.json"
    cache_key: str = "listing-strategy:report"


class CalendarConfig(BaseModel):
    interval_hours: float = 3
    months: int = 6
    max_coins: int = 30
    cooldown_ms: int = 100
    persist_path: str = "data/listing_calendar.json"
    cache_key: str = "listing-calendar:entries"


class Config(BaseModel):
    upbit: UpbitConfig = UpbitConfig()
    bybit: BybitConfig = BybitConfig()
    redis: RedisConfig = RedisConfig()
    catalog: CatalogConfig = CatalogConfig()
    strategy: StrategyConfig = StrategyConfig()
    calendar: CalendarConfig = CalendarConfig()
    log_level: str = "INFO"


def load_config(path: Path) -> Config:
    with open(path) as f:
        data = yaml.safe_load(f)
    return Config(**(data or {}))
