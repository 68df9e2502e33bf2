"""交易所 API 数据模型"""

from dataclasses import dataclass


@dataclass(frozen=True)
class PriceBar:
    """K 线数据 (start 为毫秒时间戳)"""

    start: int
    open: float
    high: float
    low: float
    close: float
    date: str | None = None  # 日线的 KST 日期 (YYYY-MM-DD)


@dataclass(frozen=True)
class Asset:
    """Upbit KRW 市场币种"""

    symbol: str
    market: str
    name: str
    korean_name: str
