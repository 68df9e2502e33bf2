# listing_lab/client/bybit.py
import logging
from typing import Any

import ccxt.async_support as ccxt

from listing_lab.client.models import PriceBar

logger = logging.getLogger(__name__)

MAX_KLINES_PER_REQUEST = 200


def to_bybit_symbol(symbol: str) -> str:
    """BTC -> BTC/USDT:USDT (USDT 永续)"""
    return f"{symbol}/USDT:USDT"


class BybitClient:
    """Bybit USDT 永续 K 线获取"""

    def __init__(self) -> None:
        self.exchange: ccxt.bybit | None = None
        self._markets_loaded = False

    async def init(self) -> None:
        if self.exchange is None:
            self.exchange = ccxt.bybit({"options": {"defaultType": "swap"}})

    async def close(self) -> None:
        if self.exchange:
            await self.exchange.close()
            self.exchange = None
            self._markets_loaded = False

    async def has_symbol(self, symbol: str) -> bool:
        assert self.exchange is not None
        if not self._markets_loaded:
            await self.exchange.load_markets()
            self._markets_loaded = True
        return to_bybit_symbol(symbol) in self.exchange.markets

    async def get_hourly_klines(self, symbol: str, start_ms: int, end_ms: int) -> list[PriceBar]:
        """
        获取 [start_ms, end_ms] 区间的 1h K 线

        上币分析只需要几天的数据，单次请求 (200 根) 足够。
        Bybit 未上线的币种返回空列表。
        """
        assert self.exchange is not None

        if not await self.has_symbol(symbol):
            logger.debug(f"{symbol} not listed on Bybit")
            return []

        rows: list[list[Any]] = await self.exchange.fetch_ohlcv(
            to_bybit_symbol(symbol),
            "1h",
            since=start_ms,
            limit=MAX_KLINES_PER_REQUEST,
        )

        bars = []
        for row in rows:
            start, open_, high, low, close = row[0], row[1], row[2], row[3], row[4]
            if start is None or open_ is None or close is None:
                continue
            if start > end_ms:
                continue
            bars.append(
                PriceBar(
                    start=int(start),
                    open=float(open_),
                    high=float(high) if high is not None else float("nan"),
                    low=float(low) if low is not None else float("nan"),
                    close=float(close),
                )
            )
        bars.sort(key=lambda b: b.start)
        return bars
