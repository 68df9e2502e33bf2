# listing_lab/collector/catalog.py
import logging

from listing_lab.client.models import Asset
from listing_lab.client.rate_limiter import RateLimiter
from listing_lab.client.upbit import UpbitClient

logger = logging.getLogger(__name__)

QUOTE_PREFIX = "KRW-"


class MarketCatalog:
    """Upbit KRW 市场列表，按 24h 成交额降序"""

    def __init__(self, client: UpbitClient, limiter: RateLimiter):
        self.client = client
        self.limiter = limiter
        self._assets: list[Asset] = []

    def list_assets(self) -> list[Asset]:
        return list(self._assets)

    async def load(self) -> int:
        """
        刷新市场列表

        失败时保留上一次的列表。

        Returns:
            当前币种数量
        """
        try:
            markets = await self.limiter.execute(self.client.get_markets)
            krw_markets = [m for m in markets if m["market"].startswith(QUOTE_PREFIX)]
            market_ids = [m["market"] for m in krw_markets]
            trade_values = await self.limiter.execute(
                lambda: self.client.get_trade_values(market_ids)
            )
        except Exception as e:
            logger.error(f"Failed to load markets: {e}")
            return len(self._assets)

        assets = [
            Asset(
                symbol=m["market"][len(QUOTE_PREFIX) :],
                market=m["market"],
                name=m.get("english_name", ""),
                korean_name=m.get("korean_name", ""),
            )
            for m in krw_markets
        ]
        assets.sort(key=lambda a: trade_values.get(a.market, 0), reverse=True)
        self._assets = assets

        logger.info(f"Loaded {len(assets)} KRW markets")
        return len(assets)
