# listing_lab/strategy/analyzer.py
import asyncio
import calendar
import logging
from collections.abc import Sequence
from datetime import UTC, datetime

from listing_lab.client.bybit import BybitClient
from listing_lab.client.models import Asset
from listing_lab.client.rate_limiter import RateLimiter
from listing_lab.client.upbit import UpbitClient
from listing_lab.strategy.backtest import SummaryAccumulator, evaluate_listing
from listing_lab.strategy.listing_date import discover_listing_date, listing_timestamp_ms
from listing_lab.strategy.models import (
    CoinListingAnalysis,
    ListingCalendar,
    ListingCalendarEntry,
    ListingStrategyReport,
)
from listing_lab.strategy.scenarios import (
    FETCH_MARGIN_HOURS,
    HOLD_HOURS,
    LISTING_SCENARIOS,
    MAX_ENTRY_HOURS,
    MS_PER_HOUR,
)

logger = logging.getLogger(__name__)


def months_ago(now: datetime, months: int) -> datetime:
    """往前推 N 个自然月，日期超出当月天数时取月末"""
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


class ListingAnalyzer:
    """上币日期发现 + 场景回测"""

    def __init__(
        self,
        upbit: UpbitClient,
        bybit: BybitClient,
        upbit_limiter: RateLimiter,
        bybit_limiter: RateLimiter,
    ):
        self.upbit = upbit
        self.bybit = bybit
        self.upbit_limiter = upbit_limiter
        self.bybit_limiter = bybit_limiter

    async def discover_listing_date(self, asset: Asset, now: datetime | None = None) -> str | None:
        return await discover_listing_date(self.upbit, self.upbit_limiter, asset.market, now)

    async def analyze_coin(
        self,
        asset: Asset,
        cutoff: datetime,
        accumulator: SummaryAccumulator,
        now: datetime | None = None,
    ) -> CoinListingAnalysis | None:
        """
        分析单个币种

        Returns:
            至少有一个场景结果时返回分析，否则 None (未上币 / 非近期上币 / 数据不足)
        """
        listing_date = await self.discover_listing_date(asset, now)
        if listing_date is None:
            return None

        listing_ms = listing_timestamp_ms(listing_date)
        if listing_ms < cutoff.timestamp() * 1000:
            return None

        fetch_start = listing_ms - MS_PER_HOUR
        fetch_end = listing_ms + (MAX_ENTRY_HOURS + HOLD_HOURS + FETCH_MARGIN_HOURS) * MS_PER_HOUR
        bars = await self.bybit_limiter.execute(
            lambda: self.bybit.get_hourly_klines(asset.symbol, fetch_start, fetch_end)
        )
        if not bars:
            logger.debug(f"{asset.symbol}: no hourly klines")
            return None

        results = evaluate_listing(listing_ms, bars, accumulator)
        if not results:
            return None

        return CoinListingAnalysis(
            symbol=asset.symbol,
            market=asset.market,
            name=asset.name,
            korean_name=asset.korean_name,
            listing_date=listing_date,
            scenarios=tuple(results),
        )

    async def build_strategy_report(
        self,
        assets: Sequence[Asset],
        months: int = 3,
        max_coins: int = 150,
        cooldown_ms: int = 120,
        now: datetime | None = None,
    ) -> ListingStrategyReport:
        now = now or datetime.now(UTC)
        cutoff = months_ago(now, months)
        accumulator = SummaryAccumulator()
        analyzed: list[CoinListingAnalysis] = []

        for asset in assets[:max_coins]:
            try:
                analysis = await self.analyze_coin(asset, cutoff, accumulator, now)
                if analysis is not None:
                    analyzed.append(analysis)
            except Exception as e:
                logger.error(f"Failed to analyze listing strategy for {asset.symbol}: {e}")
            await asyncio.sleep(cooldown_ms / 1000)

        logger.info(f"Listing strategy report: {len(analyzed)} coins analyzed")
        return ListingStrategyReport(
            generated_at=now.isoformat(),
            months=months,
            coins_analyzed=len(analyzed),
            scenario_definitions=LISTING_SCENARIOS,
            summary=tuple(accumulator.summaries()),
            coins=tuple(analyzed),
        )

    async def build_calendar(
        self,
        assets: Sequence[Asset],
        months: int = 6,
        max_coins: int = 30,
        cooldown_ms: int = 100,
        now: datetime | None = None,
    ) -> ListingCalendar:
        now = now or datetime.now(UTC)
        cutoff_ms = months_ago(now, months).timestamp() * 1000
        entries: list[ListingCalendarEntry] = []

        for asset in assets[:max_coins]:
            try:
                listing_date = await self.discover_listing_date(asset, now)
                if listing_date is not None:
                    entries.append(
                        ListingCalendarEntry(
                            symbol=asset.symbol,
                            name=asset.name,
                            korean_name=asset.korean_name,
                            market=asset.market,
                            listing_date=listing_date,
                            is_recent=listing_timestamp_ms(listing_date) > cutoff_ms,
                        )
                    )
            except Exception as e:
                logger.error(f"Listing calendar: failed to fetch {asset.symbol}: {e}")
            await asyncio.sleep(cooldown_ms / 1000)

        entries.sort(key=lambda e: e.listing_date, reverse=True)
        return ListingCalendar(
            entries=tuple(entries),
            recent_count=sum(1 for e in entries if e.is_recent),
            last_updated=now.isoformat(),
        )
