# listing_lab/main.py
import asyncio
import logging
import signal
from pathlib import Path

from listing_lab.client.bybit import BybitClient
from listing_lab.client.rate_limiter import RateLimiter
from listing_lab.client.upbit import UpbitClient
from listing_lab.collector.catalog import MarketCatalog
from listing_lab.config import Config, load_config
from listing_lab.scheduler.base import SchedulerSnapshot
from listing_lab.scheduler.calendar import ListingCalendarScheduler
from listing_lab.scheduler.strategy import ListingStrategyScheduler
from listing_lab.storage.redis_cache import RedisCache
from listing_lab.storage.snapshot_store import (
    DiskSnapshotStore,
    RedisSnapshotStore,
    SnapshotStore,
)
from listing_lab.strategy.analyzer import ListingAnalyzer
from listing_lab.strategy.formatter import format_calendar, format_strategy_summary
from listing_lab.strategy.models import ListingCalendar, ListingStrategyReport

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SUMMARY_CHECK_SECONDS = 60


class ListingLab:
    def __init__(self, config: Config):
        self.config = config
        self.upbit = UpbitClient(base_url=config.upbit.base_url)
        self.bybit = BybitClient()
        # 两个调度器共用 Upbit 节流器：配额按凭证计算
        self.upbit_limiter = RateLimiter(
            min_interval_ms=config.upbit.min_interval_ms,
            max_retries=config.upbit.max_retries,
            retry_backoff_ms=config.upbit.retry_backoff_ms,
        )
        self.bybit_limiter = RateLimiter(
            min_interval_ms=config.bybit.min_interval_ms,
            max_retries=config.bybit.max_retries,
            retry_backoff_ms=config.bybit.retry_backoff_ms,
        )
        self.catalog = MarketCatalog(self.upbit, self.upbit_limiter)
        self.analyzer = ListingAnalyzer(
            self.upbit, self.bybit, self.upbit_limiter, self.bybit_limiter
        )
        self.redis = RedisCache(config.redis.url) if config.redis.url else None
        self.strategy_scheduler: ListingStrategyScheduler | None = None
        self.calendar_scheduler: ListingCalendarScheduler | None = None
        self.running = False

    def _stores(self, cache_key: str, persist_path: str) -> list[SnapshotStore]:
        stores: list[SnapshotStore] = []
        if self.redis is not None and self.redis.connected:
            stores.append(
                RedisSnapshotStore(self.redis, cache_key, ttl_seconds=self.config.redis.ttl_seconds)
            )
        stores.append(DiskSnapshotStore(Path(persist_path)))
        return stores

    async def init(self) -> None:
        await self.upbit.init()
        await self.bybit.init()

        if self.redis is not None:
            try:
                await self.redis.init()
            except Exception as e:
                logger.warning(f"Redis initialization failed, using disk cache only: {e}")
        else:
            logger.warning("Redis URL not provided, snapshots will use disk only")

        strategy_cfg = self.config.strategy
        self.strategy_scheduler = ListingStrategyScheduler(
            self.analyzer,
            self.catalog.list_assets,
            stores=self._stores(strategy_cfg.cache_key, strategy_cfg.persist_path),
            interval_seconds=strategy_cfg.interval_hours * 3600,
            months=strategy_cfg.months,
            max_coins=strategy_cfg.max_coins,
            cooldown_ms=strategy_cfg.cooldown_ms,
        )

        calendar_cfg = self.config.calendar
        self.calendar_scheduler = ListingCalendarScheduler(
            self.analyzer,
            self.catalog.list_assets,
            stores=self._stores(calendar_cfg.cache_key, calendar_cfg.persist_path),
            interval_seconds=calendar_cfg.interval_hours * 3600,
            months=calendar_cfg.months,
            max_coins=calendar_cfg.max_coins,
            cooldown_ms=calendar_cfg.cooldown_ms,
        )

    def get_strategy_snapshot(self) -> SchedulerSnapshot[ListingStrategyReport] | None:
        if self.strategy_scheduler is None:
            return None
        return self.strategy_scheduler.get_snapshot()

    def get_calendar_snapshot(self) -> SchedulerSnapshot[ListingCalendar] | None:
        if self.calendar_scheduler is None:
            return None
        return self.calendar_scheduler.get_snapshot()

    async def _refresh_catalog(self) -> None:
        """定时刷新市场列表"""
        interval = self.config.catalog.refresh_minutes * 60
        while self.running:
            await asyncio.sleep(interval)
            await self.catalog.load()

    async def _log_new_snapshots(self) -> None:
        """有新报告时输出摘要"""
        last_seen: dict[str, object] = {}
        while self.running:
            await asyncio.sleep(SUMMARY_CHECK_SECONDS)
            strategy = self.get_strategy_snapshot()
            if strategy and strategy.data is not None:
                if last_seen.get("strategy") is not strategy.data:
                    last_seen["strategy"] = strategy.data
                    logger.info("\n" + format_strategy_summary(strategy.data))

            calendar = self.get_calendar_snapshot()
            if calendar and calendar.data is not None:
                if last_seen.get("calendar") is not calendar.data:
                    last_seen["calendar"] = calendar.data
                    logger.info("\n" + format_calendar(calendar.data))

    async def run(self) -> None:
        await self.init()
        assert self.strategy_scheduler is not None
        assert self.calendar_scheduler is not None
        self.running = True

        await self.catalog.load()
        await self.strategy_scheduler.start()
        await self.calendar_scheduler.start()

        tasks = [
            asyncio.create_task(self._refresh_catalog()),
            asyncio.create_task(self._log_new_snapshots()),
        ]

        logger.info("Listing Lab started")

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        await stop_event.wait()

        self.running = False
        for task in tasks:
            task.cancel()
        self.strategy_scheduler.stop()
        self.calendar_scheduler.stop()
        await self.upbit.close()
        await self.bybit.close()
        if self.redis is not None:
            await self.redis.close()

        logger.info("Listing Lab stopped")


async def main() -> None:
    config_path = Path("config.yaml")
    config = load_config(config_path) if config_path.exists() else Config()
    logging.getLogger().setLevel(config.log_level.upper())
    app = ListingLab(config)
    await app.run()


if __name__ == "__main__":
    asyncio.run(main())
