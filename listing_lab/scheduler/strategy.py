# listing_lab/scheduler/strategy.py
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from listing_lab.client.models import Asset
from listing_lab.scheduler.base import DEFAULT_INTERVAL_SECONDS, TieredScheduler
from listing_lab.storage.snapshot_store import SnapshotStore
from listing_lab.strategy.analyzer import ListingAnalyzer
from listing_lab.strategy.models import ListingStrategyReport


class ListingStrategyScheduler(TieredScheduler[ListingStrategyReport]):
    """上币做空场景报告"""

    name = "ListingStrategyScheduler"

    def __init__(
        self,
        analyzer: ListingAnalyzer,
        list_assets: Callable[[], Sequence[Asset]],
        stores: Sequence[SnapshotStore] = (),
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        months: int = 3,
        max_coins: int = 150,
        cooldown_ms: int = 120,
    ):
        super().__init__(list_assets, stores, interval_seconds)
        self.analyzer = analyzer
        self.months = months
        self.max_coins = max_coins
        self.cooldown_ms = cooldown_ms

    @property
    def report(self) -> ListingStrategyReport | None:
        return self.data

    async def compute(self, assets: Sequence[Asset]) -> ListingStrategyReport:
        return await self.analyzer.build_strategy_report(
            assets,
            months=self.months,
            max_coins=self.max_coins,
            cooldown_ms=self.cooldown_ms,
        )

    def serialize(self, data: ListingStrategyReport) -> dict[str, Any]:
        return data.to_dict()

    def deserialize(self, payload: dict[str, Any]) -> ListingStrategyReport:
        return ListingStrategyReport.from_dict(payload)

    def timestamp_of(self, data: ListingStrategyReport) -> datetime | None:
        try:
            return datetime.fromisoformat(data.generated_at)
        except ValueError:
            return None
