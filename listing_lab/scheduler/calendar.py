# listing_lab/scheduler/calendar.py
from collections.abc import Callable, Sequence
from typing import Any

from listing_lab.client.models import Asset
from listing_lab.scheduler.base import DEFAULT_INTERVAL_SECONDS, TieredScheduler
from listing_lab.storage.snapshot_store import SnapshotStore
from listing_lab.strategy.analyzer import ListingAnalyzer
from listing_lab.strategy.models import ListingCalendar


class ListingCalendarScheduler(TieredScheduler[ListingCalendar]):
    """上币日历"""

    name = "ListingCalendarScheduler"

    def __init__(
        self,
        analyzer: ListingAnalyzer,
        list_assets: Callable[[], Sequence[Asset]],
        stores: Sequence[SnapshotStore] = (),
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        months: int = 6,
        max_coins: int = 30,
        cooldown_ms: int = 100,
    ):
        super().__init__(list_assets, stores, interval_seconds)
        self.analyzer = analyzer
        self.months = months
        self.max_coins = max_coins
        self.cooldown_ms = cooldown_ms

    @property
    def calendar(self) -> ListingCalendar | None:
        return self.data

    async def compute(self, assets: Sequence[Asset]) -> ListingCalendar:
        return await self.analyzer.build_calendar(
            assets,
            months=self.months,
            max_coins=self.max_coins,
            cooldown_ms=self.cooldown_ms,
        )

    def serialize(self, data: ListingCalendar) -> dict[str, Any]:
        return data.to_dict()

    def deserialize(self, payload: dict[str, Any]) -> ListingCalendar:
        return ListingCalendar.from_dict(payload)
