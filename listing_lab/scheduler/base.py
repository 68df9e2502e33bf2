# listing_lab/scheduler/base.py
import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Generic, TypeVar

from listing_lab.client.models import Asset
from listing_lab.storage.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INTERVAL_SECONDS = 3 * 3600


class SchedulerStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"


@dataclass(frozen=True)
class SchedulerSnapshot(Generic[T]):
    status: SchedulerStatus
    last_updated: datetime | None
    next_run_at: datetime | None
    data: T | None
    error: str | None = None


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None


class TieredScheduler(ABC, Generic[T]):
    """
    定时重算 + 多级缓存

    启动时按顺序尝试各缓存层 (Redis -> 磁盘)，命中第一个非空快照即停止，
    随后无论是否命中都立即触发一次计算。每次计算结束后 (成功或失败)
    安排下一次运行。运行中再次触发会被直接丢弃。
    """

    name = "TieredScheduler"

    def __init__(
        self,
        list_assets: Callable[[], Sequence[Asset]],
        stores: Sequence[SnapshotStore] = (),
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ):
        self.list_assets = list_assets
        self.stores = list(stores)
        self.interval_seconds = interval_seconds

        self.status = SchedulerStatus.IDLE
        self.data: T | None = None
        self.last_updated: datetime | None = None
        self.next_run_at: datetime | None = None
        self.last_error: str | None = None

        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._stopped = True

    @abstractmethod
    async def compute(self, assets: Sequence[Asset]) -> T:
        pass

    @abstractmethod
    def serialize(self, data: T) -> dict[str, Any]:
        pass

    @abstractmethod
    def deserialize(self, payload: dict[str, Any]) -> T:
        pass

    def timestamp_of(self, data: T) -> datetime | None:
        """快照中缺少 last_updated 时，从数据本身推断时间"""
        return None

    async def start(self) -> None:
        self._stopped = False
        if self.data is None:
            await self.warm_start()
        self._spawn_run()
        logger.info(f"{self.name} started")

    def stop(self) -> None:
        """取消下一次定时运行，不中断正在进行的计算"""
        self._stopped = True
        if self._timer:
            self._timer.cancel()
            self._timer = None
        self.next_run_at = None
        logger.info(f"{self.name} stopped")

    def get_snapshot(self) -> SchedulerSnapshot[T]:
        return SchedulerSnapshot(
            status=self.status,
            last_updated=self.last_updated,
            next_run_at=self.next_run_at,
            data=self.data,
            error=self.last_error if self.status is SchedulerStatus.ERROR else None,
        )

    async def join(self) -> None:
        """等待当前已触发的运行结束"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def warm_start(self) -> bool:
        for store in self.stores:
            payload = await store.load()
            if not payload:
                continue
            try:
                data = self.deserialize(payload)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"{self.name}: invalid snapshot in {store.name}: {e}")
                continue

            self.data = data
            self.last_updated = (
                _parse_timestamp(payload.get("last_updated"))
                or self.timestamp_of(data)
                or datetime.now(UTC)
            )
            logger.info(f"{self.name}: loaded cached snapshot from {store.name}")
            return True

        logger.info(f"{self.name}: no cached snapshot found, will compute fresh")
        return False

    def _spawn_run(self) -> None:
        self._timer = None
        task = asyncio.create_task(self._trigger_run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _trigger_run(self) -> None:
        if not await self.run_once():
            return
        self._schedule_next_run()

    def _schedule_next_run(self) -> None:
        if self._stopped:
            return
        if self._timer:
            self._timer.cancel()
        self.next_run_at = datetime.now(UTC) + timedelta(seconds=self.interval_seconds)
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.interval_seconds, self._spawn_run)

    def _fail(self, error: Exception) -> None:
        logger.error(f"{self.name}: analysis failed: {error}")
        self.status = SchedulerStatus.ERROR
        self.last_error = str(error) or error.__class__.__name__

    async def run_once(self) -> bool:
        """
        执行一次计算

        Returns:
            False 表示已有运行在进行，本次被丢弃
        """
        if self.status is SchedulerStatus.RUNNING:
            return False

        try:
            assets = list(self.list_assets())
        except Exception as e:
            self._fail(e)
            return True

        if not assets:
            logger.warning(f"{self.name}: no supported coins available yet")
            return True

        self.status = SchedulerStatus.RUNNING
        self.last_error = None

        try:
            data = await self.compute(assets)
        except Exception as e:
            self._fail(e)
            return True

        self.data = data
        self.last_updated = datetime.now(UTC)
        await self._persist(data)
        self.status = SchedulerStatus.IDLE
        return True

    async def _persist(self, data: T) -> None:
        payload = self.serialize(data)
        if self.last_updated is not None:
            payload["last_updated"] = self.last_updated.isoformat()
        for store in self.stores:
            try:
                await store.save(payload)
            except Exception as e:
                logger.error(f"{self.name}: failed to persist snapshot to {store.name}: {e}")
