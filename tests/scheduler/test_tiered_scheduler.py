import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from listing_lab.client.models import Asset
from listing_lab.scheduler.base import SchedulerStatus
from listing_lab.scheduler.strategy import ListingStrategyScheduler
from listing_lab.storage.snapshot_store import DiskSnapshotStore
from listing_lab.strategy.backtest import SummaryAccumulator
from listing_lab.strategy.models import ListingStrategyReport
from listing_lab.strategy.scenarios import LISTING_SCENARIOS

ASSETS = [Asset(symbol="BTC", market="KRW-BTC", name="Bitcoin", korean_name="비트코인")]


def make_report(generated_at: str = "2025-06-01T00:00:00+00:00") -> ListingStrategyReport:
    return ListingStrategyReport(
        generated_at=generated_at,
        months=3,
        coins_analyzed=0,
        scenario_definitions=LISTING_SCENARIOS,
        summary=tuple(SummaryAccumulator().summaries()),
        coins=(),
    )


def make_store(payload=None) -> MagicMock:
    store = MagicMock()
    store.name = "mock"
    store.load = AsyncMock(return_value=payload)
    store.save = AsyncMock(return_value=True)
    return store


@pytest.fixture
def analyzer():
    analyzer = MagicMock()
    analyzer.build_strategy_report = AsyncMock(return_value=make_report())
    return analyzer


async def test_initial_snapshot(analyzer):
    scheduler = ListingStrategyScheduler(analyzer, lambda: ASSETS)
    snapshot = scheduler.get_snapshot()

    assert snapshot.status is SchedulerStatus.IDLE
    assert snapshot.last_updated is None
    assert snapshot.next_run_at is None
    assert snapshot.data is None
    assert snapshot.error is None


async def test_run_once_success_persists_to_all_stores(analyzer, tmp_path):
    remote = make_store()
    disk = DiskSnapshotStore(tmp_path / "strategy.json")
    scheduler = ListingStrategyScheduler(
        analyzer, lambda: ASSETS, stores=[remote, disk], months=2, max_coins=5, cooldown_ms=0
    )

    assert await scheduler.run_once() is True

    snapshot = scheduler.get_snapshot()
    assert snapshot.status is SchedulerStatus.IDLE
    assert snapshot.data == make_report()
    assert snapshot.last_updated is not None
    analyzer.build_strategy_report.assert_awaited_once_with(
        ASSETS, months=2, max_coins=5, cooldown_ms=0
    )

    payload = remote.save.call_args.args[0]
    assert payload["generated_at"] == "2025-06-01T00:00:00+00:00"
    assert payload["last_updated"] == snapshot.last_updated.isoformat()
    assert await disk.load() == payload


async def test_empty_catalog_is_skipped(analyzer):
    scheduler = ListingStrategyScheduler(analyzer, lambda: [])

    assert await scheduler.run_once() is True

    assert scheduler.status is SchedulerStatus.IDLE
    assert scheduler.last_updated is None
    analyzer.build_strategy_report.assert_not_called()


async def test_compute_failure_keeps_previous_report(analyzer):
    scheduler = ListingStrategyScheduler(analyzer, lambda: ASSETS)
    await scheduler.run_once()
    first_updated = scheduler.last_updated

    analyzer.build_strategy_report = AsyncMock(side_effect=RuntimeError("upstream down"))
    await scheduler.run_once()

    snapshot = scheduler.get_snapshot()
    assert snapshot.status is SchedulerStatus.ERROR
    assert snapshot.error == "upstream down"
    assert snapshot.data == make_report()
    assert snapshot.last_updated == first_updated


async def test_error_cleared_on_next_success(analyzer):
    scheduler = ListingStrategyScheduler(analyzer, lambda: ASSETS)
    analyzer.build_strategy_report = AsyncMock(side_effect=[RuntimeError("boom"), make_report()])

    await scheduler.run_once()
    assert scheduler.get_snapshot().error == "boom"

    await scheduler.run_once()
    snapshot = scheduler.get_snapshot()
    assert snapshot.status is SchedulerStatus.IDLE
    assert snapshot.error is None


async def test_catalog_failure_sets_error(analyzer):
    def broken_catalog():
        raise RuntimeError("catalog unavailable")

    scheduler = ListingStrategyScheduler(analyzer, broken_catalog)
    await scheduler.run_once()

    assert scheduler.status is SchedulerStatus.ERROR
    assert scheduler.get_snapshot().error == "catalog unavailable"


async def test_store_failure_does_not_fail_run(analyzer):
    store = make_store()
    store.save = AsyncMock(side_effect=OSError("disk full"))
    scheduler = ListingStrategyScheduler(analyzer, lambda: ASSETS, stores=[store])

    await scheduler.run_once()

    assert scheduler.status is SchedulerStatus.IDLE
    assert scheduler.data is not None


async def test_warm_start_prefers_first_store(analyzer):
    remote = make_store(make_report("2025-05-01T00:00:00+00:00").to_dict())
    disk = make_store(make_report("2025-04-01T00:00:00+00:00").to_dict())
    scheduler = ListingStrategyScheduler(analyzer, lambda: ASSETS, stores=[remote, disk])

    assert await scheduler.warm_start() is True

    assert scheduler.data.generated_at == "2025-05-01T00:00:00+00:00"
    assert scheduler.last_updated == datetime(2025, 5, 1, tzinfo=UTC)
    disk.load.assert_not_called()


async def test_warm_start_falls_back_to_disk(analyzer):
    payload = make_report("2025-04-01T00:00:00+00:00").to_dict()
    payload["last_updated"] = "2025-04-01T00:05:00+00:00"
    remote = make_store(None)
    disk = make_store(payload)
    scheduler = ListingStrategyScheduler(analyzer, lambda: ASSETS, stores=[remote, disk])

    assert await scheduler.warm_start() is True
    assert scheduler.last_updated == datetime(2025, 4, 1, 0, 5, tzinfo=UTC)


async def test_warm_start_skips_invalid_payload(analyzer):
    scheduler = ListingStrategyScheduler(
        analyzer, lambda: ASSETS, stores=[make_store({"unexpected": True})]
    )

    assert await scheduler.warm_start() is False
    assert scheduler.data is None


async def test_start_serves_warm_data_then_recomputes(analyzer):
    cached = make_report("2025-05-01T00:00:00+00:00")
    scheduler = ListingStrategyScheduler(
        analyzer, lambda: ASSETS, stores=[make_store(cached.to_dict())]
    )

    await scheduler.start()
    assert scheduler.get_snapshot().data == cached

    await scheduler.join()
    scheduler.stop()

    assert scheduler.get_snapshot().data == make_report()
    analyzer.build_strategy_report.assert_awaited_once()


async def test_start_twice_never_overlaps(analyzer):
    gate = asyncio.Event()
    calls = 0

    async def slow_build(*args, **kwargs):
        nonlocal calls
        calls += 1
        await gate.wait()
        return make_report()

    analyzer.build_strategy_report = slow_build
    scheduler = ListingStrategyScheduler(analyzer, lambda: ASSETS)

    await scheduler.start()
    await scheduler.start()
    for _ in range(5):
        await asyncio.sleep(0)

    assert scheduler.status is SchedulerStatus.RUNNING
    assert calls == 1

    gate.set()
    await scheduler.join()

    assert scheduler.status is SchedulerStatus.IDLE
    assert calls == 1
    scheduler.stop()


async def test_next_run_scheduled_after_run(analyzer):
    scheduler = ListingStrategyScheduler(analyzer, lambda: ASSETS, interval_seconds=3600)

    await scheduler.start()
    await scheduler.join()

    snapshot = scheduler.get_snapshot()
    assert snapshot.next_run_at is not None
    assert 3590 <= (snapshot.next_run_at - datetime.now(UTC)).total_seconds() <= 3600
    assert scheduler._timer is not None

    scheduler.stop()
    assert scheduler._timer is None
    assert scheduler.get_snapshot().next_run_at is None


async def test_next_run_scheduled_after_failure(analyzer):
    analyzer.build_strategy_report = AsyncMock(side_effect=RuntimeError("boom"))
    scheduler = ListingStrategyScheduler(analyzer, lambda: ASSETS, interval_seconds=3600)

    await scheduler.start()
    await scheduler.join()

    assert scheduler.status is SchedulerStatus.ERROR
    assert scheduler.next_run_at is not None
    scheduler.stop()


async def test_timer_fires_next_run(analyzer):
    scheduler = ListingStrategyScheduler(analyzer, lambda: ASSETS, interval_seconds=0.05)

    await scheduler.start()
    await scheduler.join()
    await asyncio.sleep(0.1)
    await scheduler.join()
    scheduler.stop()

    assert analyzer.build_strategy_report.await_count >= 2


async def test_stop_during_run_prevents_rescheduling(analyzer):
    gate = asyncio.Event()

    async def slow_build(*args, **kwargs):
        await gate.wait()
        return make_report()

    analyzer.build_strategy_report = slow_build
    scheduler = ListingStrategyScheduler(analyzer, lambda: ASSETS, interval_seconds=3600)

    await scheduler.start()
    await asyncio.sleep(0)
    scheduler.stop()

    gate.set()
    await scheduler.join()

    # 正在进行的计算不会被中断
    assert scheduler.data == make_report()
    assert scheduler._timer is None
    assert scheduler.next_run_at is None


async def test_empty_catalog_on_start_keeps_idle(analyzer):
    scheduler = ListingStrategyScheduler(analyzer, lambda: [], interval_seconds=3600)

    await scheduler.start()
    await scheduler.join()

    snapshot = scheduler.get_snapshot()
    assert snapshot.status is SchedulerStatus.IDLE
    assert snapshot.last_updated is None
    assert snapshot.next_run_at is not None
    scheduler.stop()
