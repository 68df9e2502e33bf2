from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from listing_lab.client.models import PriceBar
from listing_lab.client.rate_limiter import RateLimiter
from listing_lab.strategy.listing_date import (
    adjust_listing_date,
    discover_listing_date,
    listing_timestamp_ms,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def daily_page(newest: date, count: int) -> list[PriceBar]:
    """Upbit 风格的日线 (最新在前)，KST 09:00 = UTC 00:00"""
    bars = []
    for i in range(count):
        d = newest - timedelta(days=i)
        start = int(datetime(d.year, d.month, d.day, tzinfo=UTC).timestamp() * 1000)
        bars.append(
            PriceBar(start=start, open=1.0, high=1.0, low=1.0, close=1.0, date=d.isoformat())
        )
    return bars


def _client(pages: list[list[PriceBar]]) -> MagicMock:
    client = MagicMock()
    client.get_daily_candles = AsyncMock(side_effect=pages)
    return client


def test_adjust_listing_date():
    assert adjust_listing_date("2024-03-01") == "2024-02-29"
    assert adjust_listing_date("2024-01-01T09:00:00") == "2023-12-31"


def test_listing_timestamp_is_kst_midnight():
    expected = int(datetime(2024, 2, 29, 15, 0, tzinfo=UTC).timestamp() * 1000)
    assert listing_timestamp_ms("2024-03-01") == expected


async def test_partial_page_terminates_after_one_call():
    page = daily_page(date(2025, 6, 1), 150)
    client = _client([page])

    listing_date = await discover_listing_date(
        client, RateLimiter(min_interval_ms=0), "KRW-NEW", now=NOW
    )

    oldest = page[-1].date
    assert listing_date == adjust_listing_date(oldest)
    assert client.get_daily_candles.await_count == 1
    client.get_daily_candles.assert_awaited_with("KRW-NEW", to=NOW, count=200)


async def test_full_page_walks_backwards():
    first = daily_page(date(2025, 6, 1), 200)
    second_newest = date.fromisoformat(first[-1].date) - timedelta(days=1)
    second = daily_page(second_newest, 50)
    client = _client([first, second])

    listing_date = await discover_listing_date(
        client, RateLimiter(min_interval_ms=0), "KRW-OLD", now=NOW
    )

    assert listing_date == adjust_listing_date(second[-1].date)
    assert client.get_daily_candles.await_count == 2

    oldest_start = datetime.fromtimestamp(first[-1].start / 1000, UTC)
    _, kwargs = client.get_daily_candles.call_args
    assert kwargs["to"] == oldest_start - timedelta(days=1)


async def test_stops_after_max_pages():
    pages = []
    newest = date(2025, 6, 1)
    for _ in range(6):
        page = daily_page(newest, 200)
        pages.append(page)
        newest = date.fromisoformat(page[-1].date) - timedelta(days=1)
    client = _client(pages)

    listing_date = await discover_listing_date(
        client, RateLimiter(min_interval_ms=0), "KRW-BTC", now=NOW
    )

    assert client.get_daily_candles.await_count == 5
    assert listing_date == adjust_listing_date(pages[4][-1].date)


async def test_empty_page_after_full_page_keeps_earliest():
    first = daily_page(date(2025, 6, 1), 200)
    client = _client([first, []])

    listing_date = await discover_listing_date(
        client, RateLimiter(min_interval_ms=0), "KRW-ABC", now=NOW
    )

    assert listing_date == adjust_listing_date(first[-1].date)


async def test_no_data_returns_none():
    client = _client([[]])

    listing_date = await discover_listing_date(
        client, RateLimiter(min_interval_ms=0), "KRW-NONE", now=NOW
    )

    assert listing_date is None
