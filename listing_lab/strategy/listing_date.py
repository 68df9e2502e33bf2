# listing_lab/strategy/listing_date.py
import logging
from datetime import UTC, date, datetime, timedelta, timezone
from functools import partial

from listing_lab.client.models import PriceBar
from listing_lab.client.rate_limiter import RateLimiter
from listing_lab.client.upbit import UpbitClient

logger = logging.getLogger(__name__)

KST = timezone(timedelta(hours=9))

DAILY_PAGE_SIZE = 200
MAX_PAGES = 5


def adjust_listing_date(kst_date: str) -> str:
    """Upbit 最早日线日期比实际首个交易日晚一天，往前修正一天"""
    return (date.fromisoformat(kst_date[:10]) - timedelta(days=1)).isoformat()


def listing_timestamp_ms(listing_date: str) -> int:
    """上币日期 (KST 00:00) 转毫秒时间戳"""
    dt = datetime.fromisoformat(listing_date[:10]).replace(tzinfo=KST)
    return int(dt.timestamp() * 1000)


def _kst_date(bar: PriceBar) -> str:
    if bar.date:
        return bar.date
    return datetime.fromtimestamp(bar.start / 1000, KST).strftime("%Y-%m-%d")


async def discover_listing_date(
    client: UpbitClient,
    limiter: RateLimiter,
    market: str,
    now: datetime | None = None,
) -> str | None:
    """
    向前翻页查找最早日线，推算上币日期

    每页最多 200 根；满页说明可能还有更早数据，游标移到最早一根的前一天继续，
    直到出现不满页、空页或达到 MAX_PAGES。

    Returns:
        修正后的上币日期 (YYYY-MM-DD)，从未取到数据时为 None
    """
    cursor = now or datetime.now(UTC)
    earliest: PriceBar | None = None

    for page_no in range(1, MAX_PAGES + 1):
        page = await limiter.execute(
            partial(client.get_daily_candles, market, to=cursor, count=DAILY_PAGE_SIZE)
        )
        if not page:
            break

        oldest = min(page, key=lambda b: b.start)
        if earliest is None or oldest.start < earliest.start:
            earliest = oldest

        if len(page) < DAILY_PAGE_SIZE:
            break

        cursor = datetime.fromtimestamp(oldest.start / 1000, UTC) - timedelta(days=1)
        logger.debug(f"{market}: full page {page_no}, continuing before {cursor.date()}")

    if earliest is None:
        return None
    return adjust_listing_date(_kst_date(earliest))
