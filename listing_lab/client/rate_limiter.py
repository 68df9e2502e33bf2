# listing_lab/client/rate_limiter.py
import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

import aiohttp
import ccxt.async_support as ccxt

logger = logging.getLogger(__name__)

T = TypeVar("T")

HTTP_TOO_MANY_REQUESTS = 429


def is_rate_limited(error: BaseException) -> bool:
    """是否为限流错误 (HTTP 429)"""
    # RateLimitExceeded 是 DDoSProtection 的子类
    if isinstance(error, ccxt.DDoSProtection):
        return True
    if isinstance(error, aiohttp.ClientResponseError):
        return error.status == HTTP_TOO_MANY_REQUESTS
    return getattr(error, "status", None) == HTTP_TOO_MANY_REQUESTS


class RateLimiter:
    """
    上游 API 调用节流器

    - 两次调用之间至少间隔 min_interval_ms (同一实例的所有调用方共享)
    - 仅对限流错误重试，线性退避: retry_backoff_ms * attempt
    - 超过 max_retries 次限流后抛出最后一次错误
    """

    def __init__(
        self,
        min_interval_ms: int = 350,
        max_retries: int = 3,
        retry_backoff_ms: int = 800,
    ):
        self.min_interval_ms = min_interval_ms
        self.max_retries = max_retries
        self.retry_backoff_ms = retry_backoff_ms
        self._last_call: float | None = None
        self._lock = asyncio.Lock()

    async def _throttle(self) -> None:
        # 检查与更新 _last_call 必须在同一把锁内
        async with self._lock:
            if self._last_call is not None:
                elapsed = time.monotonic() - self._last_call
                remaining = self.min_interval_ms / 1000 - elapsed
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self._last_call = time.monotonic()

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            await self._throttle()
            try:
                return await operation()
            except Exception as e:
                attempt += 1
                if not is_rate_limited(e) or attempt > self.max_retries:
                    raise
                backoff_ms = self.retry_backoff_ms * attempt
                logger.warning(
                    f"Rate limited (attempt {attempt}/{self.max_retries}), "
                    f"retrying in {backoff_ms}ms"
                )
                await asyncio.sleep(backoff_ms / 1000)
