"""Redis 缓存客户端"""

import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class RedisCache:
    """Redis 客户端封装，读写失败只记录日志不抛出"""

    def __init__(self, url: str):
        self.url = url
        self._client: redis.Redis | None = None

    async def init(self) -> None:
        """建立连接并 ping 测试，失败时抛出"""
        if self._client is not None:
            return
        client = redis.from_url(self.url, decode_responses=True, socket_connect_timeout=5)
        try:
            await client.ping()
        except Exception:
            await client.aclose()
            raise
        self._client = client
        logger.info("Redis connection established")

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def get(self, key: str) -> str | None:
        if self._client is None:
            return None
        try:
            return await self._client.get(key)
        except Exception as e:
            logger.error(f"Redis get failed {key}: {e}")
            return None

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.set(key, value, ex=ex))
        except Exception as e:
            logger.error(f"Redis set failed {key}: {e}")
            return False

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
