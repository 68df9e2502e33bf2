# listing_lab/storage/snapshot_store.py
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from listing_lab.storage.redis_cache import RedisCache

logger = logging.getLogger(__name__)


class SnapshotStore(ABC):
    """快照缓存层，读写失败不抛出"""

    name: str = "store"

    @abstractmethod
    async def load(self) -> dict[str, Any] | None:
        pass

    @abstractmethod
    async def save(self, payload: dict[str, Any]) -> bool:
        pass


class RedisSnapshotStore(SnapshotStore):
    name = "redis"

    def __init__(self, cache: RedisCache, key: str, ttl_seconds: int | None = None):
        self.cache = cache
        self.key = key
        self.ttl_seconds = ttl_seconds

    async def load(self) -> dict[str, Any] | None:
        raw = await self.cache.get(self.key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupt snapshot in Redis {self.key}: {e}")
            return None

    async def save(self, payload: dict[str, Any]) -> bool:
        return await self.cache.set(self.key, json.dumps(payload), ex=self.ttl_seconds)


class DiskSnapshotStore(SnapshotStore):
    name = "disk"

    def __init__(self, path: Path):
        self.path = Path(path)

    async def load(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read snapshot {self.path}: {e}")
            return None

    async def save(self, payload: dict[str, Any]) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            return True
        except OSError as e:
            logger.error(f"Failed to persist snapshot {self.path}: {e}")
            return False
