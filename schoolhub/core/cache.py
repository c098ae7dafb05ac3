import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import redis.asyncio as redis

from schoolhub.core.config import Settings

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """True if key is live. Backend errors propagate instead of reading as a miss."""

    @abstractmethod
    async def incr(self, key: str) -> int:
        """Increment an integer counter, keeping any expiry already set on it."""

    @abstractmethod
    async def expire(self, key: str, ttl: int) -> bool:
        pass

    async def close(self) -> None:
        return None


class MemoryCacheBackend(CacheBackend):
    def __init__(self, default_ttl: int = 3600, clock: Callable[[], float] = time.time):
        self._cache: Dict[str, Dict] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self.default_ttl = default_ttl

    def _expiry_for(self, ttl: Optional[int]) -> float:
        if ttl == 0:
            return 0
        return self._clock() + (ttl or self.default_ttl)

    def _live_item(self, key: str) -> Optional[Dict]:
        item = self._cache.get(key)
        if item is None:
            return None
        if item["expiry"] and self._clock() >= item["expiry"]:
            del self._cache[key]
            return None
        return item

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            item = self._live_item(key)
            return item["value"] if item else None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        async with self._lock:
            self._cache[key] = {"value": value, "expiry": self._expiry_for(ttl)}
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._cache.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        async with self._lock:
            return self._live_item(key) is not None

    async def incr(self, key: str) -> int:
        async with self._lock:
            item = self._live_item(key)
            if item is None:
                item = {"value": 0, "expiry": 0}
                self._cache[key] = item
            item["value"] = int(item["value"]) + 1
            return item["value"]

    async def expire(self, key: str, ttl: int) -> bool:
        async with self._lock:
            item = self._live_item(key)
            if item is None:
                return False
            item["expiry"] = self._clock() + ttl
            return True


class RedisCacheBackend(CacheBackend):
    def __init__(self, redis_url: Optional[str] = None, default_ttl: int = 3600, client: Optional[redis.Redis] = None):
        self.redis = client if client is not None else redis.from_url(redis_url, decode_responses=True)
        self.default_ttl = default_ttl

    def _serialize(self, value: Any) -> str:
        return json.dumps(value, default=str)

    def _deserialize(self, value: str) -> Any:
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value

    async def get(self, key: str) -> Optional[Any]:
        try:
            value = await self.redis.get(key)
            return self._deserialize(value) if value is not None else None
        except Exception as e:
            logger.error(f"Redis GET error for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            serialized = self._serialize(value)
            if ttl is None:
                ttl = self.default_ttl
            if ttl == 0:
                await self.redis.set(key, serialized)
            else:
                await self.redis.setex(key, ttl, serialized)
            return True
        except Exception as e:
            logger.error(f"Redis SET error for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            result = await self.redis.delete(key)
            return result > 0
        except Exception as e:
            logger.error(f"Redis DELETE error for key {key}: {e}")
            return False

    async def exists(self, key: str) -> bool:
        return await self.redis.exists(key) > 0

    async def incr(self, key: str) -> int:
        return await self.redis.incr(key)

    async def expire(self, key: str, ttl: int) -> bool:
        return bool(await self.redis.expire(key, ttl))

    async def close(self) -> None:
        await self.redis.aclose()


class CacheManager:
    def __init__(self, backend: CacheBackend):
        self.backend = backend

    async def get(self, key: str) -> Optional[Any]:
        return await self.backend.get(key)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return await self.backend.set(key, value, ttl)

    async def delete(self, key: str) -> bool:
        return await self.backend.delete(key)

    async def exists(self, key: str) -> bool:
        return await self.backend.exists(key)

    async def incr(self, key: str) -> int:
        return await self.backend.incr(key)

    async def expire(self, key: str, ttl: int) -> bool:
        return await self.backend.expire(key, ttl)

    async def invalidate(self, *keys: str) -> None:
        """Drop cached entries after a write. Failures are logged; the read path tolerates staleness."""
        for key in keys:
            try:
                await self.backend.delete(key)
            except Exception as e:
                logger.warning(f"Cache invalidation failed for key {key}: {e}")

    async def close(self) -> None:
        await self.backend.close()


def create_cache(settings: Settings) -> CacheManager:
    if settings.redis_url:
        logger.info("Initializing Redis cache backend")
        return CacheManager(RedisCacheBackend(settings.redis_url, default_ttl=settings.cache_ttl))
    logger.info("Using in-memory cache backend")
    return CacheManager(MemoryCacheBackend(default_ttl=settings.cache_ttl))
