"""
Table caching for snapshot reads.

The cache is an explicit component: it is created once by the application
lifespan and injected into the snapshot loader (reads) and the commit
pipeline (invalidation). Entries are keyed by resource key, where the
resource key of a whole table is the table name and sub-resources use
``"<table>:<suffix>"`` so a table can be invalidated in one call.
"""
from typing import Optional, Dict, Any, Callable, Tuple, Type, TypeVar, Union
import json
import logging
import time

import redis.asyncio as redis
from pydantic import BaseModel

T = TypeVar('T')

logger = logging.getLogger(__name__)


class CacheError(RuntimeError):
    """Raised when the cache backend cannot be reached."""
    pass


def cache_key(table: str, suffix: Optional[str] = None) -> str:
    """Build the resource key for a table or one of its sub-resources."""
    return f"{table}:{suffix}" if suffix else table


def _table_of(key: str) -> str:
    return key.split(":", 1)[0]


class TableCache:
    """Interface shared by the cache backends."""

    async def get(self, key: str, model: Type[T] = dict) -> Optional[T]:
        raise NotImplementedError

    async def set(self, key: str, value: Union[BaseModel, Dict[str, Any]], ttl: int) -> None:
        raise NotImplementedError

    async def invalidate(self, table: str) -> int:
        raise NotImplementedError

    async def clear(self) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class MemoryTableCache(TableCache):
    """In-process cache holding ``key -> (value, expiry)`` entries."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """Initialize the cache.

        Args:
            clock: Monotonic time source in seconds, injectable for tests
        """
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._clock = clock
        self.hits = 0
        self.misses = 0

    async def get(self, key: str, model: Type[T] = dict) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        value, expiry = entry
        if self._clock() >= expiry:
            # Expired entries are dropped lazily
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return value

    async def set(self, key: str, value: Union[BaseModel, Dict[str, Any]], ttl: int) -> None:
        self._entries[key] = (value, self._clock() + ttl)

    async def invalidate(self, table: str) -> int:
        """Drop every entry belonging to ``table``.

        Returns:
            Number of entries removed
        """
        doomed = [k for k in self._entries if _table_of(k) == table]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.debug("Invalidated %d cache entries for %s", len(doomed), table)
        return len(doomed)

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisTableCache(TableCache):
    """Redis-backed cache, expiry is delegated to redis."""

    def __init__(self, url: str, **options: Any):
        """Initialize the Redis client.

        Args:
            url: Redis connection URL
            **options: Extra keyword arguments for ``redis.Redis.from_url``
        """
        options = {k: v for k, v in options.items() if v is not None and k != "url"}
        self._redis = redis.Redis.from_url(url, decode_responses=True, **options)
        self._url = url

    async def get(self, key: str, model: Type[T] = dict) -> Optional[T]:
        try:
            value = await self._redis.get(key)
        except redis.RedisError as e:
            raise CacheError(f"Redis get operation failed: {str(e)}")
        if not value:
            return None
        if model is dict:
            return json.loads(value)
        return model.model_validate_json(value)

    async def set(self, key: str, value: Union[BaseModel, Dict[str, Any]], ttl: int) -> None:
        # Handle Pydantic models and dicts
        serialized = value.model_dump_json() if isinstance(value, BaseModel) else json.dumps(value)
        try:
            await self._redis.set(key, serialized, ex=ttl)
        except redis.RedisError as e:
            raise CacheError(f"Redis set operation failed: {str(e)}")

    async def invalidate(self, table: str) -> int:
        try:
            keys = [table]
            async for key in self._redis.scan_iter(match=f"{table}:*"):
                keys.append(key)
            return await self._redis.delete(*keys)
        except redis.RedisError as e:
            raise CacheError(f"Redis delete operation failed: {str(e)}")

    async def clear(self) -> None:
        try:
            await self._redis.flushdb()
        except redis.RedisError as e:
            raise CacheError(f"Redis flush operation failed: {str(e)}")

    async def ping(self) -> bool:
        try:
            return await self._redis.ping()
        except redis.RedisError as e:
            raise CacheError(f"Failed to connect to Redis: {str(e)}")

    async def close(self) -> None:
        """Close the Redis connection pool."""
        await self._redis.aclose()
