"""
Key-value store adapter for the Wallet Sweep cache.

The cache engine only depends on the narrow ``KeyValueStore`` protocol
below. ``RedisManager`` implements it on top of ``redis.asyncio``. Backend
errors propagate out of the adapter; the engine decides how to degrade.
"""
import asyncio
from typing import List, Optional, Protocol, Sequence, Tuple

import redis.asyncio as redis
import structlog

from config.settings import get_config

logger = structlog.get_logger()


class KeyValueStore(Protocol):
    """Operations the cache layer needs from its backing store."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool: ...

    async def delete(self, *keys: str) -> int: ...

    async def exists(self, key: str) -> int: ...

    async def ttl(self, key: str) -> int: ...

    async def scan(self, cursor: int, match: str, count: int) -> Tuple[int, List[str]]: ...

    async def pipeline_delete(self, keys: Sequence[str]) -> List[int]: ...


class RedisManager:
    def __init__(self, redis_url: str):
        """Initialize Redis manager with connection URL."""
        self.redis_url = redis_url
        self.redis: Optional[redis.Redis] = None
        self._connect_lock = asyncio.Lock()

    async def connect(self) -> None:
        """
        Establish connection to Redis.

        Concurrent callers share one client: whoever takes the lock first
        connects, the rest find the client already in place.
        """
        async with self._connect_lock:
            if self.redis is not None:
                return

            client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            try:
                await client.ping()
            except Exception as e:
                logger.error("redis_connection_failed", error=str(e))
                await client.aclose()
                raise

            self.redis = client
            logger.info("redis_connection_established")

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("redis_connection_closed")

    async def _client(self) -> redis.Redis:
        if self.redis is None:
            await self.connect()
        return self.redis

    async def ping(self) -> bool:
        client = await self._client()
        return await client.ping()

    async def get(self, key: str) -> Optional[str]:
        client = await self._client()
        return await client.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        """Store a value; ``ex`` of None leaves the key without expiration."""
        client = await self._client()
        return bool(await client.set(key, value, ex=ex))

    async def delete(self, *keys: str) -> int:
        client = await self._client()
        return await client.delete(*keys)

    async def exists(self, key: str) -> int:
        client = await self._client()
        return await client.exists(key)

    async def ttl(self, key: str) -> int:
        """Remaining seconds, -1 for a persistent key, -2 for a missing one."""
        client = await self._client()
        return await client.ttl(key)

    async def scan(self, cursor: int, match: str, count: int) -> Tuple[int, List[str]]:
        client = await self._client()
        next_cursor, keys = await client.scan(cursor=cursor, match=match, count=count)
        return int(next_cursor), list(keys)

    async def pipeline_delete(self, keys: Sequence[str]) -> List[int]:
        """Delete each key in one round trip; returns one result per key."""
        client = await self._client()
        async with client.pipeline(transaction=False) as pipe:
            for key in keys:
                pipe.delete(key)
            return await pipe.execute()


# Process-wide store used by the cache functions
_store: Optional[KeyValueStore] = None


def get_redis_manager() -> KeyValueStore:
    """Get the process-wide store, creating it on first use."""
    global _store
    if _store is None:
        _store = RedisManager(get_config().REDIS_URL)
    return _store


def set_redis_manager(store: Optional[KeyValueStore]) -> None:
    """Install a different store; None resets to lazy creation."""
    global _store
    _store = store
