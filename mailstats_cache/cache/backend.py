"""Backend-client contract for the stats cache.

The cache needs four operations from its key-value store: get, set with
expiry, pattern key lookup and delete. RedisBackend maps them onto a
``redis.asyncio`` client; NullBackend is the stand-in used when no
client is configured, so the cache runs the same code path either way.
"""

from typing import Any, List, Optional, Protocol, runtime_checkable

import redis.asyncio as redis
import structlog

logger = structlog.get_logger(__name__)

SCAN_BATCH_SIZE = 500


@runtime_checkable
class CacheBackend(Protocol):
    """Operations the stats cache requires from a key-value store."""

    available: bool

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set_with_expiry(self, key: str, ttl_seconds: int, value: str) -> None:
        ...

    async def find_keys(self, pattern: str) -> List[str]:
        ...

    async def delete_keys(self, *keys: str) -> int:
        ...


class RedisBackend:
    """
    CacheBackend over a ``redis.asyncio.Redis`` client.

    The client is owned by the caller (see RedisCache); this adapter
    never opens, configures or closes connections. Errors raised by the
    client propagate to the cache, which handles them.

    Attributes:
        client: Redis client instance
    """

    available = True

    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    async def get(self, key: str) -> Optional[str]:
        value = await self.client.get(key)
        if isinstance(value, bytes):
            # Client created without decode_responses
            return value.decode("utf-8")
        return value

    async def set_with_expiry(self, key: str, ttl_seconds: int, value: str) -> None:
        await self.client.setex(key, ttl_seconds, value)

    async def find_keys(self, pattern: str) -> List[str]:
        """
        Return every key matching a glob pattern.

        Uses SCAN rather than KEYS so a large keyspace does not block
        the server, at the price of several round trips.
        """
        keys = []
        async for key in self.client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
            keys.append(key.decode("utf-8") if isinstance(key, bytes) else key)
        return keys

    async def delete_keys(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self.client.delete(*keys))


class NullBackend:
    """
    CacheBackend used when no store is configured.

    Every read misses and every write or delete succeeds without doing
    anything. No I/O is ever attempted.
    """

    available = False

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set_with_expiry(self, key: str, ttl_seconds: int, value: str) -> None:
        return None

    async def find_keys(self, pattern: str) -> List[str]:
        return []

    async def delete_keys(self, *keys: str) -> int:
        return 0


def ensure_backend(handle: Any) -> CacheBackend:
    """
    Turn a possibly-absent client handle into a CacheBackend.

    Args:
        handle: None, a redis.asyncio client, or a CacheBackend

    Returns:
        NullBackend for None, RedisBackend for a Redis client, otherwise
        the handle itself

    Raises:
        TypeError: If the handle is none of the above
    """
    if handle is None:
        logger.info("stats_cache_backend_absent", reason="no_client_configured")
        return NullBackend()

    if isinstance(handle, redis.Redis):
        return RedisBackend(handle)

    if isinstance(handle, CacheBackend):
        return handle

    raise TypeError(
        f"Unsupported cache backend handle: {type(handle).__name__}"
    )
