"""Redis connection and pooling management.

This module provides the RedisCache class, which owns the Redis
connection pool for the process and hands the stats cache a backend
built on it. Pool setup failures leave the cache running without Redis.
"""

import os
from typing import Any, Optional

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

import structlog

from mailstats_cache.cache.backend import CacheBackend, NullBackend, RedisBackend

logger = structlog.get_logger(__name__)


class RedisCache:
    """
    Redis connection manager with connection pooling.

    Provides connection pool management, health checks, and graceful
    error handling. Creating the pool does not connect; the first
    command (or ping) does.

    Attributes:
        pool: Redis connection pool
        client: Redis client instance, None if the pool could not be built
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        max_connections: int = 20,
        socket_timeout: float = 5.0,
    ) -> None:
        """
        Initialize Redis cache with connection pooling.

        Args:
            redis_url: Connection URL (default: REDIS_URL env var)
            max_connections: Pool size
            socket_timeout: Socket and connect timeout in seconds
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.max_connections = max_connections
        self.socket_timeout = socket_timeout
        self.pool: Optional[ConnectionPool] = None
        self.client: Optional[redis.Redis] = None
        self._initialize_pool()

    @classmethod
    def from_settings(cls, settings: Any) -> "RedisCache":
        """Build a RedisCache from CacheSettings."""
        return cls(
            redis_url=settings.redis_url,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
        )

    def _initialize_pool(self) -> None:
        try:
            self.pool = ConnectionPool.from_url(
                self.redis_url,
                max_connections=self.max_connections,
                decode_responses=True,  # Auto-decode bytes to str
                socket_timeout=self.socket_timeout,
                socket_connect_timeout=self.socket_timeout,
            )

            self.client = redis.Redis(connection_pool=self.pool)

            logger.info(
                "redis_pool_initialized",
                max_connections=self.max_connections,
                redis_url=self.redis_url.split("@")[-1],  # Don't log credentials
            )

        except Exception as e:
            logger.warning(
                "redis_pool_initialization_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            # Fail open: stats caching disabled, callers keep working
            self.client = None
            self.pool = None

    async def ping(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is healthy, False otherwise
        """
        if not self.client:
            logger.warning("redis_ping_failed", reason="client_not_initialized")
            return False

        try:
            result = await self.client.ping()
            logger.debug("redis_ping_success", result=result)
            return bool(result)

        except Exception as e:
            logger.warning(
                "redis_ping_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def close(self) -> None:
        """
        Close the client and disconnect the pool.

        Should be called during application shutdown. Errors are logged,
        never raised. Safe to call more than once.
        """
        try:
            if self.client:
                await self.client.aclose()
                logger.info("redis_client_closed")

            if self.pool:
                await self.pool.disconnect()
                logger.info("redis_pool_disconnected")

        except Exception as e:
            logger.warning(
                "redis_close_error",
                error=str(e),
                error_type=type(e).__name__,
            )

        finally:
            self.client = None
            self.pool = None

    def is_available(self) -> bool:
        """
        Check if Redis client is available.

        Note:
            This only checks if the client exists, not if Redis is reachable.
            Use ping() for a real health check.
        """
        return self.client is not None

    def backend(self) -> CacheBackend:
        """Backend for StatsCursorCache: Redis if a client exists, else a no-op."""
        if self.client is None:
            return NullBackend()
        return RedisBackend(self.client)
