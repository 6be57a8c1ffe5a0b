"""
Process wiring for the stats cache.

Builds the long-lived objects at process start (logging, Redis pool,
StatsCursorCache, session registry) and tears them down at shutdown.
Redis trouble never stops startup: the cache just runs without it.
"""
import asyncio
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from mailstats_cache.cache.connection import RedisCache
from mailstats_cache.cache.manager import StatsCursorCache
from mailstats_cache.config import CacheSettings
from mailstats_cache.sessions.registry import SessionRegistry
from mailstats_cache.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


class CacheRuntime:
    """
    Owner of the process-wide cache resources.

    Attributes:
        settings: Validated settings
        redis: RedisCache, None when Redis is disabled
        stats_cache: StatsCursorCache (no-op without Redis)
        sessions: Session registry
    """

    def __init__(self, settings: Optional[CacheSettings] = None) -> None:
        self.settings = settings or CacheSettings.from_env()
        self.redis: Optional[RedisCache] = None
        self.stats_cache = StatsCursorCache.from_settings(None, self.settings)
        self.sessions = SessionRegistry()
        self.redis_healthy = False

    async def start(self, configure_logging: bool = True) -> None:
        if configure_logging:
            setup_logging(level=self.settings.log_level, environment=self.settings.environment)

        logger.info(
            "stats_cache_starting",
            environment=self.settings.environment,
            redis_enabled=self.settings.redis_enabled,
        )

        if self.settings.redis_enabled:
            self.redis = RedisCache.from_settings(self.settings)
            self.redis_healthy = await self.redis.ping()
            if not self.redis_healthy:
                # Keep the client: commands fail open and Redis may come back
                logger.warning("redis_unavailable_at_startup", caching="degraded")
            self.stats_cache = StatsCursorCache.from_settings(self.redis.backend(), self.settings)
        else:
            logger.info("stats_caching_disabled", reason="REDIS_ENABLED=false")

        self.sessions.start()

        logger.info(
            "stats_cache_ready",
            cache_enabled=self.stats_cache.enabled,
            redis_healthy=self.redis_healthy,
        )

    async def stop(self) -> None:
        self.sessions.shutdown()

        if self.redis is not None:
            await self.redis.close()
            self.redis = None

        self.stats_cache = StatsCursorCache.from_settings(None, self.settings)
        self.redis_healthy = False
        logger.info("stats_cache_stopped")


@asynccontextmanager
async def cache_runtime(
    settings: Optional[CacheSettings] = None,
    configure_logging: bool = True,
) -> AsyncIterator[CacheRuntime]:
    """
    Run a CacheRuntime for the duration of a block.

    Example:
        >>> async with cache_runtime() as runtime:
        ...     await runtime.stats_cache.get_stats("user-1", ",")
    """
    runtime = CacheRuntime(settings)
    await runtime.start(configure_logging=configure_logging)
    try:
        yield runtime
    finally:
        await runtime.stop()


async def main() -> int:
    """
    Start the runtime, report whether Redis answers, and shut down.

    Returns:
        0 if the cache is backed by a reachable Redis, 1 otherwise
    """
    async with cache_runtime() as runtime:
        healthy = (
            runtime.redis is not None
            and runtime.redis.is_available()
            and runtime.redis_healthy
        )
        logger.info("stats_cache_health", healthy=healthy)
    return 0 if healthy else 1


def run() -> None:
    """Console entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
