"""Stats and sync cursor cache with fail-open error handling.

This module provides StatsCursorCache, the best-effort cache in front of
stats computation and provider polling. Only three aggregate counts and
opaque sync cursors are ever stored; no message content.

Every public method has a total contract: failures of the backend, bad
stored values or bad key components turn into a miss (reads), ``False``
(writes) or ``0`` (invalidation) and a warning log. The cache must never
be the reason a request fails.
"""

from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Union

import structlog

from mailstats_cache.cache.backend import CacheBackend, ensure_backend
from mailstats_cache.cache.keys import CacheKeyGenerator, InvalidKeyComponentError
from mailstats_cache.cache.ttl import CacheTTL
from mailstats_cache.models.stats import CachedStats, StatsCounts, SyncCursor, SyncSource

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _source_name(source: Union[str, SyncSource]) -> str:
    return source.value if isinstance(source, SyncSource) else source


class StatsCursorCache:
    """
    Stats and sync cursor cache over an unreliable, possibly absent backend.

    Built with ``None`` as the backend, the cache is a permanent no-op:
    reads miss, writes and invalidations do nothing. The cache holds no
    mutable state of its own; concurrent writes to one key are
    last-write-wins at the backend.

    Attributes:
        backend: CacheBackend the cache reads and writes through
        keys: Key generator for the configured namespaces
        stats_ttl: Default stats TTL in seconds
        cursor_ttl: Default cursor TTL in seconds
    """

    def __init__(
        self,
        backend: Any = None,
        key_generator: Optional[CacheKeyGenerator] = None,
        stats_ttl: Optional[int] = None,
        cursor_ttl: Optional[int] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.backend: CacheBackend = ensure_backend(backend)
        self.keys = key_generator or CacheKeyGenerator()
        self.stats_ttl = CacheTTL.resolve("stats", stats_ttl)
        self.cursor_ttl = CacheTTL.resolve("cursor", cursor_ttl)
        self._clock = clock or _utcnow

    @classmethod
    def from_settings(
        cls, backend: Any, settings: Any, clock: Optional[Clock] = None
    ) -> "StatsCursorCache":
        """Build a cache using the namespaces and TTLs from CacheSettings."""
        return cls(
            backend,
            key_generator=CacheKeyGenerator(
                stats_namespace=settings.stats_namespace,
                cursor_namespace=settings.cursor_namespace,
            ),
            stats_ttl=settings.stats_ttl_seconds,
            cursor_ttl=settings.cursor_ttl_seconds,
            clock=clock,
        )

    def now(self) -> datetime:
        """Current time from the cache clock (UTC)."""
        return self._clock()

    @property
    def enabled(self) -> bool:
        """False when running in no-op mode."""
        return bool(self.backend.available)

    # -------------------------------------------------------------------------
    # Stats cache
    # -------------------------------------------------------------------------

    async def get_stats(self, user_id: str, vip_fingerprint: str) -> Optional[CachedStats]:
        """
        Get cached stats for a user and VIP fingerprint.

        Args:
            user_id: User identifier
            vip_fingerprint: Output of compute_vip_fingerprint()

        Returns:
            CachedStats on a hit, None on a miss or any failure

        Example:
            >>> cached = await stats_cache.get_stats("user-1", "alice,bob")
            >>> if cached:
            ...     print(cached.new_count, cached.cached_at)
        """
        try:
            key = self.keys.stats_key(user_id, vip_fingerprint)
            raw = await self.backend.get(key)
            if not raw:
                logger.debug("stats_cache_miss", user_id=user_id)
                return None

            stats = CachedStats.model_validate_json(raw)
            logger.info("stats_cache_hit", user_id=user_id)
            return stats

        except Exception as e:
            logger.warning(
                "stats_cache_read_failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def set_stats(
        self,
        user_id: str,
        vip_fingerprint: str,
        counts: Union[StatsCounts, Mapping[str, int]],
        ttl: Optional[int] = None,
    ) -> bool:
        """
        Cache computed stats, stamping ``cached_at`` with the current time.

        Args:
            user_id: User identifier
            vip_fingerprint: Output of compute_vip_fingerprint()
            counts: StatsCounts or a mapping with newCount/vipCount/urgentCount
                (snake_case keys work too)
            ttl: Seconds to keep the entry (default: stats TTL, 120s)

        Returns:
            True if the backend accepted the write, False otherwise
        """
        try:
            key = self.keys.stats_key(user_id, vip_fingerprint)
            expiry = CacheTTL.resolve("stats", ttl if ttl is not None else self.stats_ttl)
            validated = StatsCounts.model_validate(counts)
            value = CachedStats(
                new_count=validated.new_count,
                vip_count=validated.vip_count,
                urgent_count=validated.urgent_count,
                cached_at=self.now(),
            )

            await self.backend.set_with_expiry(key, expiry, value.to_json())
            logger.debug("stats_cache_set", user_id=user_id, ttl=expiry)
            return bool(self.backend.available)

        except Exception as e:
            logger.warning(
                "stats_cache_write_failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    # -------------------------------------------------------------------------
    # Sync cursor cache
    # -------------------------------------------------------------------------

    async def get_sync_cursor(
        self, user_id: str, source: Union[str, SyncSource]
    ) -> Optional[SyncCursor]:
        """
        Get the sync cursor for a user and provider source.

        Returns:
            SyncCursor on a hit, None on a miss or any failure
        """
        try:
            key = self.keys.cursor_key(user_id, _source_name(source))
            raw = await self.backend.get(key)
            if not raw:
                return None

            return SyncCursor.model_validate_json(raw)

        except Exception as e:
            logger.warning(
                "sync_cursor_read_failed",
                user_id=user_id,
                source=_source_name(source),
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def set_sync_cursor(
        self,
        user_id: str,
        source: Union[str, SyncSource],
        cursor: Union[SyncCursor, Mapping[str, Any]],
        ttl: Optional[int] = None,
    ) -> bool:
        """
        Store a sync cursor as-is (no timestamp stamping).

        Args:
            user_id: User identifier
            source: Provider source, e.g. SyncSource.GMAIL
            cursor: SyncCursor or an equivalent mapping
            ttl: Seconds to keep the entry (default: cursor TTL, 600s)

        Returns:
            True if the backend accepted the write, False otherwise
        """
        try:
            key = self.keys.cursor_key(user_id, _source_name(source))
            expiry = CacheTTL.resolve("cursor", ttl if ttl is not None else self.cursor_ttl)
            value = SyncCursor.model_validate(cursor)

            await self.backend.set_with_expiry(key, expiry, value.to_json())
            logger.debug(
                "sync_cursor_set", user_id=user_id, source=_source_name(source), ttl=expiry
            )
            return bool(self.backend.available)

        except Exception as e:
            logger.warning(
                "sync_cursor_write_failed",
                user_id=user_id,
                source=_source_name(source),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def invalidate_user(self, user_id: str) -> int:
        """
        Drop every stats and cursor entry of a user.

        Best effort: a failure part-way leaves whatever was already
        deleted deleted. No matching keys is a silent success.

        Returns:
            Number of keys deleted
        """
        try:
            patterns = self.keys.user_patterns(user_id)
        except InvalidKeyComponentError as e:
            logger.warning("cache_invalidation_failed", user_id=user_id, error=str(e))
            return 0

        deleted = await self._delete_matching(user_id, patterns, "cache_invalidation_failed")
        if self.backend.available:
            logger.info("cache_invalidated_for_user", user_id=user_id, deleted=deleted)
        return deleted

    async def invalidate_stats(self, user_id: str) -> int:
        """
        Drop a user's stats entries for every VIP fingerprint, keeping cursors.

        Returns:
            Number of keys deleted
        """
        try:
            patterns = [self.keys.stats_pattern(user_id)]
        except InvalidKeyComponentError as e:
            logger.warning("stats_invalidation_failed", user_id=user_id, error=str(e))
            return 0

        return await self._delete_matching(user_id, patterns, "stats_invalidation_failed")

    async def _delete_matching(self, user_id: str, patterns: List[str], failure_event: str) -> int:
        deleted = 0
        try:
            for pattern in patterns:
                keys = await self.backend.find_keys(pattern)
                if keys:
                    deleted += await self.backend.delete_keys(*keys)

        except Exception as e:
            logger.warning(
                failure_event,
                user_id=user_id,
                deleted=deleted,
                error=str(e),
                error_type=type(e).__name__,
            )

        return deleted
