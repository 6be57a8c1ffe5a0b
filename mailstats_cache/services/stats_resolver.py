"""
Layered email stats lookup.

Resolves the home-screen counts (new, VIP, urgent) for a user with as
little provider traffic as possible:

1. Stats cache hit for (user, VIP fingerprint)
2. Every provider reports no change since its sync cursor, and a cursor
   still carries the stats computed at that point for the same VIP set
3. Full computation, after which the stats and cursors are refreshed

The cache is best effort throughout; only ``compute_stats`` errors reach
the caller.
"""

import asyncio
import time
from typing import Awaitable, Callable, List, Mapping, Optional, Protocol, Sequence, Union

from mailstats_cache.cache.keys import compute_vip_fingerprint
from mailstats_cache.cache.manager import StatsCursorCache
from mailstats_cache.models.stats import CachedStats, ResolvedStats, StatsCounts, SyncCursor
from mailstats_cache.utils.logger import get_logger, log_stats_resolution

logger = get_logger(__name__)

ComputeStats = Callable[[str, List[str]], Awaitable[Union[StatsCounts, Mapping[str, int]]]]


class MailSourceProbe(Protocol):
    """
    Cheap change detection for one mail provider.

    ``source`` names the cursor slot (e.g. "GMAIL"). ``has_changes_since``
    is only called with a cursor that exists; ``current_cursor`` returns
    the provider position right now, without ``last_stats``.
    """

    source: str

    async def has_changes_since(self, cursor: SyncCursor) -> bool:
        ...

    async def current_cursor(self) -> SyncCursor:
        ...


class EmailStatsResolver:
    """
    Stats workflow on top of StatsCursorCache.

    Attributes:
        cache: Stats and cursor cache
        compute_stats: Async callable doing the full provider fetch
        probes: One change-detection probe per connected provider
    """

    def __init__(
        self,
        cache: StatsCursorCache,
        compute_stats: ComputeStats,
        probes: Sequence[MailSourceProbe] = (),
    ) -> None:
        self.cache = cache
        self.compute_stats = compute_stats
        self.probes = list(probes)

    async def get_stats(
        self,
        user_id: str,
        vips: Sequence[str] = (),
        force_refresh: bool = False,
    ) -> ResolvedStats:
        """
        Resolve stats for a user and VIP set.

        Args:
            user_id: User identifier
            vips: VIP sender addresses (any case, any order)
            force_refresh: Skip both cache levels and recompute

        Returns:
            ResolvedStats with the counts and their origin

        Raises:
            Exception: Whatever compute_stats raises
        """
        start_time = time.perf_counter()
        fingerprint = compute_vip_fingerprint(vips)

        if not force_refresh:
            cached = await self.cache.get_stats(user_id, fingerprint)
            if cached is not None:
                return self._finish(user_id, cached.counts(), "cache", start_time)

        if not self.probes:
            empty = StatsCounts(new_count=0, vip_count=0, urgent_count=0)
            return self._finish(user_id, empty, "empty", start_time)

        if not force_refresh:
            reused = await self._reuse_cursor_stats(user_id, fingerprint)
            if reused is not None:
                # Refresh the stats entry so the next request is a level-1 hit
                await self.cache.set_stats(user_id, fingerprint, reused.counts())
                logger.info(
                    "stats_served_from_sync_cursor",
                    user_id=user_id,
                    new_count=reused.new_count,
                )
                return self._finish(user_id, reused.counts(), "cursor", start_time)

        try:
            raw = await self.compute_stats(user_id, list(vips))
            counts = StatsCounts.model_validate(raw)
        except Exception as e:
            log_stats_resolution(
                user_id,
                "computed",
                (time.perf_counter() - start_time) * 1000,
                error=str(e),
            )
            raise

        await self.cache.set_stats(user_id, fingerprint, counts)
        await self._update_cursors(user_id, fingerprint, counts)

        return self._finish(user_id, counts, "computed", start_time)

    async def on_new_mail(self, user_id: str) -> int:
        """Drop a user's stats after a new-mail notification; cursors stay."""
        return await self.cache.invalidate_stats(user_id)

    async def invalidate(self, user_id: str) -> int:
        """Drop everything cached for a user (e.g. account reconnected)."""
        return await self.cache.invalidate_user(user_id)

    async def _reuse_cursor_stats(
        self, user_id: str, fingerprint: str
    ) -> Optional[CachedStats]:
        # vip_count depends on the VIP set, so only stats computed for this
        # fingerprint qualify
        cursors = await asyncio.gather(
            *(self.cache.get_sync_cursor(user_id, probe.source) for probe in self.probes)
        )

        changes = await asyncio.gather(
            *(
                self._source_changed(user_id, probe, cursor)
                for probe, cursor in zip(self.probes, cursors)
            )
        )
        if any(changes):
            return None

        for cursor in cursors:
            if (
                cursor is not None
                and cursor.last_stats is not None
                and cursor.last_stats_vips == fingerprint
            ):
                return cursor.last_stats
        return None

    async def _source_changed(
        self, user_id: str, probe: MailSourceProbe, cursor: Optional[SyncCursor]
    ) -> bool:
        # No cursor, or a failing probe, counts as changed
        if cursor is None:
            return True

        try:
            changed = await probe.has_changes_since(cursor)
        except Exception as e:
            logger.warning(
                "change_detection_failed",
                user_id=user_id,
                source=probe.source,
                error=str(e),
                error_type=type(e).__name__,
            )
            return True

        if not changed:
            logger.info("no_changes_since_last_sync", user_id=user_id, source=probe.source)
        return bool(changed)

    async def _update_cursors(
        self, user_id: str, fingerprint: str, counts: StatsCounts
    ) -> None:
        last_stats = CachedStats(
            new_count=counts.new_count,
            vip_count=counts.vip_count,
            urgent_count=counts.urgent_count,
            cached_at=self.cache.now(),
        )

        for probe in self.probes:
            try:
                cursor = await probe.current_cursor()
            except Exception as e:
                logger.warning(
                    "sync_cursor_refresh_failed",
                    user_id=user_id,
                    source=probe.source,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            await self.cache.set_sync_cursor(
                user_id,
                probe.source,
                SyncCursor.model_validate(cursor).model_copy(
                    update={"last_stats": last_stats, "last_stats_vips": fingerprint}
                ),
            )

    @staticmethod
    def _finish(
        user_id: str, counts: StatsCounts, origin: str, start_time: float
    ) -> ResolvedStats:
        resolved = ResolvedStats.from_counts(counts, origin)
        log_stats_resolution(
            user_id,
            origin,
            (time.perf_counter() - start_time) * 1000,
            new_count=resolved.new_count,
            vip_count=resolved.vip_count,
            urgent_count=resolved.urgent_count,
        )
        return resolved

