"""
Tests for EmailStatsResolver.

Tests cover:
- Stats cache hits short-circuit everything
- Reusing cursor stats when no provider reports changes
- Full computation and cursor refresh
- Probe and cache failures degrading to recomputation
- Invalidation hooks
"""

from unittest.mock import AsyncMock

import pytest

from mailstats_cache.cache.keys import compute_vip_fingerprint
from mailstats_cache.cache.manager import StatsCursorCache
from mailstats_cache.models.stats import CachedStats, StatsCounts, SyncCursor
from mailstats_cache.services.stats_resolver import EmailStatsResolver


class FakeProbe:
    """Change-detection probe with scripted answers."""

    def __init__(self, source, changed=False, cursor=None, error=None):
        self.source = source
        self.changed = changed
        self.cursor = cursor or SyncCursor()
        self.error = error
        self.seen = []

    async def has_changes_since(self, cursor):
        self.seen.append(cursor)
        if self.error:
            raise self.error
        return self.changed

    async def current_cursor(self):
        if self.error:
            raise self.error
        return self.cursor


@pytest.fixture
def compute_stats():
    return AsyncMock(return_value={"newCount": 12, "vipCount": 3, "urgentCount": 1})


def _resolver(stats_cache, compute_stats, *probes):
    return EmailStatsResolver(stats_cache, compute_stats, probes)


class TestEmailStatsResolver:
    """Test suite for EmailStatsResolver."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_computation(self, stats_cache, compute_stats):
        """Test that a stats cache hit returns without touching providers."""
        probe = FakeProbe("GMAIL")
        await stats_cache.set_stats(
            "user-1", compute_vip_fingerprint(["boss@x.com"]), {"newCount": 2, "vipCount": 1, "urgentCount": 0}
        )

        result = await _resolver(stats_cache, compute_stats, probe).get_stats(
            "user-1", ["BOSS@x.com"]
        )

        assert result.origin == "cache"
        assert (result.new_count, result.vip_count, result.urgent_count) == (2, 1, 0)
        compute_stats.assert_not_called()
        assert probe.seen == []

    @pytest.mark.asyncio
    async def test_no_providers_returns_zero(self, stats_cache, compute_stats):
        """Test that a user without providers gets zero counts."""
        result = await _resolver(stats_cache, compute_stats).get_stats("user-1")

        assert result.origin == "empty"
        assert result.new_count == 0
        compute_stats.assert_not_called()

    @pytest.mark.asyncio
    async def test_first_request_computes_and_stores(self, stats_cache, compute_stats, clock):
        """Test a cold cache computes, caches stats and writes cursors."""
        probe = FakeProbe("GMAIL", cursor=SyncCursor(gmail_history_id="555"))

        result = await _resolver(stats_cache, compute_stats, probe).get_stats(
            "user-1", ["a@x.com"]
        )

        assert result.origin == "computed"
        assert result.new_count == 12
        compute_stats.assert_awaited_once_with("user-1", ["a@x.com"])

        cached = await stats_cache.get_stats("user-1", "a@x.com")
        assert cached.new_count == 12

        cursor = await stats_cache.get_sync_cursor("user-1", "GMAIL")
        assert cursor.gmail_history_id == "555"
        assert cursor.last_stats.new_count == 12
        assert cursor.last_stats.cached_at == clock()

    @pytest.mark.asyncio
    async def test_missing_cursor_counts_as_changed(self, stats_cache, compute_stats):
        """Test that without a cursor the probe is not asked and stats are computed."""
        probe = FakeProbe("GMAIL", changed=False)

        result = await _resolver(stats_cache, compute_stats, probe).get_stats("user-1")

        assert result.origin == "computed"
        assert probe.seen == []

    @pytest.mark.asyncio
    async def test_unchanged_inbox_reuses_cursor_stats(self, stats_cache, compute_stats, clock):
        """Test stats come from the cursor when no provider changed."""
        last = CachedStats(new_count=7, vip_count=2, urgent_count=1, cached_at=clock())
        await stats_cache.set_sync_cursor(
            "user-1",
            "GMAIL",
            SyncCursor(
                gmail_history_id="9",
                last_stats=last,
                last_stats_vips=compute_vip_fingerprint([]),
            ),
        )
        probe = FakeProbe("GMAIL", changed=False)

        result = await _resolver(stats_cache, compute_stats, probe).get_stats("user-1")

        assert result.origin == "cursor"
        assert result.new_count == 7
        assert probe.seen[0].gmail_history_id == "9"
        compute_stats.assert_not_called()

        # The stats entry is refreshed for the next request
        cached = await stats_cache.get_stats("user-1", compute_vip_fingerprint([]))
        assert cached.new_count == 7

    @pytest.mark.asyncio
    async def test_cursor_stats_not_reused_for_other_vip_set(self, stats_cache):
        """Test cursor stats computed for one VIP set never answer another."""
        compute = AsyncMock(
            side_effect=[
                {"newCount": 9, "vipCount": 4, "urgentCount": 0},
                {"newCount": 9, "vipCount": 0, "urgentCount": 0},
            ]
        )
        resolver = _resolver(stats_cache, compute, FakeProbe("GMAIL", changed=False))

        first = await resolver.get_stats("user-1", ["alice"])
        cursor = await stats_cache.get_sync_cursor("user-1", "GMAIL")
        second = await resolver.get_stats("user-1", [])

        assert first.vip_count == 4
        assert cursor.last_stats_vips == "alice"
        assert second.origin == "computed"
        assert second.vip_count == 0
        assert compute.await_count == 2

    @pytest.mark.asyncio
    async def test_cursor_stats_reused_for_same_vip_set(self, stats_cache, compute_stats):
        """Test an unchanged inbox reuses cursor stats for the VIP set they match."""
        resolver = _resolver(stats_cache, compute_stats, FakeProbe("GMAIL", changed=False))
        await resolver.get_stats("user-1", ["alice"])
        await resolver.on_new_mail("user-1")

        result = await resolver.get_stats("user-1", ["ALICE"])

        assert result.origin == "cursor"
        assert result.vip_count == 3
        compute_stats.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_any_changed_provider_forces_computation(self, stats_cache, compute_stats, clock):
        """Test one changed provider is enough to recompute."""
        last = StatsCounts(new_count=1, vip_count=0, urgent_count=0)
        for source in ("GMAIL", "OUTLOOK"):
            await stats_cache.set_sync_cursor(
                "user-1",
                source,
                {"lastStats": {**last.model_dump(by_alias=True), "cachedAt": clock().isoformat()}},
            )
        gmail = FakeProbe("GMAIL", changed=False)
        outlook = FakeProbe("OUTLOOK", changed=True)

        result = await _resolver(stats_cache, compute_stats, gmail, outlook).get_stats("user-1")

        assert result.origin == "computed"
        compute_stats.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_probe_error_counts_as_changed(self, stats_cache, compute_stats, clock):
        """Test a failing probe falls through to computation."""
        last = CachedStats(new_count=7, vip_count=2, urgent_count=1, cached_at=clock())
        await stats_cache.set_sync_cursor("user-1", "GMAIL", SyncCursor(last_stats=last))
        probe = FakeProbe("GMAIL", error=RuntimeError("history API down"))

        result = await _resolver(stats_cache, compute_stats, probe).get_stats("user-1")

        assert result.origin == "computed"
        # Cursor refresh failed too, so the old cursor is left in place
        cursor = await stats_cache.get_sync_cursor("user-1", "GMAIL")
        assert cursor.last_stats.new_count == 7

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, stats_cache, compute_stats):
        """Test force_refresh recomputes even with a cached entry."""
        await stats_cache.set_stats("user-1", compute_vip_fingerprint([]), {"newCount": 2, "vipCount": 0, "urgentCount": 0})
        probe = FakeProbe("GMAIL")

        result = await _resolver(stats_cache, compute_stats, probe).get_stats(
            "user-1", force_refresh=True
        )

        assert result.origin == "computed"
        assert result.new_count == 12
        cached = await stats_cache.get_stats("user-1", compute_vip_fingerprint([]))
        assert cached.new_count == 12

    @pytest.mark.asyncio
    async def test_compute_error_propagates(self, stats_cache):
        """Test errors from the full fetch reach the caller."""
        compute = AsyncMock(side_effect=RuntimeError("provider unavailable"))
        resolver = _resolver(stats_cache, compute, FakeProbe("GMAIL"))

        with pytest.raises(RuntimeError) as exc_info:
            await resolver.get_stats("user-1")

        assert "provider unavailable" in str(exc_info.value)
        assert await stats_cache.get_stats("user-1", compute_vip_fingerprint([])) is None

    @pytest.mark.asyncio
    async def test_works_without_backend(self, compute_stats):
        """Test the workflow still computes when caching is disabled."""
        resolver = _resolver(StatsCursorCache(None), compute_stats, FakeProbe("GMAIL"))

        first = await resolver.get_stats("user-1")
        second = await resolver.get_stats("user-1")

        assert first.origin == second.origin == "computed"
        assert compute_stats.await_count == 2

    @pytest.mark.asyncio
    async def test_on_new_mail_drops_stats_only(self, stats_cache, compute_stats):
        """Test a new-mail notification keeps cursors."""
        resolver = _resolver(stats_cache, compute_stats, FakeProbe("GMAIL"))
        await resolver.get_stats("user-1")

        assert await resolver.on_new_mail("user-1") == 1
        assert await stats_cache.get_stats("user-1", compute_vip_fingerprint([])) is None
        assert await stats_cache.get_sync_cursor("user-1", "GMAIL") is not None

    @pytest.mark.asyncio
    async def test_invalidate_drops_everything(self, stats_cache, compute_stats):
        """Test full invalidation removes stats and cursors."""
        resolver = _resolver(stats_cache, compute_stats, FakeProbe("GMAIL"), FakeProbe("OUTLOOK"))
        await resolver.get_stats("user-1")

        assert await resolver.invalidate("user-1") == 3
        assert await stats_cache.get_sync_cursor("user-1", "OUTLOOK") is None
