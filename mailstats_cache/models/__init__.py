"""Value objects stored in and returned by the stats cache."""

from mailstats_cache.models.stats import (
    CachedStats,
    ResolvedStats,
    StatsCounts,
    SyncCursor,
    SyncSource,
)

__all__ = [
    "CachedStats",
    "ResolvedStats",
    "StatsCounts",
    "SyncCursor",
    "SyncSource",
]
