"""
Tiered cache for email summary stats and per-source sync cursors.

Stores only three aggregate counts per (user, VIP set) and opaque
provider cursors per (user, source), in Redis with short TTLs. Runs
without Redis as a no-op.
"""

from mailstats_cache.cache import StatsCursorCache, compute_vip_fingerprint
from mailstats_cache.config import CacheSettings
from mailstats_cache.models import CachedStats, ResolvedStats, StatsCounts, SyncCursor, SyncSource

__version__ = "1.0.0"

__all__ = [
    "CacheSettings",
    "CachedStats",
    "ResolvedStats",
    "StatsCounts",
    "StatsCursorCache",
    "SyncCursor",
    "SyncSource",
    "compute_vip_fingerprint",
]
