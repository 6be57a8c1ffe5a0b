"""TTL (Time To Live) policies for the stats and sync cursor caches.

Stats are cheap to recompute but misleading when stale, so they expire
quickly. Cursors mark a durable provider-side position; losing one only
costs a re-scan, so they are held longer.
"""

from enum import Enum
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


class CacheTTL(Enum):
    """
    Default cache TTLs in seconds.
    """

    STATS = 120  # 2 minutes
    SYNC_CURSOR = 600  # 10 minutes

    @staticmethod
    def resolve(kind: str, override: Optional[int] = None) -> int:
        """
        Pick the TTL for a cache entry.

        Args:
            kind: "stats" or "cursor"
            override: Explicit TTL from the caller or settings, if any

        Returns:
            TTL in seconds

        Raises:
            ValueError: If the override is not a positive integer

        Example:
            >>> CacheTTL.resolve("cursor")
            600
        """
        if override is not None:
            if isinstance(override, bool) or not isinstance(override, int) or override <= 0:
                raise ValueError(f"TTL must be a positive integer, got {override!r}")
            ttl = override
        elif kind == "stats":
            ttl = CacheTTL.STATS.value
        elif kind == "cursor":
            ttl = CacheTTL.SYNC_CURSOR.value
        else:
            raise ValueError(f"Unknown cache kind: {kind}")

        logger.debug("ttl_determined", kind=kind, ttl_seconds=ttl)

        return ttl
