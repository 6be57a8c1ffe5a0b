"""Redis caching layer for email stats and sync cursors.

This package provides:
- Connection pooling (RedisCache)
- Backend contract with Redis and no-op implementations
- Cache key generation and VIP fingerprints (CacheKeyGenerator)
- TTL policies (CacheTTL)
- Cache operations (StatsCursorCache)
- Graceful fail-open behavior
"""

from mailstats_cache.cache.backend import (
    CacheBackend,
    NullBackend,
    RedisBackend,
    ensure_backend,
)
from mailstats_cache.cache.connection import RedisCache
from mailstats_cache.cache.keys import (
    KEY_SEPARATOR,
    NO_VIPS_FINGERPRINT,
    CacheKeyGenerator,
    InvalidKeyComponentError,
    compute_vip_fingerprint,
)
from mailstats_cache.cache.manager import StatsCursorCache
from mailstats_cache.cache.ttl import CacheTTL

__all__ = [
    # Connection
    "RedisCache",
    # Backends
    "CacheBackend",
    "NullBackend",
    "RedisBackend",
    "ensure_backend",
    # Key generation
    "KEY_SEPARATOR",
    "NO_VIPS_FINGERPRINT",
    "CacheKeyGenerator",
    "InvalidKeyComponentError",
    "compute_vip_fingerprint",
    # Cache
    "StatsCursorCache",
    # TTL policies
    "CacheTTL",
]
