"""
Environment-driven settings for the stats cache.

Values are read once at startup with ``CacheSettings.from_env()`` and
validated by pydantic, so a bad TTL or namespace fails fast instead of
producing unreadable keys later.
"""
import os
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from mailstats_cache.cache.keys import (
    DEFAULT_CURSOR_NAMESPACE,
    DEFAULT_STATS_NAMESPACE,
    KEY_SEPARATOR,
)
from mailstats_cache.cache.ttl import CacheTTL

_TRUE_VALUES = {"1", "true", "yes", "on"}


class CacheSettings(BaseModel):
    """
    Settings for the Redis connection, key namespaces, TTLs and logging.
    """

    redis_url: str = Field("redis://localhost:6379/0", description="Redis connection URL")
    redis_enabled: bool = Field(True, description="Set false to run with caching disabled")
    redis_max_connections: int = Field(20, gt=0)
    redis_socket_timeout: float = Field(5.0, gt=0)

    stats_namespace: str = Field(DEFAULT_STATS_NAMESPACE, min_length=1)
    cursor_namespace: str = Field(DEFAULT_CURSOR_NAMESPACE, min_length=1)
    stats_ttl_seconds: int = Field(CacheTTL.STATS.value, gt=0)
    cursor_ttl_seconds: int = Field(CacheTTL.SYNC_CURSOR.value, gt=0)

    log_level: str = Field("INFO")
    environment: str = Field("production")

    @model_validator(mode="after")
    def _check_namespaces(self) -> "CacheSettings":
        stats_prefix = self.stats_namespace + KEY_SEPARATOR
        cursor_prefix = self.cursor_namespace + KEY_SEPARATOR
        if stats_prefix.startswith(cursor_prefix) or cursor_prefix.startswith(stats_prefix):
            raise ValueError(
                "stats_namespace and cursor_namespace must be distinct and "
                "neither may be a prefix of the other"
            )
        return self

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "CacheSettings":
        """
        Build settings from environment variables.

        Unset variables fall back to the field defaults.

        Args:
            environ: Mapping to read instead of os.environ (for tests)

        Example:
            >>> settings = CacheSettings.from_env({"STATS_CACHE_TTL": "60"})
            >>> settings.stats_ttl_seconds
            60
        """
        env = os.environ if environ is None else environ
        mapping = {
            "redis_url": "REDIS_URL",
            "redis_max_connections": "REDIS_MAX_CONNECTIONS",
            "redis_socket_timeout": "REDIS_SOCKET_TIMEOUT",
            "stats_namespace": "STATS_CACHE_NAMESPACE",
            "cursor_namespace": "CURSOR_CACHE_NAMESPACE",
            "stats_ttl_seconds": "STATS_CACHE_TTL",
            "cursor_ttl_seconds": "CURSOR_CACHE_TTL",
            "log_level": "LOG_LEVEL",
            "environment": "ENVIRONMENT",
        }
        values = {field: env[var] for field, var in mapping.items() if env.get(var)}

        enabled = env.get("REDIS_ENABLED")
        if enabled:
            values["redis_enabled"] = enabled.strip().lower() in _TRUE_VALUES

        return cls(**values)

    @property
    def is_development(self) -> bool:
        return self.environment == "development"
