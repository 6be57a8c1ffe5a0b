"""Process-scoped session registry."""

from mailstats_cache.sessions.registry import RegistryClosedError, SessionRegistry

__all__ = ["RegistryClosedError", "SessionRegistry"]
