"""Cache key generation for stats and sync cursor entries.

This module provides the CacheKeyGenerator class for building
deterministic, collision-free keys from typed components, and the
VIP fingerprint used as the stats-key discriminator.
"""

from typing import Dict, Iterable, List

import structlog

logger = structlog.get_logger(__name__)

KEY_SEPARATOR = ":"

# Fingerprint for "no VIPs". Non-empty sets never produce it because
# fingerprint entries are split on commas and empty entries are dropped.
NO_VIPS_FINGERPRINT = ","

DEFAULT_STATS_NAMESPACE = "nexus:emailstats"
DEFAULT_CURSOR_NAMESPACE = "nexus:synccursor"

_GLOB_CHARS = frozenset("*?[]\\")

# "%" goes first so an escaped entry never decodes two ways
_FINGERPRINT_ESCAPES = (("%", "%25"), (KEY_SEPARATOR, "%3A"))


class InvalidKeyComponentError(ValueError):
    """
    Raised when a key component would make a key ambiguous.

    Attributes:
        component: Name of the offending component (e.g. "user_id")
        value: The rejected value
    """

    def __init__(self, component: str, value: str, reason: str) -> None:
        self.component = component
        self.value = value
        super().__init__(f"Invalid cache key {component} {value!r}: {reason}")


def compute_vip_fingerprint(vips: Iterable[str]) -> str:
    """
    Build a stable fingerprint from a set of VIP identifiers.

    Case and order do not matter, and duplicates collapse. Entries are
    also split on commas, so a raw ``"a@x.com,b@y.com"`` query value
    behaves like the two separate addresses. ``%`` and the key separator
    are percent-encoded, so any identifier yields a valid key component.

    Args:
        vips: VIP identifiers (usually email addresses)

    Returns:
        Comma-joined, lower-cased, sorted identifiers, or
        NO_VIPS_FINGERPRINT for an empty set

    Example:
        >>> compute_vip_fingerprint(["Bob", "alice"])
        'alice,bob'
        >>> compute_vip_fingerprint(["mailto:Boss@x.com"])
        'mailto%3Aboss@x.com'
    """
    normalized = set()
    for vip in vips:
        for part in vip.split(","):
            part = part.strip().lower()
            if part:
                for char, escaped in _FINGERPRINT_ESCAPES:
                    part = part.replace(char, escaped)
                normalized.add(part)

    if not normalized:
        return NO_VIPS_FINGERPRINT

    return ",".join(sorted(normalized))


class CacheKeyGenerator:
    """
    Generate consistent cache keys for stats and sync cursor entries.

    Keys follow the pattern: {namespace}:{user_id}:{discriminator}

    where the discriminator is a VIP fingerprint for stats keys and a
    provider source name for cursor keys. Neither the user id nor the
    discriminator may contain the separator, which makes every key
    split back into exactly one (namespace, user, discriminator) triple.

    Attributes:
        stats_namespace: Namespace prefix for stats entries
        cursor_namespace: Namespace prefix for sync cursor entries
    """

    def __init__(
        self,
        stats_namespace: str = DEFAULT_STATS_NAMESPACE,
        cursor_namespace: str = DEFAULT_CURSOR_NAMESPACE,
    ) -> None:
        self.stats_namespace = stats_namespace
        self.cursor_namespace = cursor_namespace

    @staticmethod
    def _check_component(component: str, value: str) -> str:
        if not isinstance(value, str) or not value:
            raise InvalidKeyComponentError(component, str(value), "must be a non-empty string")
        if KEY_SEPARATOR in value:
            raise InvalidKeyComponentError(
                component, value, f"must not contain {KEY_SEPARATOR!r}"
            )
        return value

    @classmethod
    def _check_user_id(cls, user_id: str) -> str:
        cls._check_component("user_id", user_id)
        if _GLOB_CHARS.intersection(user_id):
            raise InvalidKeyComponentError(
                "user_id", user_id, "must not contain glob metacharacters"
            )
        return user_id

    @staticmethod
    def _join(namespace: str, *components: str) -> str:
        cache_key = KEY_SEPARATOR.join((namespace,) + components)
        logger.debug("cache_key_generated", cache_key=cache_key)
        return cache_key

    def stats_key(self, user_id: str, vip_fingerprint: str) -> str:
        """
        Build the stats key for a user and VIP fingerprint.

        Raises:
            InvalidKeyComponentError: If a component is empty or contains
                the separator (or glob characters, for the user id)

        Example:
            >>> CacheKeyGenerator().stats_key("user-1", "alice,bob")
            'nexus:emailstats:user-1:alice,bob'
        """
        return self._join(
            self.stats_namespace,
            self._check_user_id(user_id),
            self._check_component("vip_fingerprint", vip_fingerprint),
        )

    def cursor_key(self, user_id: str, source: str) -> str:
        """
        Build the sync cursor key for a user and provider source.

        Example:
            >>> CacheKeyGenerator().cursor_key("user-1", "GMAIL")
            'nexus:synccursor:user-1:GMAIL'
        """
        return self._join(
            self.cursor_namespace,
            self._check_user_id(user_id),
            self._check_component("source", source),
        )

    def stats_pattern(self, user_id: str) -> str:
        """Pattern matching every stats key of a user."""
        return self._join(self.stats_namespace, self._check_user_id(user_id), "*")

    def cursor_pattern(self, user_id: str) -> str:
        """Pattern matching every sync cursor key of a user."""
        return self._join(self.cursor_namespace, self._check_user_id(user_id), "*")

    def user_patterns(self, user_id: str) -> List[str]:
        return [self.stats_pattern(user_id), self.cursor_pattern(user_id)]

    def parse(self, cache_key: str) -> Dict[str, str]:
        """
        Parse cache key back to components.

        Args:
            cache_key: Cache key string to parse

        Returns:
            Dictionary with parsed components:
                - kind: "stats" or "cursor"
                - namespace: Namespace prefix
                - user_id: User identifier
                - discriminator: VIP fingerprint or source name

        Raises:
            ValueError: If the key does not belong to either namespace

        Example:
            >>> CacheKeyGenerator().parse("nexus:synccursor:user-1:GMAIL")["discriminator"]
            'GMAIL'
        """
        for kind, namespace in (
            ("stats", self.stats_namespace),
            ("cursor", self.cursor_namespace),
        ):
            prefix = namespace + KEY_SEPARATOR
            if not cache_key.startswith(prefix):
                continue

            parts = cache_key[len(prefix):].split(KEY_SEPARATOR)
            if len(parts) != 2 or not all(parts):
                break

            return {
                "kind": kind,
                "namespace": namespace,
                "user_id": parts[0],
                "discriminator": parts[1],
            }

        raise ValueError(
            f"Invalid cache key format: {cache_key}. "
            f"Expected '<namespace>:<user_id>:<discriminator>'"
        )
