"""Shared fixtures: an in-memory backend with a controllable clock."""

import fnmatch
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from mailstats_cache.cache.manager import StatsCursorCache


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.current = start or datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeBackend:
    """CacheBackend keeping values in a dict, expiring them by the fake clock."""

    available = True

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.store: Dict[str, Tuple[str, datetime]] = {}
        self.set_calls: List[Tuple[str, int]] = []

    def _live(self, key: str) -> bool:
        entry = self.store.get(key)
        if entry is None:
            return False
        if entry[1] <= self.clock():
            del self.store[key]
            return False
        return True

    async def get(self, key: str) -> Optional[str]:
        return self.store[key][0] if self._live(key) else None

    async def set_with_expiry(self, key: str, ttl_seconds: int, value: str) -> None:
        self.set_calls.append((key, ttl_seconds))
        self.store[key] = (value, self.clock() + timedelta(seconds=ttl_seconds))

    async def find_keys(self, pattern: str) -> List[str]:
        return [key for key in list(self.store) if self._live(key) and fnmatch.fnmatchcase(key, pattern)]

    async def delete_keys(self, *keys: str) -> int:
        return sum(1 for key in keys if self.store.pop(key, None) is not None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_backend(clock):
    return FakeBackend(clock)


@pytest.fixture
def stats_cache(fake_backend, clock):
    return StatsCursorCache(fake_backend, clock=clock)
