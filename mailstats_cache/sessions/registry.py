"""
In-process session registry.

A keyed map of live sessions (e.g. voice rooms) owned by the process
runtime: started at process start, cleared at shutdown, and passed
explicitly to whoever needs it instead of living in a module global.
"""

from typing import Any, Dict, Iterator, List, Optional

import structlog

logger = structlog.get_logger(__name__)


class RegistryClosedError(RuntimeError):
    """Raised when writing to a registry that is not started."""


class SessionRegistry:
    """
    Keyed session store with last-writer-wins semantics per key.

    Reads on a stopped registry see an empty map; writes raise
    RegistryClosedError so a late writer after shutdown is noticed.

    Attributes:
        name: Label used in log events
    """

    def __init__(self, name: str = "sessions") -> None:
        self.name = name
        self._sessions: Dict[str, Any] = {}
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Open the registry with an empty map."""
        self._sessions.clear()
        self._started = True
        logger.info("session_registry_started", registry=self.name)

    def shutdown(self) -> None:
        """Drop every session and close the registry."""
        dropped = len(self._sessions)
        self._sessions.clear()
        self._started = False
        logger.info("session_registry_cleared", registry=self.name, dropped=dropped)

    def put(self, key: str, session: Any) -> None:
        if not self._started:
            raise RegistryClosedError(f"Session registry '{self.name}' is not started")
        self._sessions[key] = session

    def get(self, key: str) -> Optional[Any]:
        return self._sessions.get(key)

    def pop(self, key: str) -> Optional[Any]:
        return self._sessions.pop(key, None)

    def values(self) -> List[Any]:
        return list(self._sessions.values())

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._sessions))
