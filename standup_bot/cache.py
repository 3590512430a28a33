"""Short-TTL in-process caches for workspace config and opt-in status.

Each instance keeps its own copy. Writers invalidate the affected key right
after committing; other instances see the change once the TTL runs out.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TTLCache(Generic[T]):
    """Thread-safe key/value cache whose entries expire ``ttl`` seconds after being set."""

    def __init__(self, ttl: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._data: Dict[str, Tuple[T, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self._clock() > expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: T) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + self.ttl)

    def get_or_load(self, key: str, loader: Callable[[], Optional[T]]) -> Optional[T]:
        """Read-through: return the cached value or load, cache and return it.

        A loader result of None is not cached so that a missing record is
        looked up again on the next call.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = loader()
        if value is not None:
            self.set(key, value)
        return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class CacheRegistry:
    """The caches one bot instance reads through."""

    def __init__(self, workspace_ttl: float = 60.0, member_ttl: float = 30.0,
                 clock: Callable[[], float] = time.monotonic):
        self.workspaces: TTLCache[Any] = TTLCache(workspace_ttl, clock)
        self.opt_in: TTLCache[bool] = TTLCache(member_ttl, clock)

    def invalidate_workspace(self, team_id: str) -> None:
        self.workspaces.delete(team_id)
        logger.debug("Invalidated workspace cache for %s", team_id)

    def invalidate_member(self, workspace_id: str, user_id: str) -> None:
        self.opt_in.delete(member_key(workspace_id, user_id))
        logger.debug("Invalidated opt-in cache for %s/%s", workspace_id, user_id)


def member_key(workspace_id: str, user_id: str) -> str:
    return f"{workspace_id}:{user_id}"
