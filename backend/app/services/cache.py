"""
Caching Service.

Time-expiring in-memory cache. Each owner holds its own instance; the clock
is injectable so tests can move time forward without sleeping.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

V = TypeVar("V")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TTLCache(Generic[V]):
    """Key/value store whose entries expire ``ttl_seconds`` after being set."""

    def __init__(self, ttl_seconds: int = 300, clock: Callable[[], datetime] = utcnow):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: Dict[Hashable, Dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def get(self, key: Hashable) -> Optional[V]:
        entry = self._store.get(key)
        if not entry:
            return None

        if self._clock() >= entry["expires_at"]:
            del self._store[key]
            return None

        return entry["data"]

    def set(self, key: Hashable, data: V, ttl_seconds: Optional[int] = None) -> None:
        self.evict_expired()
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._store[key] = {
            "data": data,
            "expires_at": self._clock() + timedelta(seconds=ttl)
        }

    def evict_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._store.items() if now >= entry["expires_at"]]
        for key in expired:
            del self._store[key]
        return len(expired)

    def clear(self) -> None:
        self._store.clear()
