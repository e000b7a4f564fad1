"""
Cache port for the previous day's rank.

PriceRankingService only needs get/set. Production can inject any
shared cache with that contract (e.g. a Redis wrapper); the in-memory
implementation below covers single-process deployments and tests.
Concurrent writers to the same key race; last write wins.
"""

import threading
from datetime import date, datetime, timedelta
from typing import Any, Optional, Protocol

from models.fuel import FuelType


class RankCache(Protocol):
    """get/set contract the ranking service depends on."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...


def rank_cache_key(station_id: str, fuel_type: FuelType, day: date) -> str:
    """Key for one station/fuel/day rank, e.g. 'ranking:123:regular:2025-02-14'."""
    return f"ranking:{station_id}:{fuel_type.value}:{day.isoformat()}"


class InMemoryRankCache:
    """Process-local TTL cache."""

    def __init__(self):
        self._cache: dict[str, tuple[datetime, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Value for key. Returns None if expired/not found."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if datetime.now() > expires_at:
                del self._cache[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store value, replacing any previous one."""
        expires_at = datetime.now() + timedelta(seconds=ttl_seconds)
        with self._lock:
            self._cache[key] = (expires_at, value)
            self._cleanup_expired()

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def _cleanup_expired(self) -> None:
        """Remove all expired entries. Caller holds the lock."""
        now = datetime.now()
        expired = [k for k, (exp, _) in self._cache.items() if now > exp]
        for k in expired:
            del self._cache[k]


# Shared default instance
_rank_cache: Optional[InMemoryRankCache] = None


def get_rank_cache() -> InMemoryRankCache:
    """Get the process-wide default rank cache."""
    global _rank_cache
    if _rank_cache is None:
        _rank_cache = InMemoryRankCache()
    return _rank_cache
