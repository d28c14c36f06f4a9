"""Time-bounded cache used for computed series."""

import time
from collections.abc import Callable
from threading import RLock
from typing import Any, Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """Thread-safe key/value cache whose entries expire ``ttl_seconds`` after write.

    Expired entries are dropped lazily when read; there is no background sweeper.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize TTL cache.

        Args:
            ttl_seconds: Time-to-live in seconds, measured from the write time
            clock: Callable returning the current time in seconds
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self._cache: dict[K, tuple[V, float]] = {}
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = RLock()
        self._hit_count = 0
        self._miss_count = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def get(self, key: K, default: V | None = None) -> V | None:
        """
        Get value by key.

        Args:
            key: Cache key
            default: Default value if not found or expired

        Returns:
            Cached value or default
        """
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._miss_count += 1
                return default

            value, timestamp = entry

            # Valid while now - write_time < TTL
            if self._clock() - timestamp >= self._ttl_seconds:
                del self._cache[key]
                self._miss_count += 1
                return default

            self._hit_count += 1
            return value

    def put(self, key: K, value: V) -> None:
        """
        Store key-value pair, overwriting any previous entry.

        Args:
            key: Cache key
            value: Value to cache
        """
        with self._lock:
            self._cache[key] = (value, self._clock())

    def delete(self, key: K) -> bool:
        """
        Delete key from cache.

        Args:
            key: Key to delete

        Returns:
            True if key existed and was deleted
        """
        with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    def clear(self) -> None:
        """Clear all cached items and timestamps."""
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        """Get current cache size, expired entries included."""
        with self._lock:
            return len(self._cache)

    def __len__(self) -> int:
        return self.size()

    def cleanup_expired(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of expired entries removed
        """
        with self._lock:
            current_time = self._clock()
            expired_keys = [
                key
                for key, (_, timestamp) in self._cache.items()
                if current_time - timestamp >= self._ttl_seconds
            ]

            for key in expired_keys:
                del self._cache[key]

            return len(expired_keys)

    def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with size, TTL and hit ratio
        """
        with self._lock:
            total_requests = self._hit_count + self._miss_count
            return {
                "size": len(self._cache),
                "ttl_seconds": self._ttl_seconds,
                "hits": self._hit_count,
                "misses": self._miss_count,
                "hit_ratio": (
                    self._hit_count / total_requests if total_requests > 0 else 0.0
                ),
            }

    def reset_stats(self) -> None:
        """Reset performance counters."""
        with self._lock:
            self._hit_count = 0
            self._miss_count = 0
