"""
Process-local TTL cache keyed by guild id.

One instance is created per cached concern (moderation config, feature
state) in the composition root and passed into the stores that use it, so
tests can build isolated caches with a fake clock. Entries are plain values
overwritten by whichever task stores last; there is no cross-process
invalidation, expiry is the only convergence mechanism.
"""

from typing import Any, Callable, Dict, Hashable, Optional, Tuple
import time

from modcase.util.logger import get_logger

logger = get_logger("database_cache")


class GuildCache:
    """
    TTL cache where every entry carries its own expiry.

    Entries may be stored with a TTL other than the default, which lets the
    feature store keep failed reads for a shorter time than confirmed ones.
    """

    def __init__(
        self,
        name: str,
        default_ttl_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            name: Label used in log lines.
            default_ttl_seconds: TTL applied when ``set`` is called without one.
            clock: Monotonic time source, replaceable in tests.
        """
        self.name = name
        self._cache: Dict[Hashable, Tuple[float, Any]] = {}
        self._default_ttl_seconds = default_ttl_seconds
        self._clock = clock

    def get(self, key: Hashable) -> Optional[Any]:
        """
        Return the cached value for ``key`` if it has not expired.

        Expired entries are removed on access.
        """
        entry = self._cache.get(key)
        if entry is None:
            return None

        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._cache[key]
            logger.debug("[CACHE %s] Expired key: %s", self.name, key)
            return None

        logger.debug("[CACHE %s] Hit for key: %s", self.name, key)
        return value

    def set(self, key: Hashable, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Store ``value`` for ``ttl_seconds`` (default TTL when omitted)."""
        ttl = self._default_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._cache[key] = (self._clock() + ttl, value)
        logger.debug("[CACHE %s] Set key: %s (ttl=%ss)", self.name, key, ttl)

    def expires_in(self, key: Hashable) -> Optional[float]:
        """Seconds until ``key`` expires, or None when it is not cached."""
        entry = self._cache.get(key)
        if entry is None:
            return None
        return max(0.0, entry[0] - self._clock())

    def invalidate(self, key: Optional[Hashable] = None) -> int:
        """
        Drop one entry, or every entry when ``key`` is None.

        Returns:
            Number of entries removed.
        """
        if key is None:
            count = len(self._cache)
            self._cache.clear()
            logger.debug("[CACHE %s] Cleared all %d entries", self.name, count)
            return count

        if key not in self._cache:
            return 0
        del self._cache[key]
        logger.debug("[CACHE %s] Invalidated key: %s", self.name, key)
        return 1

    def stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "size": len(self._cache),
            "ttl_seconds": self._default_ttl_seconds,
        }
