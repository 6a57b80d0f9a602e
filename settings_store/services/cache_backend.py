"""Cache backends used by the setting service.

Two interchangeable implementations of the ``CacheBackend`` protocol:
- RedisCacheBackend: shared cache for multi-process deployments
- InMemoryCacheBackend: per-process cache for single-node use and tests

``build_cache_backend`` selects one based on the ``cache_store`` setting.
Values are strings; callers serialize structured values before storing.
"""

import logging
import threading
import time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import redis

if TYPE_CHECKING:
    from settings_store.config import Settings

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Base exception for cache operations.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class CacheConnectionError(CacheError):
    """Raised when the cache backend is unreachable."""

    pass


class CacheKeyError(CacheError):
    """Raised when the provided cache key is invalid (e.g. empty)."""

    pass


@runtime_checkable
class CacheBackend(Protocol):
    """Protocol defining the cache backend interface.

    Thread Safety:
        Implementations must be safe for concurrent use. No cross-key
        atomicity is provided.
    """

    def get(self, key: str) -> str | None:
        """Return the cached value, or None if absent or expired.

        Raises:
            CacheConnectionError: If the cache backend is unreachable.
            CacheKeyError: If the key is empty.
        """
        ...

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> bool:
        """Store a value. A TTL of 0 or less deletes the key instead.

        Raises:
            CacheConnectionError: If the cache backend is unreachable.
            CacheKeyError: If the key is empty.
        """
        ...

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed.

        Raises:
            CacheConnectionError: If the cache backend is unreachable.
            CacheKeyError: If the key is empty.
        """
        ...


class InMemoryCacheBackend:
    """In-memory cache implementation with TTL support.

    Expired entries are removed lazily on access and by a periodic sweep.
    Data is neither shared across processes nor kept across restarts.
    """

    def __init__(self, cleanup_interval_seconds: int = 60) -> None:
        """Initialize the in-memory cache.

        Args:
            cleanup_interval_seconds: Interval for periodic cleanup of
                expired entries. Set to 0 to only expire lazily on access.
        """
        # key -> (value, expiry timestamp or None for no expiry)
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.RLock()
        self._cleanup_interval = cleanup_interval_seconds
        self._last_cleanup = time.monotonic()

    def _is_expired(self, expiry: float | None) -> bool:
        return expiry is not None and time.monotonic() > expiry

    def _maybe_cleanup(self) -> None:
        """Drop expired entries if the cleanup interval has passed.

        Must be called while holding the lock.
        """
        if self._cleanup_interval <= 0:
            return

        now = time.monotonic()
        if now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now

        expired_keys = [key for key, (_, expiry) in self._data.items() if self._is_expired(expiry)]
        for key in expired_keys:
            del self._data[key]

    def get(self, key: str) -> str | None:
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        with self._lock:
            self._maybe_cleanup()

            entry = self._data.get(key)
            if entry is None:
                return None

            value, expiry = entry
            if self._is_expired(expiry):
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> bool:
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        with self._lock:
            self._maybe_cleanup()

            if ttl_seconds is not None and ttl_seconds <= 0:
                self._data.pop(key, None)
                return True

            expiry = time.monotonic() + ttl_seconds if ttl_seconds is not None else None
            self._data[key] = (value, expiry)
            return True

    def delete(self, key: str) -> bool:
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        with self._lock:
            self._maybe_cleanup()

            entry = self._data.pop(key, None)
            if entry is None:
                return False
            return not self._is_expired(entry[1])


class RedisCacheBackend:
    """Redis-backed cache implementation.

    Every client failure is logged and re-raised as CacheConnectionError so
    callers can degrade to storage reads.
    """

    def __init__(self, redis_client: Any) -> None:
        """Initialize with an existing Redis client.

        Args:
            redis_client: A synchronous Redis client created with
                ``decode_responses=True``
        """
        self._client = redis_client

    def get(self, key: str) -> str | None:
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        try:
            return self._client.get(key)
        except redis.RedisError as e:
            logger.error("Redis GET failed for key '%s': %s", key, e)
            raise CacheConnectionError(
                f"Failed to get key '{key}' from Redis",
                details={"key": key, "error": str(e)},
            ) from e

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> bool:
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        try:
            if ttl_seconds is not None and ttl_seconds <= 0:
                self._client.delete(key)
                return True

            if ttl_seconds is not None:
                # setex sets value and expiry atomically
                self._client.setex(key, ttl_seconds, value)
            else:
                self._client.set(key, value)
            return True
        except redis.RedisError as e:
            logger.error("Redis SET failed for key '%s': %s", key, e)
            raise CacheConnectionError(
                f"Failed to set key '{key}' in Redis",
                details={"key": key, "error": str(e)},
            ) from e

    def delete(self, key: str) -> bool:
        if not key:
            raise CacheKeyError("Cache key cannot be empty")

        try:
            # Redis DEL returns the number of keys removed
            return self._client.delete(key) > 0
        except redis.RedisError as e:
            logger.error("Redis DELETE failed for key '%s': %s", key, e)
            raise CacheConnectionError(
                f"Failed to delete key '{key}' from Redis",
                details={"key": key, "error": str(e)},
            ) from e


def build_cache_backend(settings: "Settings") -> CacheBackend:
    """Create the cache backend selected by ``settings.cache_store``.

    The Redis client connects lazily, so an unreachable server surfaces as
    CacheConnectionError on first use rather than at startup.
    """
    if not settings.cache_enabled:
        # Never called while caching is disabled; no connection is configured
        logger.info("Settings cache disabled")
        return InMemoryCacheBackend()

    if settings.cache_store == "redis":
        if not settings.redis_url:
            raise CacheConnectionError("REDIS_URL is required for the redis cache store")
        client = redis.Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_socket_timeout,
        )
        logger.info("Using Redis cache backend")
        return RedisCacheBackend(client)

    if settings.cache_store == "memory":
        logger.info("Using in-memory cache backend")
        return InMemoryCacheBackend()

    raise CacheError(
        f"Unknown cache store '{settings.cache_store}'",
        details={"cache_store": settings.cache_store},
    )
