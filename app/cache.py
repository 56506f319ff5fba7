import json
import logging
import threading
import time
from typing import Any, Callable, Protocol

import redis.asyncio as redis

from app.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Key builders
# ---------------------------------------------------------------------------

def entity_key(kind: str, entity_id: Any) -> str:
    """Existence key for a post or comment, e.g. ``post-5``."""
    return f"{kind}-{entity_id}"


def comment_list_key(post_id: Any) -> str:
    """Key for the cached comment list of a post, e.g. ``CL-5``."""
    return f"CL-{post_id}"


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class ExistenceCache(Protocol):
    """
    TTL key/value cache consumed by the existence verifier and the
    comment service.

    ``has`` and ``get`` must agree: an entry past its expiry is absent
    for both.
    """

    default_ttl: int

    async def has(self, key: str) -> bool: ...

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    @property
    def stats(self) -> dict: ...


class _StatsMixin:
    _hits: int
    _misses: int

    def _record(self, hit: bool) -> None:
        if hit:
            self._hits += 1
        else:
            self._misses += 1

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for metrics endpoints."""
        total = self._hits + self._misses
        return {
            "backend": self.backend,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# ---------------------------------------------------------------------------
# Process-local backend
# ---------------------------------------------------------------------------

class MemoryCache(_StatsMixin):
    """
    Process-local TTL cache.

    Entries are stored as ``key -> (value, expires_at)`` and expire
    lazily: a read past ``expires_at`` drops the entry and reports a
    miss.  There is no size bound; growth is limited by the TTL only.

    *clock* returns the current time in seconds and can be replaced in
    tests to step over expiry without sleeping.
    """

    backend = "memory"

    def __init__(
        self,
        default_ttl: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl if default_ttl is not None else settings.CACHE_TTL_EXISTENCE
        self._clock = clock
        self._data: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits: int = 0
        self._misses: int = 0

    def _lookup(self, key: str) -> tuple[bool, Any]:
        """Read *key* and update the hit/miss counters under one lock hold."""
        now = self._clock()
        with self._lock:
            item = self._data.get(key)
            if item is not None and item[1] <= now:
                self._data.pop(key, None)
                item = None
            self._record(item is not None)
            return (True, item[0]) if item is not None else (False, None)

    async def has(self, key: str) -> bool:
        found, _ = self._lookup(key)
        return found

    async def get(self, key: str) -> Any | None:
        found, value = self._lookup(key)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        eff_ttl = ttl if ttl is not None else self.default_ttl
        with self._lock:
            self._data[key] = (value, self._clock() + eff_ttl)
        logger.debug("Cache SET key=%r ttl=%s", key, eff_ttl)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
        logger.debug("Cache DELETE key=%r", key)

    def sweep(self) -> int:
        """Remove expired entries proactively; returns the count removed."""
        now = self._clock()
        removed = 0
        with self._lock:
            for key in list(self._data.keys()):
                _, expires_at = self._data[key]
                if expires_at <= now:
                    self._data.pop(key, None)
                    removed += 1
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    async def connect(self) -> None:
        return None

    async def disconnect(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------

class RedisCache(_StatsMixin):
    """
    The same interface backed by Redis, for deployments running more
    than one worker process.

    Expiry is delegated to Redis (``SET ... EX``).  All public methods
    are safe to call even when Redis is unavailable: reads report a miss
    and writes are skipped, so a cache outage only costs extra store
    queries.
    """

    backend = "redis"

    def __init__(self, url: str | None = None, default_ttl: int | None = None) -> None:
        self.url = url or settings.REDIS_URL
        self.default_ttl = default_ttl if default_ttl is not None else settings.CACHE_TTL_EXISTENCE
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            self.url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", self.url)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, existence cache degraded: %s", exc)

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def has(self, key: str) -> bool:
        if not self._redis:
            self._record(False)
            return False
        try:
            found = bool(await self._redis.exists(key))
        except Exception as exc:
            logger.debug("Cache EXISTS error for key=%r: %s", key, exc)
            found = False
        self._record(found)
        return found

    async def get(self, key: str) -> Any | None:
        if not self._redis:
            self._record(False)
            return None
        try:
            data = await self._redis.get(key)
        except Exception as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            data = None
        self._record(data is not None)
        return json.loads(data) if data is not None else None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        if not self._redis:
            return
        try:
            serialised = json.dumps(value, default=str)
            await self._redis.set(key, serialised, ex=ttl if ttl is not None else self.default_ttl)
        except Exception as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete(self, key: str) -> None:
        if not self._redis:
            return
        try:
            await self._redis.delete(key)
        except Exception as exc:
            logger.debug("Cache DELETE error for key=%r: %s", key, exc)


def build_cache(backend: str | None = None) -> MemoryCache | RedisCache:
    """Construct the configured cache backend.  Called once at startup."""
    backend = (backend or settings.CACHE_BACKEND).lower()
    if backend == "redis":
        return RedisCache()
    if backend != "memory":
        logger.warning("Unknown CACHE_BACKEND %r, falling back to memory", backend)
    return MemoryCache()
