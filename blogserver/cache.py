import json
import logging

import redis.asyncio as redis

from blogserver.config import settings

logger = logging.getLogger(__name__)


def detail_key(blog_id: int, post_id: int) -> str:
    return f"posts:detail:{blog_id}:{post_id}"


def list_key(blog_id: int, start: int, end: int, filter: str) -> str:
    return f"posts:list:{blog_id}:{start}:{end}:{filter}"


class CacheManager:
    """
    Cache-aside manager backed by Redis.

    All public methods are safe to call even when Redis is unavailable:
    read operations return None and write operations are silently skipped,
    so the service keeps answering from the database alone.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """Return the cached value for *key*, or None on a miss / error."""
        if not self._redis:
            return None
        try:
            data = await self._redis.get(key)
            return json.loads(data) if data is not None else None
        except Exception as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            return None

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """
        Persist *value* under *key* with an optional TTL (seconds).

        Failures are logged but never propagated.
        """
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value), ex=ttl)
        except Exception as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching *pattern* using SCAN (avoids blocking KEYS)."""
        if not self._redis:
            return
        try:
            keys: list[str] = []
            async for key in self._redis.scan_iter(match=pattern):
                keys.append(key)
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except Exception as exc:
            logger.debug("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    # ------------------------------------------------------------------
    # Domain-level invalidation
    # ------------------------------------------------------------------

    async def invalidate_blog(self, blog_id: int, post_id: int | None = None) -> None:
        """
        Drop every cached listing of *blog_id*, plus the cached post when
        *post_id* is given.  Posts never change after creation, so only
        create and delete need to call this.
        """
        await self.delete_pattern(f"posts:list:{blog_id}:*")
        if post_id is not None:
            await self.delete_pattern(detail_key(blog_id, post_id))


# Module-level singleton shared across all request handlers.
cache = CacheManager()


# ---------------------------------------------------------------------------
# Invalidation tied to the session's transaction
# ---------------------------------------------------------------------------

PENDING_INVALIDATIONS = "pending_cache_invalidations"


def defer_invalidation(session, blog_id: int, post_id: int | None = None) -> None:
    """
    Record that *blog_id* (and *post_id*) become stale once *session*
    commits.  Invalidating earlier would let a concurrent reader cache the
    still-committed old rows again.
    """
    session.info.setdefault(PENDING_INVALIDATIONS, []).append((blog_id, post_id))


def discard_invalidations(session) -> None:
    """Forget pending invalidations; their changes were rolled back."""
    session.info.pop(PENDING_INVALIDATIONS, None)


async def run_invalidations(session) -> None:
    """Apply the invalidations recorded on *session*.  Call after commit."""
    for blog_id, post_id in session.info.pop(PENDING_INVALIDATIONS, []):
        await cache.invalidate_blog(blog_id, post_id)
