"""
Read-through cache for per-user views, backed by Redis.
Entries expire through Redis TTLs and are invalidated by key pattern after
every mutation. Correctness never depends on a hit: callers always fall back
to the database, so Redis errors are logged and treated as misses.
"""
import json
import logging
import os
from typing import Any, Optional, Protocol

import redis

from quest_engine.constants import CACHE_DEFAULT_TTL

logger = logging.getLogger("quest_engine.cache")


def cache_key(kind: str, user_id: int, period: Any = "") -> str:
    """Build a composite key: kind:user_id:period"""
    return f"{kind}:{user_id}:{period}"


def user_pattern(user_id: int, kind: str = "*") -> str:
    """Glob matching every entry of one user, optionally of one kind"""
    return f"{kind}:{user_id}:*"


class CacheGateway(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl: int = CACHE_DEFAULT_TTL) -> None: ...

    def invalidate(self, pattern: str) -> int: ...

    def ping(self) -> bool: ...


class NullCache:
    """Cache that never stores anything; every read is a miss"""

    def get(self, key: str) -> Optional[Any]:
        return None

    def set(self, key: str, value: Any, ttl: int = CACHE_DEFAULT_TTL) -> None:
        return None

    def invalidate(self, pattern: str) -> int:
        return 0

    def ping(self) -> bool:
        return True


class RedisCache:
    """
    JSON values in Redis with per-key TTL.

    Values must be JSON-compatible; callers dump pydantic views with
    mode="json" before storing them.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(redis.Redis.from_url(url, decode_responses=True, socket_connect_timeout=2))

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            logger.warning(f"Cache GET error for {key}: {e}")
            return None
        return json.loads(raw) if raw else None

    def set(self, key: str, value: Any, ttl: int = CACHE_DEFAULT_TTL) -> None:
        if ttl <= 0:
            return
        try:
            self.client.set(key, json.dumps(value, default=str), ex=ttl)
        except redis.RedisError as e:
            logger.warning(f"Cache SET error for {key}: {e}")

    def invalidate(self, pattern: str) -> int:
        """Delete every key matching a glob pattern, returns count removed"""
        try:
            keys = list(self.client.scan_iter(match=pattern))
            removed = self.client.delete(*keys) if keys else 0
        except redis.RedisError as e:
            logger.warning(f"Cache invalidate error for {pattern}: {e}")
            return 0
        if removed:
            logger.debug(f"Invalidated {removed} cache entries matching {pattern}")
        return removed

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.warning(f"Cache unreachable: {e}")
            return False


REDIS_URL = os.getenv("QUEST_ENGINE_REDIS_URL")

# Process-wide cache; without a Redis URL every read goes to the database
app_cache = RedisCache.from_url(REDIS_URL) if REDIS_URL else NullCache()


def get_cache():
    """FastAPI dependency returning the process-wide cache"""
    return app_cache
