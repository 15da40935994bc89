"""
Redis-backed cache for forum aggregates

Only the category listing is cached. Every operation degrades to a miss
when Redis is unreachable, so callers always have a database fallback.
"""
import json
import logging
from typing import Any, Callable, Optional

from .config import CATEGORY_CACHE_TTL
from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

CATEGORY_STATS_KEY = "community:categories"


class ForumCache:
    """JSON values in Redis, plus the category-count entry the forum reads"""

    def __init__(self):
        self.redis_client = None

    def _client(self):
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.debug(f"⚠️ Redis cache unavailable: {e}")
        return self.redis_client

    def _run(self, action: str, key: str, operation: Callable, default: Any) -> Any:
        client = self._client()
        if client is None:
            return default
        try:
            return operation(client)
        except Exception as e:
            logger.error(f"❌ Cache {action} error for {key}: {e}")
            return default

    def get(self, key: str) -> Optional[Any]:
        raw = self._run("get", key, lambda c: c.get(key), None)
        logger.debug(f"{'✅ Cache HIT' if raw else '❌ Cache MISS'}: {key}")
        return json.loads(raw) if raw else None

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        payload = json.dumps(value)
        return self._run("set", key, lambda c: c.setex(key, ttl, payload) or True, False)

    def delete(self, key: str) -> bool:
        return self._run("delete", key, lambda c: c.delete(key) or True, False)

    # Category counts: {category name: {"topics": n, "posts": n}}

    def category_stats(self) -> Optional[dict]:
        return self.get(CATEGORY_STATS_KEY)

    def store_category_stats(self, stats: dict) -> bool:
        return self.set(CATEGORY_STATS_KEY, stats, ttl=CATEGORY_CACHE_TTL)

    def invalidate_category_stats(self) -> bool:
        """Called after a topic is created so the next listing recounts"""
        return self.delete(CATEGORY_STATS_KEY)


cache = ForumCache()
