"""
Payment statistics cache backed by Redis.

Statistics are read-mostly and cheap to recompute, so the cache is best
effort: any Redis failure is logged and the caller falls through to the
database.

Each day carries a generation counter. Invalidation bumps it, and a
reader only stores what it computed if the generation it saw before
querying is still current, so totals read before a payment committed
are never cached after that payment's invalidation.
"""

import json
import logging
from datetime import date
from typing import Any, Dict, Optional

from quickbill.app.core.config import settings

logger = logging.getLogger(__name__)

STATS_KEY_PREFIX = "payments:stats:"
GENERATION_KEY_PREFIX = "payments:stats-gen:"
GENERATION_TTL_SECONDS = 2 * 24 * 60 * 60


class PaymentStatsCache:

    def __init__(self, redis_client, ttl_seconds: Optional[int] = None):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.stats_cache_ttl_seconds

    @staticmethod
    def key_for(day: date) -> str:
        return f"{STATS_KEY_PREFIX}{day.isoformat()}"

    @staticmethod
    def generation_key_for(day: date) -> str:
        return f"{GENERATION_KEY_PREFIX}{day.isoformat()}"

    async def get(self, day: date) -> Optional[Dict[str, Any]]:
        try:
            raw = await self.redis.get(self.key_for(day))
        except Exception as exc:
            logger.warning("Stats cache read failed: %s", exc)
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding unreadable stats cache entry for %s", day)
            return None

    async def generation(self, day: date) -> Optional[str]:
        """Current invalidation generation for the day (None if never invalidated)."""
        try:
            return await self.redis.get(self.generation_key_for(day))
        except Exception as exc:
            logger.warning("Stats cache generation read failed: %s", exc)
            return None

    async def set(self, day: date, stats: Dict[str, Any], generation: Optional[str] = None) -> None:
        """Store stats computed under ``generation``; skipped if it has moved on."""
        try:
            current = await self.redis.get(self.generation_key_for(day))
            if current != generation:
                logger.debug("Not caching stats for %s: invalidated while computing", day)
                return
            await self.redis.set(self.key_for(day), json.dumps(stats), ex=self.ttl_seconds)
        except Exception as exc:
            logger.warning("Stats cache write failed: %s", exc)

    async def invalidate(self, day: date) -> None:
        try:
            generation_key = self.generation_key_for(day)
            await self.redis.incr(generation_key)
            await self.redis.expire(generation_key, GENERATION_TTL_SECONDS)
            await self.redis.delete(self.key_for(day))
        except Exception as exc:
            logger.warning("Stats cache invalidation failed: %s", exc)
