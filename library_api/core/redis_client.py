from __future__ import annotations

import logging
from functools import lru_cache

import redis
from library_api.core.config import settings
from redis import Redis

logger = logging.getLogger(__name__)


@lru_cache
def get_redis() -> Redis | None:
    try:
        client: Redis = redis.from_url(settings.redis_url, decode_responses=True)
        client.ping()
        return client
    except Exception as exc:
        logger.warning("Redis unavailable; rate limiting falls back to open: %s", exc)
        return None
