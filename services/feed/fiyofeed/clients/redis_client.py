"""
Redis client wrapper.

Responsibilities:
  • Connection lifecycle: one shared redis.asyncio client per process
  • RedisCache: the engine's Cache capability (get / set / delete /
    expire / atomic set_many)

Feed lists are stored as JSON strings by the engine, so every value here is
a plain str (decode_responses=True).
"""
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from fiyofeed.config import settings
from fiyofeed.errors import StoreUnavailable

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    global _redis
    _redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
    )
    await _redis.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


class RedisCache:
    """Cache capability over a redis.asyncio client."""

    name = "cache"

    def __init__(self, client: aioredis.Redis) -> None:
        self._r = client

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._r.get(key)
        except RedisError as exc:
            raise StoreUnavailable(self.name, "get") from exc

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            await self._r.set(key, value, ex=ttl)
        except RedisError as exc:
            raise StoreUnavailable(self.name, "set") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._r.delete(key)
        except RedisError as exc:
            raise StoreUnavailable(self.name, "delete") from exc

    async def expire(self, key: str, ttl: int) -> None:
        try:
            await self._r.expire(key, ttl)
        except RedisError as exc:
            raise StoreUnavailable(self.name, "expire") from exc

    async def set_many(self, values: dict[str, str], ttl: int) -> None:
        """SET + EXPIRE for every key inside one MULTI/EXEC transaction."""
        try:
            pipe = self._r.pipeline(transaction=True)
            for key, value in values.items():
                pipe.set(key, value)
                pipe.expire(key, ttl)
            await pipe.execute()
        except RedisError as exc:
            raise StoreUnavailable(self.name, "set_many") from exc
