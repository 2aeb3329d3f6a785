"""Redis async connection pool, created on first use."""

from __future__ import annotations

import redis.asyncio as aioredis

from src.config import settings
from .locks import DistributedLock

_pool: aioredis.ConnectionPool | None = None


async def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(
            settings.redis_url, decode_responses=True
        )
    return aioredis.Redis(connection_pool=_pool)


async def scheduler_lock() -> DistributedLock:
    """Lock guarding one periodic scheduler tick across processes."""
    return DistributedLock(
        await get_redis(),
        "booking_scheduler",
        ttl_seconds=settings.scheduler_lock_ttl_seconds,
    )
