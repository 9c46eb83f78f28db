"""Redis connection management.

Mirrors app/db/engine.py: with REDIS_URL set we create one shared async
connection pool; without it ``redis_pool`` is None and consumers fall back
to in-memory implementations.

The marketplace keeps only short-lived, cross-instance bookkeeping in
Redis (the webhook event ledger).  Purchases and progress are durable
records and live in PostgreSQL.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


async def ping_redis() -> bool:
    if redis_pool is None:
        return False
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Redis ping failed", exc_info=True)
        return False
    return True


@asynccontextmanager
async def lifespan_redis():
    if redis_pool is None:
        logger.info("No REDIS_URL configured, webhook ledger is in-memory")
        yield
        return

    if await ping_redis():
        logger.info("Redis connected")
    else:
        # Start anyway; webhook deduplication degrades, payments do not.
        logger.error("Redis unreachable on startup")

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
