"""Redis connection management.

When REDIS_URL is configured, the credential blobs live in Redis so that
every API process (and every client sharing the deployment) sees the
same index and records.  When it is None (local dev, tests), the blob
store falls back to an in-process dictionary and no Redis server is
needed.

Redis stands in for the contract's key-value store: plain GET/SET on
string keys, no multi-key transactions used.  That keeps the index
read-modify-write race identical to the contract deployment instead of
hiding it behind a Redis-only atomic primitive.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from edupassport.core.config import SETTINGS

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Conditional Redis client (None when REDIS_URL is not set)
# ---------------------------------------------------------------------------
# Every consumer of redis_pool checks for None and falls back to in-memory.

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=False,  # blobs are bytes, decoded by the registry
        max_connections=20,
        socket_timeout=10,
        socket_connect_timeout=5,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook: verify connectivity, release the pool on exit."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured; credential blobs kept in memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]  # redis stubs mistype async ping as bool
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        logger.exception("Redis connection failed on startup")
        # Start anyway: the blob store reports itself unavailable, reads
        # degrade to empty results and writes fail with Unavailable.
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
