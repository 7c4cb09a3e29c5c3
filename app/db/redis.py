"""Redis connection management.

When REDIS_URL is configured, every repository in app/repos/ uses its
Redis implementation and all API instances share one store.  When it is
None (local dev, tests), the repositories fall back to in-memory
implementations and no Redis server is needed.

Redis fits this data well: courses, access codes, and results are small
JSON documents read by key, the seat counter needs an atomic
conditional increment (a Lua script), idempotency keys need SET NX, and
learner sessions need a TTL.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

# Check the config at import time and create the client if configured.
# Every consumer of redis_pool checks for None and falls back to in-memory.

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,  # str, not bytes
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook: verify connectivity, release the pool on exit."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured, using in-memory repositories")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]  # redis stubs mistype async ping as bool
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # /health reports the store as degraded until Redis answers.
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
