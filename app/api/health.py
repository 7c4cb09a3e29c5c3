"""Health and readiness endpoints.

  /health (liveness): the process is up.  Always 200; the body says
    whether the store behind it is reachable.  Without REDIS_URL the
    service runs on in-memory repositories and reports the store as
    ``not_configured``.

  /ready (readiness): may this instance take traffic?  503 while a
    configured Redis cannot be reached: unlike the in-memory fallback,
    a Redis-backed instance has no access codes, courses or sessions
    without it.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from redis.exceptions import RedisError

from app.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _redis_status() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except (RedisError, OSError) as e:
        logger.warning("Redis health check failed: %s", e)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    redis_status = await _redis_status()
    return {
        "status": "degraded" if redis_status == "degraded" else "ok",
        "checks": {"redis": redis_status},
    }


@router.get("/ready")
async def ready() -> Response:
    if await _redis_status() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
