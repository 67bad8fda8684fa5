"""Health and readiness endpoints.

  /health (liveness):  always 200 while the process can answer; the body
                       reports each dependency as ok/degraded.
  /ready  (readiness): 503 while the blob store reports itself unavailable,
                       so the load balancer stops routing writes that
                       would fail with Unavailable anyway.

Redis is only checked when REDIS_URL is configured; without it the
in-memory blob store is the whole backend.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from redis.exceptions import RedisError

from edupassport.db.redis import redis_pool
from edupassport.repos.blob_store import blob_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Liveness probe plus dependency status.

    Returns 200 even when degraded; the ``status`` field carries the
    actual health.
    """
    checks: dict[str, str] = {}
    overall = "ok"

    if redis_pool is not None:
        try:
            await redis_pool.ping()  # type: ignore[misc]
            checks["redis"] = "ok"
        except RedisError:
            logger.warning("Health check: Redis ping failed", exc_info=True)
            checks["redis"] = "degraded"
            overall = "degraded"
    else:
        checks["redis"] = "not_configured"

    if await blob_store.is_available():
        checks["blob_store"] = "ok"
    else:
        checks["blob_store"] = "unavailable"
        overall = "degraded"

    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    """Readiness probe: 200 when the blob store can serve calls, else 503."""
    if await blob_store.is_available():
        return Response(status_code=status.HTTP_200_OK)
    return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
