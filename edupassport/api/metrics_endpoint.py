"""Prometheus scrape endpoint.

Returns the text exposition format, including the registry counters:

  registry_operations_total{operation="create",result="ok"} 12.0
  registry_listing_skips_total{reason="malformed"} 1.0
  reveal_attempts_total{result="UserRejected"} 3.0

Restrict access in production (internal port or scraper allow-list):
the counters reveal traffic and failure patterns.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
