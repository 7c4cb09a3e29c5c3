"""Prometheus scrape endpoint.

Serves every metric in app.core.metrics in the text exposition format,
for example:

  # HELP access_code_validations_total Access code validations by outcome
  # TYPE access_code_validations_total counter
  access_code_validations_total{outcome="valid"} 41.0
  access_code_validations_total{outcome="no_seats"} 3.0

Left unauthenticated: restrict it at the ingress in production.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
