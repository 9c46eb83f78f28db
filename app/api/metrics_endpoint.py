"""Prometheus scrape endpoint.

Serves the default registry in text exposition format.  Besides the HTTP
request series, the payment and progress counters live here, e.g.:

  payment_verifications_total{result="verified"} 41.0
  payment_webhooks_total{event="payment.captured",result="duplicate"} 3.0
  lecture_completions_total{result="already_completed"} 12.0

Unauthenticated, and not counted by the metrics middleware.  Keep it off
the public ingress.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
