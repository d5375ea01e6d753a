# backend/practicebook/routes/v1/metrics.py
"""
Prometheus metrics endpoint.

Public, following standard Prometheus practice; it only exposes operational
counters and timings recorded by the service layer.
"""

from fastapi import APIRouter, Response

from ...monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter(tags=["monitoring"])


@router.get("", include_in_schema=False, response_class=Response, response_model=None)
def get_prometheus_metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
