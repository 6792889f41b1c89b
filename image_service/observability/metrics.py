# image_service/observability/metrics.py
from fastapi import APIRouter
from starlette.responses import Response

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

router = APIRouter(tags=["observability"])

submit_counter = Counter(
    "image_service_submit_total",
    "Aantal submit requests",
    ["result"],  # success|credential_error|persistence_error|validation_error
)

confirm_counter = Counter(
    "image_service_confirm_total",
    "Aantal bevestigde uploads",
    ["trigger"],  # api|storage_event
)

gallery_counter = Counter(
    "image_service_gallery_total",
    "Aantal gallery requests",
    ["result"],  # success|error
)

latency_hist = Histogram(
    "image_service_api_latency_seconds",
    "API latency per route",
    ["route"],  # e.g. /v1/submit, /v1/gallery
)


@router.get("/metrics", include_in_schema=True)
def metrics() -> Response:
    # Prometheus expects text/plain; version=0.0.4
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
