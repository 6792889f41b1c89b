# image_service/routers/health.py
from fastapi import APIRouter

from image_service.schemas.images import HealthResponse

SERVICE = "image-service"

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, include_in_schema=True)
def health() -> dict:
    # geen auth en geen config-checks: moet altijd antwoorden
    return {"status": "ok", "service": SERVICE}
