"""
AWS Lambda entry point.

API Gateway proxy events go through Mangum to the FastAPI app; S3
``ObjectCreated`` notifications for the image bucket confirm pending uploads.
"""

from typing import Any, Dict

from mangum import Mangum

from image_service.core.logging_config import logger
from image_service.core.settings import get_settings
from image_service.db import get_database
from image_service.main import app
from image_service.observability.metrics import confirm_counter
from image_service.services.confirmation import confirm_from_storage_event

_http_handler = Mangum(app, lifespan="off")


def is_storage_event(event: Dict[str, Any]) -> bool:
    records = event.get("Records") or []
    return bool(records) and all(r.get("eventSource") == "aws:s3" for r in records)


def handle_storage_event(event: Dict[str, Any]) -> Dict[str, Any]:
    bucket = get_settings().require("S3_BUCKET_NAME")
    db = get_database().session()
    try:
        confirmed = confirm_from_storage_event(db, event, bucket)
    finally:
        db.close()
    confirm_counter.labels(trigger="storage_event").inc(len(confirmed))
    logger.info("storage_event_handled", records=len(event.get("Records", [])), confirmed=len(confirmed))
    return {"confirmed": confirmed}


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    if is_storage_event(event):
        return handle_storage_event(event)
    return _http_handler(event, context)
