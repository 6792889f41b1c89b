"""
PENDING -> CONFIRMED transitions.

Two triggers lead here: the uploader calling the confirm endpoint after the
browser upload finished, and S3 ``ObjectCreated`` notifications delivered to
the Lambda entry point. Both are idempotent.
"""

from typing import Any, Dict, List
from urllib.parse import unquote_plus

from sqlalchemy.orm import Session

from image_service.auth.verifier import VerifiedIdentity
from image_service.core.errors import NotFound, UploadMissing
from image_service.core.logging_config import logger
from image_service.models.image import ImageRecord
from image_service.repositories.images import get_image, mark_confirmed
from image_service.services.storage import ObjectStorage
from image_service.services.storage_keys import image_id_from_key


def confirm_upload(
    db: Session,
    storage: ObjectStorage,
    identity: VerifiedIdentity,
    image_id: str,
) -> ImageRecord:
    record = get_image(db, image_id)
    # andermans records bestaan voor deze caller niet
    if record is None or record.owner_subject != identity.subject:
        raise NotFound("image not found")

    if not storage.object_exists(record.storage_key):
        raise UploadMissing()

    record = mark_confirmed(db, record)
    logger.info("image_confirmed", image_id=record.id, trigger="api")
    return record


def confirm_from_storage_event(db: Session, event: Dict[str, Any], bucket: str) -> List[str]:
    """Confirm records for every ``ObjectCreated`` record in an S3 event."""
    confirmed: List[str] = []
    for rec in event.get("Records", []):
        if not str(rec.get("eventName", "")).startswith("ObjectCreated:"):
            continue
        s3 = rec.get("s3") or {}
        if (s3.get("bucket") or {}).get("name") != bucket:
            logger.warning("storage_event_other_bucket", bucket=(s3.get("bucket") or {}).get("name"))
            continue

        key = unquote_plus((s3.get("object") or {}).get("key", ""))
        image_id = image_id_from_key(key)
        if image_id is None:
            logger.info("storage_event_ignored", key=key)
            continue

        record = get_image(db, image_id)
        if record is None:
            logger.warning("storage_event_unknown_image", image_id=image_id)
            continue

        mark_confirmed(db, record)
        confirmed.append(image_id)
        logger.info("image_confirmed", image_id=image_id, trigger="storage_event")
    return confirmed
