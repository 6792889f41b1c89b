# image_service/services/submissions.py
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from image_service.auth.verifier import VerifiedIdentity
from image_service.core.errors import ValidationError
from image_service.core.logging_config import logger
from image_service.core.settings import Settings, get_settings
from image_service.repositories.images import insert_pending
from image_service.services.storage import ObjectStorage, UploadTarget
from image_service.services.storage_keys import new_image_id, storage_key_for

DEFAULT_TITLE = "Untitled"
DEFAULT_DESCRIPTION = ""


@dataclass(frozen=True)
class Submission:
    id: str
    upload_target: UploadTarget
    title: str
    description: str


def _text_or_default(value: Optional[str], default: str, max_length: int, name: str) -> str:
    if value is None or not value.strip():
        return default
    if len(value) > max_length:
        raise ValidationError(f"{name} is longer than {max_length} characters")
    return value


def submit_image(
    db: Session,
    storage: ObjectStorage,
    identity: VerifiedIdentity,
    title: Optional[str] = None,
    description: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Submission:
    """
    Reserve a new image: scoped upload target first, then the PENDING row.

    If the upload target cannot be issued nothing is written, so there is never
    a PENDING row without a usable upload target.
    """
    s = settings or get_settings()
    title = _text_or_default(title, DEFAULT_TITLE, s.TITLE_MAX_LENGTH, "title")
    description = _text_or_default(
        description, DEFAULT_DESCRIPTION, s.DESCRIPTION_MAX_LENGTH, "description"
    )

    image_id = new_image_id()
    key = storage_key_for(image_id)

    target = storage.issue_write_credential(key, ttl=s.PRESIGN_EXPIRES_SECONDS)

    insert_pending(
        db,
        image_id=image_id,
        owner_subject=identity.subject,
        storage_key=key,
        title=title,
        description=description,
    )
    logger.info("image_submitted", image_id=image_id, owner=identity.subject)

    return Submission(id=image_id, upload_target=target, title=title, description=description)
