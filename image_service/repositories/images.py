# image_service/repositories/images.py
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from image_service.core.errors import PersistenceError
from image_service.db import get_database
from image_service.models.image import ImageRecord, ImageStatus


@contextmanager
def _persistence(db: Session, action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        get_database().handle_error(e)
        raise PersistenceError(f"{action} failed: {e.__class__.__name__}: {e}") from e


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def insert_pending(
    db: Session,
    *,
    image_id: str,
    owner_subject: str,
    storage_key: str,
    title: str,
    description: str,
    created_at: Optional[datetime] = None,
) -> ImageRecord:
    record = ImageRecord(
        id=image_id,
        owner_subject=owner_subject,
        storage_key=storage_key,
        title=title,
        description=description,
        status=ImageStatus.PENDING,
        created_at=created_at or utcnow(),
    )
    with _persistence(db, "inserting image record"):
        db.add(record)
        db.commit()
    return record


def get_image(db: Session, image_id: str) -> ImageRecord | None:
    with _persistence(db, "loading image record"):
        return db.query(ImageRecord).filter(ImageRecord.id == image_id).first()


def mark_confirmed(db: Session, record: ImageRecord) -> ImageRecord:
    if record.status == ImageStatus.CONFIRMED:
        return record
    with _persistence(db, "confirming image record"):
        record.status = ImageStatus.CONFIRMED
        record.confirmed_at = utcnow()
        db.commit()
    return record


def list_confirmed(
    db: Session,
    *,
    limit: int,
    after: Optional[tuple[datetime, str]] = None,
) -> tuple[list[ImageRecord], bool]:
    """Newest CONFIRMED records first; returns (page, has_more).

    ``after`` is the (created_at, id) of the last record of the previous page.
    """
    q = db.query(ImageRecord).filter(ImageRecord.status == ImageStatus.CONFIRMED)
    if after is not None:
        created_at, image_id = after
        q = q.filter(
            or_(
                ImageRecord.created_at < created_at,
                and_(ImageRecord.created_at == created_at, ImageRecord.id < image_id),
            )
        )
    q = q.order_by(ImageRecord.created_at.desc(), ImageRecord.id.desc()).limit(limit + 1)

    with _persistence(db, "listing gallery"):
        rows = q.all()
    return rows[:limit], len(rows) > limit
