# image_service/services/gallery.py
import base64
import binascii
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from image_service.core.errors import ValidationError
from image_service.models.image import ImageRecord
from image_service.repositories.images import list_confirmed
from image_service.services.storage import ObjectStorage


@dataclass(frozen=True)
class GalleryItem:
    id: str
    url: str
    title: str
    description: str
    created_at: datetime


@dataclass(frozen=True)
class GalleryPage:
    images: list[GalleryItem]
    next_cursor: Optional[str] = None


def _as_utc(ts: datetime) -> datetime:
    # SQLite geeft naive datetimes terug; we slaan altijd UTC op
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def encode_cursor(record: ImageRecord) -> str:
    raw = f"{_as_utc(record.created_at).isoformat()}|{record.id}"
    return base64.urlsafe_b64encode(raw.encode()).decode().rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, str]:
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        raw = base64.urlsafe_b64decode(padded.encode()).decode()
        ts, image_id = raw.split("|", 1)
        created_at = _as_utc(datetime.fromisoformat(ts))
    except (ValueError, binascii.Error, UnicodeDecodeError) as e:
        raise ValidationError("invalid cursor") from e
    if not image_id:
        raise ValidationError("invalid cursor")
    return created_at, image_id


def list_gallery(
    db: Session,
    storage: ObjectStorage,
    *,
    limit: int,
    cursor: Optional[str] = None,
) -> GalleryPage:
    after = decode_cursor(cursor) if cursor else None
    records, has_more = list_confirmed(db, limit=limit, after=after)

    images = [
        GalleryItem(
            id=r.id,
            url=storage.public_url(r.storage_key),
            title=r.title,
            description=r.description,
            created_at=_as_utc(r.created_at),
        )
        for r in records
    ]
    next_cursor = encode_cursor(records[-1]) if has_more and records else None
    return GalleryPage(images=images, next_cursor=next_cursor)
