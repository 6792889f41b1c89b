# image_service/routers/images.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from image_service.auth.deps import require_identity
from image_service.auth.verifier import VerifiedIdentity
from image_service.core.errors import CredentialError, PersistenceError, ValidationError
from image_service.core.rate_limit import limiter
from image_service.core.settings import get_settings
from image_service.db import get_db
from image_service.observability.metrics import (
    confirm_counter,
    gallery_counter,
    latency_hist,
    submit_counter,
)
from image_service.schemas.images import (
    ConfirmResponse,
    GalleryImage,
    GalleryResponse,
    SubmitRequest,
    SubmitResponse,
    UploadTargetOut,
)
from image_service.services.confirmation import confirm_upload
from image_service.services.gallery import list_gallery
from image_service.services.storage import ObjectStorage, get_object_storage
from image_service.services.submissions import submit_image

# Alle /v1 routes: eerst Attach + Require, pas daarna db/storage dependencies
router = APIRouter(prefix="/v1", tags=["images"], dependencies=[Depends(require_identity)])


@router.post("/submit", response_model=SubmitResponse)
@limiter.limit(get_settings().SUBMIT_RATE_LIMIT)
def submit(
    request: Request,
    body: Optional[SubmitRequest] = None,
    identity: VerifiedIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
):
    body = body or SubmitRequest()
    with latency_hist.labels(route="/v1/submit").time():
        try:
            result = submit_image(
                db, storage, identity, title=body.title, description=body.description
            )
        except ValidationError:
            submit_counter.labels(result="validation_error").inc()
            raise
        except CredentialError:
            submit_counter.labels(result="credential_error").inc()
            raise
        except PersistenceError:
            submit_counter.labels(result="persistence_error").inc()
            raise

    submit_counter.labels(result="success").inc()
    t = result.upload_target
    return SubmitResponse(
        id=result.id,
        upload_target=UploadTargetOut(
            method=t.method, url=t.url, fields=t.fields, key=t.key, expires_in=t.expires_in
        ),
        title=result.title,
        description=result.description,
    )


@router.get("/gallery", response_model=GalleryResponse, response_model_exclude_none=True)
def gallery(
    limit: Optional[int] = Query(None),
    cursor: Optional[str] = Query(None, max_length=512),
    identity: VerifiedIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
):
    s = get_settings()
    if limit is None:
        limit = s.GALLERY_DEFAULT_LIMIT
    if limit < 1 or limit > s.GALLERY_MAX_LIMIT:
        raise ValidationError(f"limit must be between 1 and {s.GALLERY_MAX_LIMIT}")

    with latency_hist.labels(route="/v1/gallery").time():
        try:
            page = list_gallery(db, storage, limit=limit, cursor=cursor)
        except PersistenceError:
            gallery_counter.labels(result="error").inc()
            raise

    gallery_counter.labels(result="success").inc()
    return GalleryResponse(
        images=[
            GalleryImage(
                id=i.id,
                url=i.url,
                title=i.title,
                description=i.description,
                created_at=i.created_at,
            )
            for i in page.images
        ],
        next_cursor=page.next_cursor,
    )


@router.post("/images/{image_id}/confirm", response_model=ConfirmResponse)
def confirm(
    image_id: str,
    identity: VerifiedIdentity = Depends(require_identity),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
):
    record = confirm_upload(db, storage, identity, image_id)
    confirm_counter.labels(trigger="api").inc()
    return ConfirmResponse(
        id=record.id,
        status=record.status.value,
        url=storage.public_url(record.storage_key),
    )
