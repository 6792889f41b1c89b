# image_service/schemas/images.py
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === Request ===
class SubmitRequest(BaseModel):
    # ownerSubject e.d. worden genegeerd: eigenaar komt uit het token
    title: Optional[str] = None
    description: Optional[str] = None


# === Response ===
class UploadTargetOut(_CamelModel):
    method: str
    url: str
    fields: Dict[str, str]
    key: str
    expires_in: int


class SubmitResponse(_CamelModel):
    id: str
    upload_target: UploadTargetOut
    title: str
    description: str


class GalleryImage(_CamelModel):
    id: str
    url: str
    title: str
    description: str
    created_at: datetime


class GalleryResponse(_CamelModel):
    images: list[GalleryImage]
    next_cursor: Optional[str] = None


class ConfirmResponse(_CamelModel):
    id: str
    status: str
    url: str


class HealthResponse(BaseModel):
    status: str
    service: str
