# image_service/models/image.py
import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from image_service.db import Base


class ImageStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"


class ImageRecord(Base):
    __tablename__ = "image_records"
    __table_args__ = (
        # gallery: WHERE status = 'CONFIRMED' ORDER BY created_at DESC, id DESC
        Index("ix_image_records_status_created", "status", "created_at", "id"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    owner_subject: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    storage_key: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="Untitled")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[ImageStatus] = mapped_column(
        Enum(ImageStatus, name="image_status"),
        nullable=False,
        default=ImageStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
