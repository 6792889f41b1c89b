# Models package for the image service

from .image import ImageRecord, ImageStatus

__all__ = [
    "ImageRecord",
    "ImageStatus",
]
