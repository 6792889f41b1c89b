# image_service/services/storage_keys.py
import re
import uuid
from typing import Optional

STORAGE_PREFIX = "images/"

_KEY_RE = re.compile(r"^images/([0-9a-f]{32})$")


def new_image_id() -> str:
    return uuid.uuid4().hex


def storage_key_for(image_id: str) -> str:
    # images/{id}; geen bestandsnaam van de client in de key
    return f"{STORAGE_PREFIX}{image_id}"


def image_id_from_key(key: str) -> Optional[str]:
    m = _KEY_RE.match(key or "")
    return m.group(1) if m else None
