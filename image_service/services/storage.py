# image_service/services/storage.py
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from image_service.aws.credentials import CredentialResolver, get_credential_resolver
from image_service.aws.errors import error_code, is_auth_failure, is_not_found
from image_service.core.errors import CredentialError
from image_service.core.logging_config import logger
from image_service.core.settings import Settings, get_settings


@dataclass(frozen=True)
class UploadTarget:
    """Presigned POST that can write exactly one key."""

    url: str
    key: str
    expires_in: int
    fields: Dict[str, str] = field(default_factory=dict)
    method: str = "POST"


class ObjectStorage:
    """S3 access for the image bucket: upload targets, existence checks, CDN URLs."""

    def __init__(
        self,
        bucket: str,
        cdn_base_url: str,
        resolver: Optional[CredentialResolver] = None,
        max_bytes: int = 10 * 1024 * 1024,
    ):
        self.bucket = bucket
        self.cdn_base_url = cdn_base_url.rstrip("/")
        self.resolver = resolver or get_credential_resolver()
        self.max_bytes = max_bytes

    def _fail(self, action: str, e: Exception) -> CredentialError:
        if isinstance(e, NoCredentialsError) or (isinstance(e, ClientError) and is_auth_failure(e)):
            self.resolver.invalidate_storage()
        code = error_code(e) if isinstance(e, ClientError) else e.__class__.__name__
        logger.error("storage_call_failed", action=action, bucket=self.bucket, code=code)
        return CredentialError(f"{action} failed: {code}: {e}")

    def issue_write_credential(self, key: str, ttl: int) -> UploadTarget:
        client = self.resolver.storage_client()
        conditions: list[Any] = [
            ["starts-with", "$Content-Type", "image/"],
            ["content-length-range", 1, self.max_bytes],
        ]
        try:
            # boto voegt zelf de exacte {"key": key} en bucket conditions toe
            post = client.generate_presigned_post(
                Bucket=self.bucket,
                Key=key,
                Conditions=conditions,
                ExpiresIn=ttl,
            )
        except (BotoCoreError, ClientError) as e:
            raise self._fail("presign", e) from e

        return UploadTarget(url=post["url"], key=key, expires_in=ttl, fields=dict(post["fields"]))

    def object_exists(self, key: str) -> bool:
        client = self.resolver.storage_client()
        try:
            client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if is_not_found(e):
                return False
            raise self._fail("head_object", e) from e
        except BotoCoreError as e:
            raise self._fail("head_object", e) from e

    def public_url(self, key: str) -> str:
        return f"{self.cdn_base_url}/{key.lstrip('/')}"


def build_object_storage(settings: Optional[Settings] = None) -> ObjectStorage:
    s = settings or get_settings()
    return ObjectStorage(
        bucket=s.require("S3_BUCKET_NAME"),
        cdn_base_url=s.cdn_base_url,
        max_bytes=s.MAX_UPLOAD_MB * 1024 * 1024,
    )


@lru_cache(maxsize=1)
def get_object_storage() -> ObjectStorage:
    """Singleton voor FastAPI DI; config wordt pas bij eerste gebruik gecontroleerd."""
    return build_object_storage()
