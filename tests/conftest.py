import os

# --- env vóór de eerste image_service import: settings zijn lru_cached ---
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("S3_BUCKET_NAME", "test-images")
os.environ.setdefault("CLOUDFRONT_DOMAIN", "images.example.com")
os.environ.setdefault("TOKEN_ISSUER", "https://issuer.test/pool")
os.environ.setdefault("COGNITO_APP_CLIENT_ID", "client-123")
os.environ.setdefault("RATE_LIMIT_ENABLED", "0")
# Dummy env zodat boto3/moto niet zeurt
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")

import json
import time
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jwt.algorithms import RSAAlgorithm
from sqlalchemy import event

from image_service import models  # noqa: F401
from image_service.auth.deps import verifier_factory
from image_service.auth.jwks import SigningKeyCache
from image_service.auth.verifier import IdentityVerifier
from image_service.core.errors import CredentialError
from image_service.db import Base, get_database
from image_service.main import app
from image_service.models.image import ImageRecord, ImageStatus
from image_service.services.storage import ObjectStorage, UploadTarget, get_object_storage

ISSUER = "https://issuer.test/pool"
CLIENT_ID = "client-123"
KID = "test-key-1"


# --- DB setup for tests: create tables once, drop afterwards ---
@pytest.fixture(scope="session", autouse=True)
def _create_test_db():
    engine = get_database().engine
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    db = get_database().session()
    db.query(ImageRecord).delete()
    db.commit()
    db.close()


@pytest.fixture
def db():
    session = get_database().session()
    yield session
    session.close()


@pytest.fixture
def sql_statements():
    """Lijst met alle SQL statements die tijdens de test worden uitgevoerd."""
    engine = get_database().engine
    seen = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        seen.append(statement)

    event.listen(engine, "before_cursor_execute", _record)
    yield seen
    event.remove(engine, "before_cursor_execute", _record)


# --- Identity provider ---
def _rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _public_jwk(private_key, kid: str) -> dict:
    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return jwk


@pytest.fixture(scope="session")
def signing_key():
    return _rsa_key()


@pytest.fixture(scope="session")
def jwks(signing_key):
    return {"keys": [_public_jwk(signing_key, KID)]}


@pytest.fixture
def make_token(signing_key):
    def _make(sub="u-42", *, key=None, kid=KID, expires_in=3600, **claims):
        now = int(time.time())
        payload = {
            "sub": sub,
            "iss": ISSUER,
            "aud": CLIENT_ID,
            "token_use": "id",
            "iat": now,
            "exp": now + expires_in,
        }
        payload.update(claims)
        payload = {k: v for k, v in payload.items() if v is not None}
        return jwt.encode(payload, key or signing_key, algorithm="RS256", headers={"kid": kid})

    return _make


@pytest.fixture
def verifier(jwks):
    keys = SigningKeyCache(lambda: jwks)
    return IdentityVerifier(keys=keys, issuer=ISSUER, audience=CLIENT_ID)


# --- Storage ---
class FakeStorage(ObjectStorage):
    """ObjectStorage zonder S3: houdt bij welke calls er gedaan zijn."""

    def __init__(self):
        self.bucket = "test-images"
        self.cdn_base_url = "https://images.example.com"
        self.max_bytes = 10 * 1024 * 1024
        self.calls = []
        self.fail_presign = False
        self.existing = set()

    def issue_write_credential(self, key: str, ttl: int) -> UploadTarget:
        self.calls.append(("presign", key))
        if self.fail_presign:
            raise CredentialError("presign failed: AccessDenied")
        return UploadTarget(
            url=f"https://{self.bucket}.s3.amazonaws.com/",
            key=key,
            expires_in=ttl,
            fields={"key": key, "policy": "p", "x-amz-signature": "s"},
        )

    def object_exists(self, key: str) -> bool:
        self.calls.append(("head", key))
        return key in self.existing


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(verifier, storage):
    app.dependency_overrides[verifier_factory] = lambda: (lambda: verifier)
    app.dependency_overrides[get_object_storage] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(make_token):
    return {"Authorization": f"Bearer {make_token('u-42')}"}


@pytest.fixture
def add_record(db):
    def _add(
        image_id: str,
        *,
        status=ImageStatus.CONFIRMED,
        owner="u-1",
        created_at=None,
        title="Untitled",
        description="",
    ):
        rec = ImageRecord(
            id=image_id,
            owner_subject=owner,
            storage_key=f"images/{image_id}",
            title=title,
            description=description,
            status=status,
            created_at=created_at or datetime.now(timezone.utc),
        )
        db.add(rec)
        db.commit()
        return rec

    return _add


@pytest.fixture
def base_time():
    return datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def minutes(base_time):
    return lambda n: base_time + timedelta(minutes=n)
