"""
Credential resolution for the database and object storage.

The database secret is reached in two hops: the service is configured with a
stable SSM parameter name, the parameter holds the Secrets Manager ARN, and the
secret holds the actual connection values. Rotating or moving the secret only
requires updating the parameter, not redeploying the service.
"""

import json
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.engine import URL

from image_service.aws.clients import make_client
from image_service.aws.errors import aws_request_id, error_code, is_not_found
from image_service.core.cache import TTLCache
from image_service.core.errors import ConfigurationError, CredentialError
from image_service.core.logging_config import logger
from image_service.core.settings import Settings, get_settings

_SECRET_FIELDS = ("username", "password", "host", "port", "dbname")


@dataclass(frozen=True)
class DatabaseSecret:
    username: str
    password: str
    host: str
    port: int
    dbname: str

    def __repr__(self) -> str:
        # wachtwoord nooit in logs of tracebacks
        return (
            f"DatabaseSecret(username={self.username!r}, host={self.host!r}, "
            f"port={self.port}, dbname={self.dbname!r})"
        )

    def sqlalchemy_url(self, dbname: Optional[str] = None) -> URL:
        return URL.create(
            "postgresql+psycopg2",
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=dbname or self.dbname or None,
        )

    @classmethod
    def from_secret_string(cls, raw: Optional[str]) -> "DatabaseSecret":
        if not raw:
            raise CredentialError("database secret is empty")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CredentialError(f"database secret is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise CredentialError("database secret is not a JSON object")

        # RDS-managed secrets kennen geen dbname; dan komt die uit RDS_DB_NAME
        missing = [f for f in _SECRET_FIELDS if f != "dbname" and not data.get(f)]
        if missing:
            raise CredentialError(f"database secret is missing fields: {missing}")
        try:
            port = int(data["port"])
        except (TypeError, ValueError) as e:
            raise CredentialError("database secret has a non-numeric port") from e

        return cls(
            username=str(data["username"]),
            password=str(data["password"]),
            host=str(data["host"]),
            port=port,
            dbname=str(data.get("dbname") or data.get("dbName") or ""),
        )


class ParameterStore:
    """Pointer lookups in SSM Parameter Store."""

    def __init__(self, client: Any = None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = make_client("ssm")
        return self._client

    def get(self, name: str) -> str:
        try:
            resp = self.client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            if is_not_found(e):
                raise ConfigurationError(f"pointer parameter {name} does not exist") from e
            raise CredentialError(
                f"reading parameter {name} failed: {error_code(e)} "
                f"(request_id={aws_request_id(e)})"
            ) from e
        except BotoCoreError as e:
            raise CredentialError(f"reading parameter {name} failed: {e}") from e

        value = (resp.get("Parameter") or {}).get("Value")
        if not value:
            raise ConfigurationError(f"pointer parameter {name} is empty")
        return value


class SecretStore:
    """Secrets Manager reads for database connection secrets."""

    def __init__(self, client: Any = None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = make_client("secretsmanager")
        return self._client

    def get(self, location: str) -> DatabaseSecret:
        try:
            resp = self.client.get_secret_value(SecretId=location)
        except ClientError as e:
            raise CredentialError(
                f"fetching secret failed: {error_code(e)} (request_id={aws_request_id(e)})"
            ) from e
        except BotoCoreError as e:
            raise CredentialError(f"fetching secret failed: {e}") from e
        return DatabaseSecret.from_secret_string(resp.get("SecretString"))


class CredentialResolver:
    """Owns the cached database secret and the S3 session client.

    Both are kept for their validity window. Callers that see an authorization
    failure from a store call the matching ``invalidate_*`` method so the next
    request resolves fresh credentials.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        parameters: Optional[ParameterStore] = None,
        secrets: Optional[SecretStore] = None,
        session_factory: Callable[[], boto3.session.Session] = boto3.session.Session,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self.parameters = parameters or ParameterStore()
        self.secrets = secrets or SecretStore()
        self._session_factory = session_factory
        self._db_secret: TTLCache[DatabaseSecret] = TTLCache(
            self._resolve_database_secret, ttl=self.settings.SECRET_CACHE_TTL_SECONDS, clock=clock
        )
        self._storage: TTLCache[Any] = TTLCache(
            self._new_storage_client, ttl=self.settings.STORAGE_SESSION_TTL_SECONDS, clock=clock
        )

    # --- database ---
    def _resolve_database_secret(self) -> DatabaseSecret:
        pointer = self.settings.require("RDS_SECRET_PARAMETER")
        location = self.parameters.get(pointer)
        secret = self.secrets.get(location)
        logger.info("database_secret_resolved", parameter=pointer, host=secret.host)
        return secret

    def database_secret(self) -> DatabaseSecret:
        return self._db_secret.get()

    def invalidate_database_secret(self) -> None:
        logger.info("database_secret_invalidated")
        self._db_secret.invalidate()

    # --- storage ---
    def _new_storage_client(self):
        return make_client("s3", session=self._session_factory())

    def storage_client(self):
        return self._storage.get()

    def invalidate_storage(self) -> None:
        logger.info("storage_session_invalidated")
        self._storage.invalidate()


@lru_cache(maxsize=1)
def get_credential_resolver() -> CredentialResolver:
    return CredentialResolver()
