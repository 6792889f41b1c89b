# image_service/db.py
import threading
from functools import lru_cache
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base
from sqlalchemy.pool import StaticPool

from image_service.aws.credentials import (
    CredentialResolver,
    DatabaseSecret,
    get_credential_resolver,
)
from image_service.core.errors import PersistenceError
from image_service.core.logging_config import logger
from image_service.core.settings import Settings, get_settings

Base = declarative_base()

_AUTH_FAILURE_MARKERS = (
    "password authentication failed",
    "pam authentication failed",
    "no pg_hba.conf entry",
)


def is_auth_failure(exc: BaseException) -> bool:
    """True when the database rejected our credentials (bv. na rotatie)."""
    if not isinstance(exc, DBAPIError):
        return False
    message = str(exc.orig or exc).lower()
    return any(marker in message for marker in _AUTH_FAILURE_MARKERS)


class LazySession(Session):
    """Session die de engine pas bij de eerste query ophaalt.

    Opening a session therefore never touches SSM, Secrets Manager or the
    database; requests rejected by auth or validation stay side-effect free.
    """

    def __init__(self, database: "Database", **kwargs):
        self._database = database
        super().__init__(**kwargs)

    def get_bind(self, mapper=None, **kwargs):
        return self._database.engine


class Database:
    """Lazily built engine; the URL comes from config or from the credential resolver."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        resolver: Optional[CredentialResolver] = None,
    ):
        self.settings = settings or get_settings()
        self._resolver = resolver
        self._engine: Optional[Engine] = None
        self._engine_secret: Optional[DatabaseSecret] = None
        self._lock = threading.Lock()

    @property
    def resolver(self) -> CredentialResolver:
        if self._resolver is None:
            self._resolver = get_credential_resolver()
        return self._resolver

    def _current_secret(self) -> Optional[DatabaseSecret]:
        if self.settings.DATABASE_URL:
            return None
        self.settings.require("RDS_DB_NAME")
        # binnen de TTL uit de cache; na afloop opnieuw via SSM en Secrets Manager
        return self.resolver.database_secret()

    def _url(self, secret: Optional[DatabaseSecret] = None) -> str | URL:
        if self.settings.DATABASE_URL:
            return self.settings.DATABASE_URL
        dbname = self.settings.require("RDS_DB_NAME")
        secret = secret or self.resolver.database_secret()
        return secret.sqlalchemy_url(dbname)

    def _create_engine(self, secret: Optional[DatabaseSecret] = None) -> Engine:
        url = self._url(secret)
        timeout = int(self.settings.EXTERNAL_TIMEOUT_SECONDS)

        if str(url).startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if str(url) in ("sqlite://", "sqlite:///:memory:"):
                # in-memory: alle sessies moeten dezelfde connectie delen
                kwargs["poolclass"] = StaticPool
            return create_engine(url, **kwargs)

        return create_engine(
            url,
            pool_pre_ping=True,
            pool_size=2,
            max_overflow=2,
            pool_timeout=timeout,
            connect_args={"connect_timeout": timeout},
        )

    @property
    def engine(self) -> Engine:
        """The engine for the current credentials.

        When the cached secret has expired and re-resolution returns different
        values, the old engine is disposed and a new one is built.
        """
        secret = self._current_secret()
        engine = self._engine
        if engine is not None and secret == self._engine_secret:
            return engine
        with self._lock:
            if self._engine is not None and secret != self._engine_secret:
                stale, self._engine = self._engine, None
                stale.dispose()
                logger.info("database_engine_rotated")
            if self._engine is None:
                try:
                    self._engine = self._create_engine(secret)
                except SQLAlchemyError as e:
                    raise PersistenceError(f"creating database engine failed: {e}") from e
                self._engine_secret = secret
            return self._engine

    def session(self) -> Session:
        return LazySession(self, autoflush=False, expire_on_commit=False)

    def reset(self, invalidate_credentials: bool = True) -> None:
        """Drop the engine so the next request reconnects with fresh credentials."""
        with self._lock:
            engine, self._engine = self._engine, None
            self._engine_secret = None
        if engine is not None:
            engine.dispose()
        if invalidate_credentials and not self.settings.DATABASE_URL:
            self.resolver.invalidate_database_secret()
        logger.info("database_engine_reset", invalidate_credentials=invalidate_credentials)

    def handle_error(self, exc: SQLAlchemyError) -> None:
        if is_auth_failure(exc):
            self.reset(invalidate_credentials=True)


@lru_cache(maxsize=1)
def get_database() -> Database:
    return Database()


def get_db() -> Iterator[Session]:
    db = get_database().session()
    try:
        yield db
    finally:
        db.close()
