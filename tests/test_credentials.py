import json

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws
from sqlalchemy.exc import OperationalError

from image_service.aws.credentials import (
    CredentialResolver,
    DatabaseSecret,
    ParameterStore,
    SecretStore,
)
from image_service.core.errors import ConfigurationError, CredentialError, PersistenceError
from image_service.core.settings import Settings
from image_service.db import Database, is_auth_failure
from image_service.repositories import images as images_repo

POINTER = "/rds/secret-arn"
SECRET = {
    "username": "app",
    "password": "s3cr3t",
    "host": "db.internal",
    "port": 5432,
    "dbname": "images",
}


@pytest.fixture
def aws():
    with mock_aws():
        yield {
            "ssm": boto3.client("ssm", region_name="eu-west-1"),
            "secrets": boto3.client("secretsmanager", region_name="eu-west-1"),
        }


@pytest.fixture
def settings():
    return Settings(
        RDS_SECRET_PARAMETER=POINTER,
        RDS_DB_NAME="images",
        DATABASE_URL=None,
        SECRET_CACHE_TTL_SECONDS=900,
    )


def _publish(aws, secret=SECRET, name="system-rds/rds-credentials"):
    arn = aws["secrets"].create_secret(Name=name, SecretString=json.dumps(secret))["ARN"]
    aws["ssm"].put_parameter(Name=POINTER, Value=arn, Type="String", Overwrite=True)
    return arn


def _resolver(aws, settings):
    return CredentialResolver(
        settings,
        parameters=ParameterStore(aws["ssm"]),
        secrets=SecretStore(aws["secrets"]),
    )


def test_resolves_secret_through_pointer(aws, settings):
    _publish(aws)
    secret = _resolver(aws, settings).database_secret()
    assert secret == DatabaseSecret("app", "s3cr3t", "db.internal", 5432, "images")


def test_secret_is_cached(aws, settings):
    _publish(aws)
    resolver = _resolver(aws, settings)
    first = resolver.database_secret()

    aws["ssm"].delete_parameter(Name=POINTER)
    assert resolver.database_secret() is first


def test_invalidate_follows_moved_secret(aws, settings):
    _publish(aws)
    resolver = _resolver(aws, settings)
    resolver.database_secret()

    # secret verhuist; alleen de pointer wordt bijgewerkt
    _publish(aws, {**SECRET, "host": "db2.internal"}, name="system-rds/rds-credentials-v2")
    assert resolver.database_secret().host == "db.internal"

    resolver.invalidate_database_secret()
    assert resolver.database_secret().host == "db2.internal"


def test_missing_pointer_is_configuration_error(aws, settings):
    with pytest.raises(ConfigurationError):
        _resolver(aws, settings).database_secret()


def test_unconfigured_pointer_name_is_configuration_error(aws):
    s = Settings(RDS_SECRET_PARAMETER="")
    with pytest.raises(ConfigurationError):
        _resolver(aws, s).database_secret()


def test_malformed_secret_is_credential_error(aws, settings):
    arn = aws["secrets"].create_secret(Name="broken", SecretString="not json")["ARN"]
    aws["ssm"].put_parameter(Name=POINTER, Value=arn, Type="String")
    with pytest.raises(CredentialError):
        _resolver(aws, settings).database_secret()


def test_incomplete_secret_is_credential_error(aws, settings):
    _publish(aws, {"username": "app", "host": "db.internal"})
    with pytest.raises(CredentialError, match="missing fields"):
        _resolver(aws, settings).database_secret()


def test_denied_secret_fetch_is_credential_error(aws, settings):
    class DeniedSecrets:
        def get_secret_value(self, **kwargs):
            raise ClientError(
                {"Error": {"Code": "AccessDeniedException", "Message": "no"}},
                "GetSecretValue",
            )

    _publish(aws)
    resolver = CredentialResolver(
        settings, parameters=ParameterStore(aws["ssm"]), secrets=SecretStore(DeniedSecrets())
    )
    with pytest.raises(CredentialError):
        resolver.database_secret()


def test_secret_repr_hides_password():
    secret = DatabaseSecret.from_secret_string(json.dumps(SECRET))
    assert "s3cr3t" not in repr(secret)


def test_rds_managed_secret_without_dbname():
    raw = {k: v for k, v in SECRET.items() if k != "dbname"}
    secret = DatabaseSecret.from_secret_string(json.dumps(raw))
    url = secret.sqlalchemy_url("images")
    assert url.database == "images"
    assert url.drivername == "postgresql+psycopg2"


def test_database_url_built_from_resolved_secret(aws, settings):
    _publish(aws)
    database = Database(settings=settings, resolver=_resolver(aws, settings))
    url = database._url()
    assert url.host == "db.internal"
    assert url.database == "images"
    assert url.password == "s3cr3t"


def test_opening_a_session_resolves_nothing(aws, settings):
    database = Database(settings=settings, resolver=_resolver(aws, settings))
    session = database.session()
    session.close()
    # geen pointer gepubliceerd, en toch geen fout: er is niets opgehaald
    assert database._engine is None


def test_missing_db_name_is_configuration_error(aws):
    s = Settings(RDS_DB_NAME=None, DATABASE_URL=None)
    database = Database(settings=s, resolver=_resolver(aws, s))
    with pytest.raises(ConfigurationError):
        database.engine


def test_storage_client_is_cached_until_invalidated(settings):
    sessions = []

    class FakeSession:
        def client(self, service, config=None):
            sessions.append(service)
            return object()

    resolver = CredentialResolver(settings, session_factory=FakeSession)
    first = resolver.storage_client()
    assert resolver.storage_client() is first
    resolver.invalidate_storage()
    assert resolver.storage_client() is not first
    assert sessions == ["s3", "s3"]


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_engine_follows_secret_after_expiry(aws, settings):
    clock = FakeClock()
    arn = _publish(aws)
    resolver = CredentialResolver(
        settings,
        parameters=ParameterStore(aws["ssm"]),
        secrets=SecretStore(aws["secrets"]),
        clock=clock,
    )
    database = Database(settings=settings, resolver=resolver)
    first = database.engine
    assert first.url.host == "db.internal"

    aws["secrets"].put_secret_value(
        SecretId=arn, SecretString=json.dumps({**SECRET, "host": "db2.internal"})
    )
    # binnen de TTL: gecachte credentials, zelfde engine
    assert database.engine is first

    clock.now += settings.SECRET_CACHE_TTL_SECONDS + 1
    rotated = database.engine
    assert rotated is not first
    assert rotated.url.host == "db2.internal"


def test_engine_is_kept_when_expired_secret_is_unchanged(aws, settings):
    clock = FakeClock()
    _publish(aws)
    resolver = CredentialResolver(
        settings,
        parameters=ParameterStore(aws["ssm"]),
        secrets=SecretStore(aws["secrets"]),
        clock=clock,
    )
    database = Database(settings=settings, resolver=resolver)
    first = database.engine

    clock.now += settings.SECRET_CACHE_TTL_SECONDS + 1
    assert database.engine is first


def test_auth_failure_resets_engine_and_secret(aws, settings, monkeypatch):
    arn = _publish(aws)
    resolver = _resolver(aws, settings)
    database = Database(settings=settings, resolver=resolver)
    assert database.engine.url.host == "db.internal"
    monkeypatch.setattr(images_repo, "get_database", lambda: database)

    aws["secrets"].put_secret_value(
        SecretId=arn, SecretString=json.dumps({**SECRET, "password": "rotated"})
    )
    rejected = OperationalError(
        "SELECT 1", {}, Exception('FATAL:  password authentication failed for user "app"')
    )
    session = database.session()
    with pytest.raises(PersistenceError):
        with images_repo._persistence(session, "loading image record"):
            raise rejected
    session.close()

    assert database._engine is None
    assert not resolver._db_secret.loaded
    assert database.engine.url.password == "rotated"


def test_other_database_errors_keep_engine(aws, settings, monkeypatch):
    _publish(aws)
    resolver = _resolver(aws, settings)
    database = Database(settings=settings, resolver=resolver)
    engine = database.engine
    monkeypatch.setattr(images_repo, "get_database", lambda: database)

    session = database.session()
    with pytest.raises(PersistenceError):
        with images_repo._persistence(session, "inserting image record"):
            raise OperationalError("INSERT", {}, Exception("could not serialize access"))
    session.close()

    assert database._engine is engine
    assert resolver._db_secret.loaded


def test_is_auth_failure_only_matches_credential_rejections():
    assert is_auth_failure(
        OperationalError("x", {}, Exception("FATAL: no pg_hba.conf entry for host"))
    )
    assert not is_auth_failure(OperationalError("x", {}, Exception("server closed the connection")))
    assert not is_auth_failure(RuntimeError("password authentication failed"))
