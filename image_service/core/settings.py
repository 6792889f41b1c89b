# image_service/core/settings.py
import os
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from image_service.core.errors import ConfigurationError


class Settings(BaseSettings):
    # === Algemene app settings ===
    APP_ENV: str = "local"  # local | development | production
    SERVICE_NAME: str = "image-service"
    ALLOWED_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: Optional[str] = None
    CREATE_TABLES_ON_STARTUP: bool = False

    # === AWS ===
    AWS_REGION: str = Field("eu-west-1", description="Region for SSM, Secrets Manager and S3")
    EXTERNAL_TIMEOUT_SECONDS: float = 5.0

    # === Database ===
    RDS_DB_NAME: Optional[str] = None
    # Naam van de SSM parameter die naar het RDS secret wijst (niet het secret zelf)
    RDS_SECRET_PARAMETER: Optional[str] = "/rds/secret-arn"
    # Alleen voor lokaal/tests; overschrijft de SSM -> Secrets Manager route
    DATABASE_URL: Optional[str] = None
    SECRET_CACHE_TTL_SECONDS: int = 900

    # === Storage / CDN ===
    S3_BUCKET_NAME: Optional[str] = None
    CLOUDFRONT_DOMAIN: Optional[str] = None
    PRESIGN_EXPIRES_SECONDS: int = 300
    MAX_UPLOAD_MB: int = 10
    STORAGE_SESSION_TTL_SECONDS: int = 900

    # === Identity provider (Cognito) ===
    COGNITO_REGION: Optional[str] = None
    COGNITO_USER_POOL_ID: Optional[str] = None
    COGNITO_APP_CLIENT_ID: Optional[str] = None
    JWKS_URL: Optional[str] = None
    TOKEN_ISSUER: Optional[str] = None
    JWKS_REFRESH_MIN_INTERVAL_SECONDS: int = 60
    TRUST_GATEWAY_AUTHORIZER: bool = False

    # === Images ===
    TITLE_MAX_LENGTH: int = 200
    DESCRIPTION_MAX_LENGTH: int = 2000
    GALLERY_DEFAULT_LIMIT: int = 20
    GALLERY_MAX_LIMIT: int = 100
    SUBMIT_RATE_LIMIT: str = "30/minute"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def require(self, name: str) -> str:
        """Return a required setting or fail with ConfigurationError.

        Required values are checked when they are first needed, so importing
        the app (or serving /health) never fails on missing deployment config.
        """
        value = getattr(self, name, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ConfigurationError(f"missing required configuration: {name}")
        return value

    @property
    def issuer(self) -> str:
        if self.TOKEN_ISSUER:
            return self.TOKEN_ISSUER.rstrip("/")
        pool_id = self.require("COGNITO_USER_POOL_ID")
        region = self.COGNITO_REGION or pool_id.split("_", 1)[0]
        return f"https://cognito-idp.{region}.amazonaws.com/{pool_id}"

    @property
    def jwks_url(self) -> str:
        return self.JWKS_URL or f"{self.issuer}/.well-known/jwks.json"

    @property
    def cdn_base_url(self) -> str:
        # Sta zowel 'cdn.domein.nl' als 'https://cdn.domein.nl' toe; trailing slash eraf
        domain = self.require("CLOUDFRONT_DOMAIN").rstrip("/")
        if domain.startswith("http://") or domain.startswith("https://"):
            return domain
        return f"https://{domain}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton Settings instance met simpele env-overrides."""
    s = Settings()

    env = os.getenv("ENVIRONMENT", s.APP_ENV).lower()
    if env == "production":
        s.LOG_LEVEL = "WARNING"
    elif env == "development":
        s.LOG_LEVEL = "DEBUG"

    return s
