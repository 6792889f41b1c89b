# image_service/aws/clients.py

import boto3
from botocore.config import Config

from image_service.core.settings import get_settings


def boto_config() -> Config:
    """Standaard botocore config: korte timeouts, geen eindeloze retries."""
    s = get_settings()
    return Config(
        region_name=s.AWS_REGION,
        retries={"max_attempts": 2, "mode": "standard"},
        connect_timeout=s.EXTERNAL_TIMEOUT_SECONDS,
        read_timeout=s.EXTERNAL_TIMEOUT_SECONDS,
    )


def make_client(service: str, session: boto3.session.Session | None = None):
    session = session or boto3.session.Session()
    if service == "s3":
        cfg = boto_config().merge(
            Config(signature_version="s3v4", s3={"addressing_style": "virtual"})
        )
        return session.client("s3", config=cfg)
    return session.client(service, config=boto_config())
