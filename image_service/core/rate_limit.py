# image_service/core/rate_limit.py
import os

from slowapi import Limiter
from slowapi.util import get_remote_address


def _caller_key(request) -> str:
    # attach_identity zet het subject; anders terugvallen op IP
    subject = getattr(request.state, "subject", None)
    return f"sub:{subject}" if subject else f"ip:{get_remote_address(request)}"


# 1 gedeelde Limiter voor de hele app
limiter = Limiter(
    key_func=_caller_key,
    enabled=os.getenv("RATE_LIMIT_ENABLED", "1") not in ("0", "false", "False"),
)
