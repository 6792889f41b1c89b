# image_service/auth/deps.py
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from image_service.auth.verifier import IdentityVerifier, VerifiedIdentity, get_identity_verifier
from image_service.core.errors import Unauthenticated
from image_service.core.logging_config import logger
from image_service.core.settings import get_settings

security = HTTPBearer(auto_error=False)  # <- belangrijk: niet auto-error, Require beslist


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    identity: Optional[VerifiedIdentity] = None

    @property
    def authenticated(self) -> bool:
        return self.identity is not None


def verifier_factory() -> Callable[[], IdentityVerifier]:
    # Factory i.p.v. instance: zonder token hoeft de IdP-config niet te bestaan
    return get_identity_verifier


def _gateway_identity(request: Request) -> Optional[VerifiedIdentity]:
    """Claims that API Gateway's Cognito authorizer already verified."""
    event = request.scope.get("aws.event") or {}
    claims = ((event.get("requestContext") or {}).get("authorizer") or {}).get("claims")
    if not claims:
        return None
    try:
        return VerifiedIdentity.from_claims(claims)
    except Unauthenticated:
        return None


def attach_identity(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(security),
    get_verifier: Callable[[], IdentityVerifier] = Depends(verifier_factory),
) -> RequestContext:
    """Gate 1: verify a bearer token when one is present. Never rejects."""
    request_id = getattr(request.state, "request_id", None) or "unknown"

    identity = None
    if get_settings().TRUST_GATEWAY_AUTHORIZER:
        identity = _gateway_identity(request)

    if identity is None and creds and creds.credentials:
        try:
            identity = get_verifier().verify(creds.credentials)
        except Unauthenticated as e:
            logger.info("token_rejected", request_id=request_id, reason=str(e))

    if identity is not None:
        # alleen voor de rate limiter key
        request.state.subject = identity.subject
    return RequestContext(request_id=request_id, identity=identity)


def require_identity(ctx: RequestContext = Depends(attach_identity)) -> VerifiedIdentity:
    """Gate 2: fail with 401 unless gate 1 attached a verified identity."""
    if ctx.identity is None:
        raise Unauthenticated()
    return ctx.identity
