# image_service/auth/verifier.py
from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Mapping, Optional

import jwt

from image_service.auth.jwks import SigningKeyCache, http_fetcher
from image_service.core.errors import Unauthenticated
from image_service.core.settings import get_settings

ALGORITHMS = ["RS256"]
TOKEN_USES = {"id", "access"}


@dataclass(frozen=True)
class VerifiedIdentity:
    subject: str
    claims: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "VerifiedIdentity":
        subject = claims.get("sub")
        if not subject or not isinstance(subject, str):
            raise Unauthenticated("token has no subject")
        return cls(subject=subject, claims=MappingProxyType(dict(claims)))

    @property
    def username(self) -> Optional[str]:
        return self.claims.get("cognito:username") or self.claims.get("username")


class IdentityVerifier:
    """Verifies Cognito-style RS256 bearer tokens."""

    def __init__(
        self,
        keys: SigningKeyCache,
        issuer: str,
        audience: Optional[str] = None,
        leeway: int = 0,
    ):
        self.keys = keys
        self.issuer = issuer
        self.audience = audience
        self.leeway = leeway

    def verify(self, token: Optional[str]) -> VerifiedIdentity:
        if not token:
            raise Unauthenticated("missing bearer token")

        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as e:
            raise Unauthenticated("malformed token") from e

        kid = header.get("kid")
        if not kid or header.get("alg") not in ALGORITHMS:
            raise Unauthenticated("malformed token")

        key = self.keys.get(kid)
        try:
            claims = jwt.decode(
                token,
                key.key,
                algorithms=ALGORITHMS,
                issuer=self.issuer,
                leeway=self.leeway,
                options={"require": ["exp", "iat", "sub"], "verify_aud": False},
            )
        except jwt.ExpiredSignatureError as e:
            raise Unauthenticated("token expired") from e
        except jwt.PyJWTError as e:
            raise Unauthenticated("invalid token") from e

        self._check_client(claims)
        return VerifiedIdentity.from_claims(claims)

    def _check_client(self, claims: Mapping[str, Any]) -> None:
        token_use = claims.get("token_use")
        if token_use is not None and token_use not in TOKEN_USES:
            raise Unauthenticated("unexpected token_use")
        if not self.audience:
            return
        # id tokens dragen 'aud', access tokens 'client_id'
        client = claims.get("aud") if token_use == "id" else claims.get("client_id", claims.get("aud"))
        if isinstance(client, list):
            ok = self.audience in client
        else:
            ok = client == self.audience
        if not ok:
            raise Unauthenticated("token issued for another client")


@lru_cache(maxsize=1)
def get_identity_verifier() -> IdentityVerifier:
    s = get_settings()
    keys = SigningKeyCache(
        http_fetcher(s.jwks_url, timeout=s.EXTERNAL_TIMEOUT_SECONDS),
        min_refresh_interval=s.JWKS_REFRESH_MIN_INTERVAL_SECONDS,
    )
    return IdentityVerifier(keys=keys, issuer=s.issuer, audience=s.COGNITO_APP_CLIENT_ID)
