# image_service/auth/jwks.py
from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional

import httpx
import jwt

from image_service.core.errors import Unauthenticated
from image_service.core.logging_config import logger

Fetcher = Callable[[], Dict[str, Any]]


def http_fetcher(url: str, timeout: float = 5.0, transport: Optional[httpx.BaseTransport] = None) -> Fetcher:
    def _fetch() -> Dict[str, Any]:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            r = client.get(url)
            r.raise_for_status()
            return r.json()

    return _fetch


class SigningKeyCache:
    """Identity-provider signing keys, keyed by ``kid``.

    Keys are fetched once and kept for the process lifetime. An unknown ``kid``
    triggers a refresh: the first miss refreshes immediately, later misses at
    most once per ``min_refresh_interval`` so garbage tokens cannot make us
    hammer the JWKS endpoint.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        min_refresh_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetcher = fetcher
        self._min_refresh_interval = min_refresh_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._keys: Optional[Dict[str, jwt.PyJWK]] = None
        self._last_fetch: Optional[float] = None
        self._miss_refreshes = 0
        self.fetch_count = 0

    def _load(self) -> Dict[str, jwt.PyJWK]:
        try:
            data = self._fetcher()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("jwks_fetch_failed", error=str(e))
            raise Unauthenticated("signing keys unavailable") from e
        finally:
            self.fetch_count += 1
            self._last_fetch = self._clock()

        if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
            logger.error("jwks_malformed", body_type=type(data).__name__)
            raise Unauthenticated("signing keys unavailable")

        keys: Dict[str, jwt.PyJWK] = {}
        for jwk in data["keys"]:
            kid = jwk.get("kid") if isinstance(jwk, dict) else None
            if not kid:
                continue
            try:
                keys[kid] = jwt.PyJWK.from_dict(jwk)
            except jwt.PyJWTError as e:
                logger.warning("jwks_key_skipped", kid=kid, error=str(e))
        logger.info("jwks_loaded", kids=sorted(keys))
        return keys

    def _interval_elapsed(self) -> bool:
        return (
            self._last_fetch is None
            or self._clock() - self._last_fetch >= self._min_refresh_interval
        )

    def _may_refresh_on_miss(self) -> bool:
        return self._miss_refreshes == 0 or self._interval_elapsed()

    def get(self, kid: str) -> jwt.PyJWK:
        keys = self._keys
        if keys is not None and kid in keys:
            return keys[kid]

        with self._lock:
            if self._keys is None:
                # na een mislukte eerste load niet elke request opnieuw proberen
                if not self._interval_elapsed():
                    raise Unauthenticated("signing keys unavailable")
                self._keys = self._load()
            elif kid not in self._keys and self._may_refresh_on_miss():
                self._miss_refreshes += 1
                self._keys = self._load()
            keys = self._keys

        try:
            return keys[kid]
        except KeyError:
            raise Unauthenticated("unknown signing key") from None
