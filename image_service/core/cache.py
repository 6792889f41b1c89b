# image_service/core/cache.py
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class _Entry(Generic[T]):
    value: T
    expires_at: float


class TTLCache(Generic[T]):
    """Single-value cache with a validity window.

    Readers never see a half-built value: a refresh builds a new entry and
    swaps the reference under the lock. ``ttl=None`` keeps the value for the
    lifetime of the process until ``invalidate()`` is called.
    """

    def __init__(
        self,
        loader: Callable[[], T],
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entry: Optional[_Entry[T]] = None

    def _fresh(self, entry: Optional[_Entry[T]]) -> bool:
        return entry is not None and self._clock() < entry.expires_at

    def get(self) -> T:
        entry = self._entry
        if self._fresh(entry):
            return entry.value  # type: ignore[union-attr]
        with self._lock:
            # iemand anders kan al ververst hebben terwijl wij wachtten
            entry = self._entry
            if self._fresh(entry):
                return entry.value  # type: ignore[union-attr]
            value = self._loader()
            expires_at = float("inf") if self._ttl is None else self._clock() + self._ttl
            self._entry = _Entry(value=value, expires_at=expires_at)
            return value

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None

    @property
    def loaded(self) -> bool:
        return self._fresh(self._entry)
