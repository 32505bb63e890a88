"""In-memory TTL cache with a size cap.

Expiry is lazy: an entry read after its deadline is evicted on that read.
When the cache is full, an insert first drops every expired entry and then,
if still full, the oldest 20 % of entries by insertion time.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")

_EVICTION_FRACTION = 0.2


@dataclass(slots=True)
class CacheEntry(Generic[V]):
    value: V
    stored_at: float
    expires_at: float


@dataclass(frozen=True, slots=True)
class CacheStats:
    total_entries: int
    expired_entries: int
    valid_entries: int


class TTLCache(Generic[V]):
    """Key/value store with per-entry expiry.

    Parameters
    ----------
    default_ttl:
        Lifetime in seconds used when :meth:`set` is called without ``ttl``.
    max_size:
        Upper bound on the number of stored entries.
    clock:
        Returns the current time in seconds; injectable for tests.
    name:
        Label used in log messages.
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        max_size: int = 100,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._entries: dict[str, CacheEntry[V]] = {}
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock = clock
        self.name = name

    # ── Public API ──────────────────────────────────────────────────────

    def get(self, key: str) -> V | None:
        """Return the cached value, or ``None`` if absent or expired."""
        entry = self._live_entry(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: V, ttl: float | None = None) -> None:
        # Non-positive TTLs fall back to the default so expires_at > stored_at.
        lifetime = ttl if ttl is not None and ttl > 0 else self._default_ttl

        if key not in self._entries and len(self._entries) >= self._max_size:
            self._cleanup()

        now = self._clock()
        self._entries[key] = CacheEntry(value=value, stored_at=now, expires_at=now + lifetime)

    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> CacheStats:
        now = self._clock()
        expired = sum(1 for e in self._entries.values() if now > e.expires_at)
        return CacheStats(
            total_entries=len(self._entries),
            expired_entries=expired,
            valid_entries=len(self._entries) - expired,
        )

    def __len__(self) -> int:
        return len(self._entries)

    # ── Internals ───────────────────────────────────────────────────────

    def _live_entry(self, key: str) -> CacheEntry[V] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            del self._entries[key]
            return None
        return entry

    def _cleanup(self) -> None:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now > e.expires_at]
        for key in expired:
            del self._entries[key]

        if len(self._entries) < self._max_size:
            return

        remove_count = math.ceil(self._max_size * _EVICTION_FRACTION)
        oldest = sorted(self._entries.items(), key=lambda item: item[1].stored_at)
        for key, _entry in oldest[:remove_count]:
            del self._entries[key]

        logger.debug(
            "%s full: dropped %d expired and %d oldest entries",
            self.name,
            len(expired),
            remove_count,
        )
