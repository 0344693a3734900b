"""
In-memory key-value cache with per-ecosystem TTL.

TTLCache holds registry results for the lifetime of the process:
- Per-entry expiry computed from a per-ecosystem TTL table
- Lazy eviction of expired entries on read, plus an explicit cleanup() sweep
- Bounded size with insertion-order eviction

Eviction removes the oldest-inserted entry. Reads do not promote entries, so
this approximates LRU rather than implementing it; the simplification is
intentional.

The cache has no locking. get() and set() never await, so on a single
event loop no other task can interleave with them. Sharing an instance
across threads requires an external lock around mutation.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from depver.types import DEFAULT_TTL_SECONDS, Ecosystem


@dataclass
class CacheEntry:
    """Cached value with its absolute expiry time."""

    value: Any
    expires_at: float


class TTLCache:
    """Bounded TTL cache keyed by opaque strings."""

    def __init__(
        self,
        max_entries: int = 1000,
        ttl_seconds: Mapping[Ecosystem, float] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            max_entries: Maximum number of entries held at once.
            ttl_seconds: Default TTL per ecosystem. Missing ecosystems fall
                back to DEFAULT_TTL_SECONDS.
            clock: Monotonic time source in seconds.
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._ttl = dict(DEFAULT_TTL_SECONDS)
        if ttl_seconds:
            self._ttl.update(ttl_seconds)
        self._overrides: dict[Ecosystem, float] = {}
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def set_ttl_override(self, ecosystem: Ecosystem, ttl_seconds: float) -> None:
        """Override the TTL used for new entries of one ecosystem."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._overrides[ecosystem] = ttl_seconds

    def ttl_for(self, ecosystem: Ecosystem) -> float:
        """TTL for an ecosystem, honouring runtime overrides."""
        return self._overrides.get(ecosystem, self._ttl[ecosystem])

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if absent or expired.

        Expired entries are removed as a side effect.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._clock() > entry.expires_at:
            del self._entries[key]
            self._misses += 1
            return None

        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ecosystem: Ecosystem) -> None:
        """Store a value with the TTL of its ecosystem.

        Replacing an existing key never evicts another entry; the replaced
        entry moves to the newest position.
        """
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)

        expires_at = self._clock() + self.ttl_for(ecosystem)
        self._entries[key] = CacheEntry(value=value, expires_at=expires_at)

    def clear(self) -> None:
        """Drop all entries."""
        self._entries.clear()

    def cleanup(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now > e.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> dict[str, int]:
        """Return size and hit/miss counters."""
        return {
            "size": len(self._entries),
            "maxEntries": self.max_entries,
            "hits": self._hits,
            "misses": self._misses,
        }
