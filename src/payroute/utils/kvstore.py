"""Key-value store interface with TTL.

Production deployments back this with an external store (Redis or similar);
the in-memory implementation is used for development and tests. The clock is
injectable so expiry can be tested without sleeping.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class KeyValueStore(Protocol):
    """Minimal async key-value store with optional per-key TTL."""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


@dataclass
class CacheEntry:
    """A stored value and the instant it stops being visible."""

    key: str
    value: Any
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class InMemoryKeyValueStore:
    """Process-local store with lazy eviction (no background sweep)."""

    def __init__(self, clock: Clock = time.monotonic):
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                logger.debug(f"Evicted expired key {key}")
                return None
            return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        async with self._lock:
            expires_at = self._clock() + ttl if ttl is not None else None
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=expires_at)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    def size(self) -> int:
        """Number of stored entries, expired ones included until read."""
        return len(self._entries)
