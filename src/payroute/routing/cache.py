"""Short-TTL memoization of quotes, shared across concurrent requests.

Keys are built from normalized route parameters so that identical requests
(case differences in addresses, chain names vs ids) land on the same entry.
Concurrent misses for the same key both go to the provider; the last writer
wins, which is harmless because values for identical keys are idempotent.
"""

import logging
from typing import Any, Optional

from payroute.utils.kvstore import InMemoryKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30


def make_cache_key(namespace: str, *parts: Any) -> str:
    """Build a normalized cache key, e.g. ``std:1:8453:0xa0b8...:0x8335...:1000000``.

    Missing parts keep their slot so keys stay positional.
    """
    normalized = ["" if p is None else str(p).lower() for p in parts]
    return ":".join([namespace, *normalized])


class QuoteCache:
    """TTL cache for route candidates and raw aggregator quotes."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
    ):
        self._store = store if store is not None else InMemoryKeyValueStore()
        self.ttl_seconds = ttl_seconds
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Optional[Any]:
        value = await self._store.get(key)
        if value is None:
            self.misses += 1
            return None
        self.hits += 1
        logger.debug(f"Quote cache hit: {key}")
        return value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        await self._store.set(key, value, ttl=ttl if ttl is not None else self.ttl_seconds)

    async def invalidate(self, key: str) -> None:
        await self._store.delete(key)
