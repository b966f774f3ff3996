"""Utility modules."""

from payroute.utils.kvstore import CacheEntry, InMemoryKeyValueStore, KeyValueStore

__all__ = [
    "CacheEntry",
    "InMemoryKeyValueStore",
    "KeyValueStore",
]
