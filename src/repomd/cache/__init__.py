"""Caching layers for the repo.md client.

- RequestCache: per-URL JSON values with single-flight de-duplication
- RevisionAwareCache: collection snapshots tagged with their revision
- LRUCache: the bounded size/age map both are built on
"""

from repomd.cache.keys import CacheKeys
from repomd.cache.lru import LRUCache
from repomd.cache.request import RequestCache
from repomd.cache.revision import (
    NullRevisionSource,
    RevisionAwareCache,
    RevisionSource,
    StaticRevisionSource,
)

__all__ = [
    "CacheKeys",
    "LRUCache",
    "NullRevisionSource",
    "RequestCache",
    "RevisionAwareCache",
    "RevisionSource",
    "StaticRevisionSource",
]
