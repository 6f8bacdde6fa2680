"""Revision-aware caching.

Entries remember the revision that was active when they were written. A read
compares that tag against the current revision and treats a mismatch as a
miss, dropping the entry. Invalidation is lazy: nothing is pushed or swept in
the background because the content store offers no change notification.

Example:
    cache = RevisionAwareCache(urls, name="posts")
    cache.set("repomd:p1:posts:all", snapshot)
    ...
    snapshot = cache.get("repomd:p1:posts:all")  # None once the revision moved on
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from repomd.cache.lru import MISSING, LRUCache
from repomd.observability.metrics import ClientMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RevisionSource(ABC):
    """Capability that reports the last resolved content revision."""

    @abstractmethod
    def get_active_rev(self) -> str | None:
        """Return the active revision, or None if not resolved yet.

        Must not perform I/O: staleness checks run synchronously.
        """
        ...


class NullRevisionSource(RevisionSource):
    """Revision source for callers without revision semantics."""

    def get_active_rev(self) -> str | None:
        return None


class StaticRevisionSource(RevisionSource):
    """Revision source backed by a settable value."""

    def __init__(self, revision: str | None = None):
        self.revision = revision

    def get_active_rev(self) -> str | None:
        return self.revision


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value tagged with the revision it was written under."""

    value: T
    revision: str | None
    inserted_at: float


class RevisionAwareCache(Generic[T]):
    """Size/age-bounded cache whose entries expire when the revision changes.

    With a NullRevisionSource this is a plain LRU cache.
    """

    def __init__(
        self,
        revisions: RevisionSource | None = None,
        max_size: int = 100,
        max_age: float = 3600.0,
        name: str = "default",
        metrics: ClientMetrics | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.revisions = revisions or NullRevisionSource()
        self.name = name
        self.metrics = metrics or ClientMetrics()
        self._clock = clock
        self._entries: LRUCache[CacheEntry[T]] = LRUCache(
            max_size=max_size, max_age=max_age, clock=clock
        )

    def _is_stale(self, entry: CacheEntry[T]) -> bool:
        current = self.revisions.get_active_rev()
        return current is not None and entry.revision != current

    def _lookup(self, key: str) -> CacheEntry[T] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_stale(entry):
            logger.debug(
                f"Revision changed from {entry.revision} to "
                f"{self.revisions.get_active_rev()}, dropping {self.name} entry {key}"
            )
            self._entries.delete(key)
            self.metrics.cache_stale_total.labels(cache=self.name).inc()
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` on a miss or stale entry."""
        entry = self._lookup(key)
        if entry is None:
            self.metrics.cache_misses_total.labels(cache=self.name).inc()
            return default
        self.metrics.cache_hits_total.labels(cache=self.name).inc()
        return entry.value

    def set(self, key: str, value: T, revision: Any = MISSING) -> None:
        """Store a value tagged with the current (or given) revision."""
        tag = self.revisions.get_active_rev() if revision is MISSING else revision
        self._entries.set(key, CacheEntry(value=value, revision=tag, inserted_at=self._clock()))
        logger.debug(f"Cached {self.name} entry {key} (revision: {tag or 'unknown'})")

    def has(self, key: str) -> bool:
        return self._lookup(key) is not None

    def revision_of(self, key: str) -> str | None:
        """Revision a live entry was written under, if any."""
        entry = self._lookup(key)
        return entry.revision if entry else None

    def delete(self, key: str) -> bool:
        return self._entries.delete(key)

    def clear(self) -> None:
        if len(self._entries):
            logger.debug(f"Clearing {self.name} cache ({len(self._entries)} entries)")
        self._entries.clear()

    def invalidate_if_stale(self) -> int:
        """Drop every entry written under a superseded revision.

        Returns:
            Number of entries dropped
        """
        stale = [key for key, entry in self._entries.items() if self._is_stale(entry)]
        for key in stale:
            self._entries.delete(key)
        if stale:
            self.metrics.cache_stale_total.labels(cache=self.name).inc(len(stale))
            logger.debug(f"Dropped {len(stale)} stale {self.name} entries")
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def max_size(self) -> int:
        return self._entries.max_size
