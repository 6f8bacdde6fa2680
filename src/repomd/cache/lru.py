"""Bounded in-memory LRU map with per-entry maximum age."""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from typing import Any, Generic, TypeVar

V = TypeVar("V")

MISSING = object()


class LRUCache(Generic[V]):
    """Least-recently-used cache bounded by size and age.

    Reads refresh recency; expired entries are dropped when touched.
    When the size bound is exceeded the least recently used entries are
    evicted first.
    """

    def __init__(
        self,
        max_size: int = 1000,
        max_age: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.max_age = max_age
        self._clock = clock
        self._data: OrderedDict[str, tuple[float, V]] = OrderedDict()

    def _expired(self, inserted_at: float) -> bool:
        return self._clock() - inserted_at > self.max_age

    def get(self, key: str, default: Any = None) -> Any:
        item = self._data.get(key)
        if item is None:
            return default
        inserted_at, value = item
        if self._expired(inserted_at):
            del self._data[key]
            return default
        self._data.move_to_end(key)
        return value

    def set(self, key: str, value: V) -> None:
        if key in self._data:
            self._data.pop(key)
        self._data[key] = (self._clock(), value)
        self._evict()

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def clear(self) -> None:
        self._data.clear()

    def resize(self, max_size: int) -> None:
        """Change the size bound, evicting immediately if it shrank."""
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._evict()

    def _evict(self) -> None:
        while len(self._data) > self.max_size:
            self._data.popitem(last=False)

    def items(self) -> Iterator[tuple[str, V]]:
        """Iterate live entries without touching recency."""
        for key, (inserted_at, value) in list(self._data.items()):
            if not self._expired(inserted_at):
                yield key, value

    def __contains__(self, key: object) -> bool:
        item = self._data.get(key)  # type: ignore[call-overload]
        return item is not None and not self._expired(item[0])

    def __len__(self) -> int:
        return len(self._data)
