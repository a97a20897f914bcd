from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .record_path import FieldValue, RecordPath, compile_path

DEFAULT_PATH_CACHE_SIZE = 100


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int
    capacity: int


class RecordPathCache:
    """
    Bounded LRU cache of compiled record paths keyed by expression text.

    Shared across concurrently processed input units: the backing map is
    guarded by a single lock and get-or-compile is atomic. Eviction only
    drops map entries, so a RecordPath already handed to a caller stays valid.
    """

    def __init__(self, capacity: int = DEFAULT_PATH_CACHE_SIZE) -> None:
        if capacity <= 0:
            raise ValueError(f"Path cache capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._entries: "OrderedDict[str, RecordPath]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get_compiled(self, text: str) -> RecordPath:
        with self._lock:
            compiled = self._entries.get(text)
            if compiled is not None:
                self._entries.move_to_end(text)
                self._hits += 1
                return compiled
            # Compile under the lock so concurrent misses compile once.
            compiled = compile_path(text)
            self._misses += 1
            self._entries[text] = compiled
            if len(self._entries) > self._capacity:
                self._entries.popitem(last=False)
            return compiled

    def resolve(self, text: str, record: Mapping[str, Any]) -> Optional[FieldValue]:
        return self.get_compiled(text).evaluate(record)

    def __contains__(self, text: object) -> bool:
        with self._lock:
            return text in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(hits=self._hits, misses=self._misses, size=len(self._entries), capacity=self._capacity)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
