from __future__ import annotations

import threading
from typing import Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class GeocodeCache(Generic[T]):
    """In-memory key/value store for geocoding results.

    No TTL and no eviction: entries live as long as the owning service.
    """

    def __init__(self) -> None:
        self._store: Dict[str, T] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            return self._store.get(key)

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._store

    def set(self, key: str, value: T) -> None:
        with self._lock:
            self._store[key] = value

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
