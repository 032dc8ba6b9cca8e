"""
Storage capabilities used by the cache and the rate limiter.

The host platform owns persistence; postpilot only needs a key/value store
with per-key expiry (TransientStore). On top of it sit two independent
views: KVCache for generated results and Counter for rate-limit windows.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

Clock = Callable[[], float]


class TransientStore(ABC):
    """Key/value storage with a time-to-live per key."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or time.time

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Value for key, or None when missing or expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a JSON-compatible value; ttl None means no expiry."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def expires_at(self, key: str) -> Optional[float]:
        """Expiry timestamp of a live key, None when missing or permanent."""
        pass

    def close(self) -> None:
        """Release resources held by the store."""
        pass


class MemoryStore(TransientStore):
    """In-process store, for tests and single-process hosts."""

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[Tuple[Any, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] is not None and entry[1] <= self.clock():
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires = self.clock() + ttl if ttl else None
        with self._lock:
            self._data[key] = (value, expires)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def expires_at(self, key: str) -> Optional[float]:
        with self._lock:
            entry = self._live(key)
            return entry[1] if entry else None

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for key in list(self._data) if self._live(key))


class KVCache:
    """Namespaced result cache over a TransientStore."""

    def __init__(self, store: TransientStore, prefix: str = "postpilot_"):
        self.store = store
        self.prefix = prefix

    def get(self, key: str) -> Optional[Any]:
        return self.store.get(self.prefix + key)

    def set(self, key: str, value: Any, ttl: int) -> None:
        self.store.set(self.prefix + key, value, ttl)

    def delete(self, key: str) -> None:
        self.store.delete(self.prefix + key)


class Counter:
    """
    Sliding rate-limit windows over a TransientStore.

    Each key holds the timestamps of its hits; anything older than the
    window is pruned on read and the whole list expires ``window`` seconds
    after the newest hit.
    """

    def __init__(self, store: TransientStore, prefix: str = "postpilot_rate_"):
        self.store = store
        self.prefix = prefix

    @property
    def clock(self) -> Clock:
        return self.store.clock

    def hits(self, key: str, window: int) -> List[float]:
        """Hit timestamps of a sliding window younger than ``window`` seconds."""
        cutoff = self.clock() - window
        stamps = self.store.get(self.prefix + key) or []
        return [t for t in stamps if t > cutoff]

    def add_hit(self, key: str, window: int) -> List[float]:
        stamps = self.hits(key, window)
        stamps.append(self.clock())
        self.store.set(self.prefix + key, stamps, window)
        return stamps

    def clear(self, key: str) -> None:
        self.store.delete(self.prefix + key)
