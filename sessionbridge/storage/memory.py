from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Tuple

from sessionbridge.logging import get_logger
from sessionbridge.storage.errors import KeyNotFound


class MemoryStore:
    """In-process TTL store for tests and local development.

    Expired entries are dropped lazily on access. State is lost on restart,
    so this backend is only allowed when ``TEST_MODE`` is set.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.logger = get_logger(__name__)
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}
        # RLock so helpers can be called while already holding the lock
        self._data_lock = threading.RLock()

    def _live_value(self, key: str) -> str | None:
        with self._data_lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                del self._data[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._data_lock:
            self._data[key] = (value, self._clock() + ttl_seconds)

    async def get(self, key: str) -> str:
        value = self._live_value(key)
        if value is None:
            raise KeyNotFound(key)
        return value

    async def delete(self, key: str) -> bool:
        with self._data_lock:
            present = self._live_value(key) is not None
            self._data.pop(key, None)
            return present

    async def exists(self, key: str) -> bool:
        return self._live_value(key) is not None

    async def close(self) -> None:
        with self._data_lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._data_lock:
            now = self._clock()
            return sum(1 for _, expires_at in self._data.values() if expires_at > now)
