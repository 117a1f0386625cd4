"""
In-process TTL cache with LRU eviction
"""

import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Hashable, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)


class TTLCache:
    """Thread-safe cache whose entries expire a fixed number of seconds after being set"""

    def __init__(self, ttl_seconds: int, max_entries: int = 500, clock: Callable[[], float] = time.monotonic):
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self.ttl_seconds = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._lock = Lock()
        self._entries: "OrderedDict[Hashable, Tuple[Any, float]]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[Any]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= now:
                self._entries.pop(key, None)
                return None
            self._entries.move_to_end(key, last=True)
            return value

    def set(self, key: Hashable, value: Any) -> None:
        if self.ttl_seconds <= 0:
            return
        now = self._clock()
        with self._lock:
            self._entries[key] = (value, now + self.ttl_seconds)
            self._entries.move_to_end(key, last=True)
            expired = [k for k, (_, exp) in self._entries.items() if exp <= now]
            for k in expired:
                self._entries.pop(k, None)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
