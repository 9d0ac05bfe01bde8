"""In-memory cache store with a bounded capacity and an eviction policy."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from .response import ZERO_TIME, CacheStore, to_cache_response

DEFAULT_CAPACITY = 10
_MAX_FREQUENCY = 2147483647


class Algorithm(str, Enum):
    """Eviction policies."""

    LRU = "LRU"
    MRU = "MRU"
    LFU = "LFU"
    MFU = "MFU"


@dataclass
class CacheMemoryStoreConfig:
    """Capacity and eviction policy of a :class:`CacheMemoryStore`.

    A capacity of 0 means the default capacity; an empty algorithm means LRU.
    """

    capacity: int = DEFAULT_CAPACITY
    algorithm: Union[Algorithm, str] = Algorithm.LRU


class CacheMemoryStore(CacheStore):
    """Thread-safe dictionary store that evicts one entry when it is full."""

    def __init__(self, config: Optional[CacheMemoryStoreConfig] = None):
        if config is None:
            config = CacheMemoryStoreConfig(capacity=DEFAULT_CAPACITY, algorithm=Algorithm.LFU)
        self.capacity = config.capacity or DEFAULT_CAPACITY
        self.algorithm = Algorithm(config.algorithm) if config.algorithm else Algorithm.LRU
        self._lock = threading.RLock()
        self._entries: dict[int, bytes] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: int) -> Optional[bytes]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: int, response: bytes, expiration: Optional[datetime] = None) -> None:
        """Store ``response``; expiry is left to the caller of the store."""
        with self._lock:
            size = len(self._entries)
            if size > 0 and size == self.capacity:
                self.evict()
            self._entries[key] = response

    def release(self, key: int) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def evict(self) -> None:
        """Remove the one entry the eviction policy selects."""
        with self._lock:
            selected = 0
            last_access = ZERO_TIME if self.algorithm is Algorithm.MRU else datetime.now(timezone.utc)
            frequency = 0 if self.algorithm is Algorithm.MFU else _MAX_FREQUENCY

            for key, data in self._entries.items():
                record = to_cache_response(data)
                if self.algorithm is Algorithm.LRU:
                    if record.last_access < last_access:
                        selected, last_access = key, record.last_access
                elif self.algorithm is Algorithm.MRU:
                    if record.last_access >= last_access:
                        selected, last_access = key, record.last_access
                elif self.algorithm is Algorithm.LFU:
                    if record.frequency < frequency:
                        selected, frequency = key, record.frequency
                elif record.frequency >= frequency:
                    selected, frequency = key, record.frequency

            self.release(selected)

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries = {}