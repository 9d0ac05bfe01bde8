"""Hit and miss counters for two-level caches."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class CacheStats:
    """A snapshot of cache statistics; rates are percentages."""

    l1_hits: int = 0
    l2_hits: int = 0
    total_miss: int = 0
    total_request: int = 0
    hit_rate: float = 0.0
    l1_hit_rate: float = 0.0
    l2_hit_rate: float = 0.0
    l1_size: int = 0
    l2_size: int = 0
    last_update: datetime = datetime(1, 1, 1, tzinfo=timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Return the statistics under their JSON field names."""
        return {
            "l1Hits": self.l1_hits,
            "l2Hits": self.l2_hits,
            "totalMiss": self.total_miss,
            "totalRequest": self.total_request,
            "hitRate": self.hit_rate,
            "l1HitRate": self.l1_hit_rate,
            "l2HitRate": self.l2_hit_rate,
            "l1Size": self.l1_size,
            "l2Size": self.l2_size,
            "lastUpdate": self.last_update.isoformat(),
        }


class CacheMetrics:
    """Thread-safe counters of L1 hits, L2 hits and misses."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._l1_hits = 0
        self._l2_hits = 0
        self._total_miss = 0
        self._total_request = 0

    def increment_l1_hit(self) -> None:
        with self._lock:
            self._l1_hits += 1
            self._total_request += 1

    def increment_l2_hit(self) -> None:
        with self._lock:
            self._l2_hits += 1
            self._total_request += 1

    def increment_miss(self) -> None:
        with self._lock:
            self._total_miss += 1
            self._total_request += 1

    def get_stats(self) -> CacheStats:
        """Return the current counters and the hit rates derived from them."""
        with self._lock:
            l1_hits = self._l1_hits
            l2_hits = self._l2_hits
            total_miss = self._total_miss
            total_request = self._total_request

        hit_rate = l1_hit_rate = l2_hit_rate = 0.0
        if total_request > 0:
            hit_rate = (l1_hits + l2_hits) / total_request * 100
            l1_hit_rate = l1_hits / total_request * 100
            l2_hit_rate = l2_hits / total_request * 100

        return CacheStats(
            l1_hits=l1_hits,
            l2_hits=l2_hits,
            total_miss=total_miss,
            total_request=total_request,
            hit_rate=hit_rate,
            l1_hit_rate=l1_hit_rate,
            l2_hit_rate=l2_hit_rate,
            last_update=datetime.now(timezone.utc),
        )

    def reset(self) -> None:
        """Set every counter back to zero."""
        with self._lock:
            self._l1_hits = 0
            self._l2_hits = 0
            self._total_miss = 0
            self._total_request = 0