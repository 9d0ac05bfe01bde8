"""A cache store that layers a fast L1 store over a larger L2 store."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from .response import CacheStore
from .stats import CacheMetrics, CacheStats
from .strategy import (
    DEFAULT_ASYNC_BUFFER,
    DEFAULT_L1_TTL,
    DEFAULT_L2_TTL,
    CacheStrategy,
    SyncMode,
    TwoLevelConfig,
)


class _Operation(Enum):
    SET = "set"
    WARM = "warm"


@dataclass(frozen=True)
class _AsyncOperation:
    operation: _Operation
    key: int
    data: bytes
    expiration: Optional[datetime] = None


_STOP = object()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _capped(ttl: timedelta, expiration: datetime) -> datetime:
    return min(_now() + ttl, expiration)


def _size(store: CacheStore) -> int:
    try:
        return len(store)  # type: ignore[arg-type]
    except TypeError:
        return 0


def _clear(store: CacheStore) -> None:
    clear = getattr(store, "clear", None)
    if callable(clear):
        clear()


class CacheTwoLevelStore(CacheStore):
    """Reads L1 first and falls back to L2, writing per the configured strategy.

    With the write-back strategy a background worker performs L2 writes
    (and, in async mode, cache warming); call :meth:`stop` or use the store
    as a context manager to finish pending work.
    """

    def __init__(self, config: TwoLevelConfig):
        if config.l1_store is None or config.l2_store is None:
            raise ValueError("both L1 and L2 stores must be provided")
        if config.async_buffer < 0:
            raise ValueError("async buffer must not be negative")
        self.config = replace(
            config,
            strategy=CacheStrategy(config.strategy),
            sync_mode=SyncMode(config.sync_mode),
            l1_ttl=config.l1_ttl or DEFAULT_L1_TTL,
            l2_ttl=config.l2_ttl or DEFAULT_L2_TTL,
            async_buffer=config.async_buffer or DEFAULT_ASYNC_BUFFER,
        )
        self._metrics = CacheMetrics()
        self._queue: queue.Queue = queue.Queue(maxsize=self.config.async_buffer)
        self._state_lock = threading.Lock()
        self._stopped = False
        self._worker: Optional[threading.Thread] = None
        if self.config.strategy is CacheStrategy.WRITE_BACK:
            self._worker = threading.Thread(
                target=self._run_worker, name="two-level-cache-writer", daemon=True
            )
            self._worker.start()

    def __enter__(self) -> "CacheTwoLevelStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def get(self, key: int) -> Optional[bytes]:
        data = self.config.l1_store.get(key)
        if data is not None:
            self._metrics.increment_l1_hit()
            return data

        data = self.config.l2_store.get(key)
        if data is not None:
            self._metrics.increment_l2_hit()
            if self.config.cache_warming:
                self._warm(key, data)
            return data

        self._metrics.increment_miss()
        return None

    def set(self, key: int, response: bytes, expiration: datetime) -> None:
        if self.config.strategy is CacheStrategy.WRITE_BACK:
            self._set_write_back(key, response, expiration)
        else:
            self._set_write_through(key, response, expiration)

    def release(self, key: int) -> None:
        self.config.l1_store.release(key)
        self.config.l2_store.release(key)

    def stop(self) -> None:
        """Finish queued background work and stop the worker."""
        with self._state_lock:
            if self._worker is None or self._stopped:
                return
            self._stopped = True
        self._queue.put(_STOP)
        self._worker.join()

    def get_stats(self) -> CacheStats:
        """Return hit statistics together with the sizes of both levels."""
        stats = self._metrics.get_stats()
        return replace(
            stats, l1_size=_size(self.config.l1_store), l2_size=_size(self.config.l2_store)
        )

    def clear_l1(self) -> None:
        """Remove every entry from the L1 store, if it can be cleared."""
        _clear(self.config.l1_store)

    def clear_l2(self) -> None:
        """Remove every entry from the L2 store, if it can be cleared."""
        _clear(self.config.l2_store)

    def clear_all(self) -> None:
        """Clear both levels; the first failure is raised after both are tried."""
        errors = []
        for store in (self.config.l1_store, self.config.l2_store):
            try:
                _clear(store)
            except Exception as exc:
                errors.append(exc)
        if errors:
            raise errors[0]

    def reset_stats(self) -> None:
        self._metrics.reset()

    def _set_write_through(self, key: int, response: bytes, expiration: datetime) -> None:
        l1_expiration = _capped(self.config.l1_ttl, expiration)
        l2_expiration = _capped(self.config.l2_ttl, expiration)
        self.config.l1_store.set(key, response, l1_expiration)
        self.config.l2_store.set(key, response, l2_expiration)

    def _set_write_back(self, key: int, response: bytes, expiration: datetime) -> None:
        self.config.l1_store.set(key, response, _capped(self.config.l1_ttl, expiration))
        l2_expiration = _capped(self.config.l2_ttl, expiration)
        queued = self._enqueue(_AsyncOperation(_Operation.SET, key, response, l2_expiration))
        if not queued:
            self.config.l2_store.set(key, response, l2_expiration)

    def _warm(self, key: int, data: bytes) -> None:
        if self.config.sync_mode is SyncMode.ASYNC and self._accepting():
            # A full queue skips warming rather than blocking the read.
            self._enqueue(_AsyncOperation(_Operation.WARM, key, data))
            return
        self._perform_warming(key, data)

    def _perform_warming(self, key: int, data: bytes) -> None:
        self.config.l1_store.set(key, data, _now() + self.config.l1_ttl)

    def _accepting(self) -> bool:
        with self._state_lock:
            return self._worker is not None and not self._stopped

    def _enqueue(self, operation: _AsyncOperation) -> bool:
        with self._state_lock:
            if self._worker is None or self._stopped:
                return False
            try:
                self._queue.put_nowait(operation)
            except queue.Full:
                return False
            return True

    def _run_worker(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            try:
                if item.operation is _Operation.SET:
                    self.config.l2_store.set(item.key, item.data, item.expiration)
                else:
                    self._perform_warming(item.key, item.data)
            except Exception:
                # A failed background write must not stop later ones.
                continue


def create_two_level_store(l1_store: CacheStore, l2_store: CacheStore) -> CacheTwoLevelStore:
    """Build a two-level store with the default settings."""
    return CacheTwoLevelStore(TwoLevelConfig(l1_store=l1_store, l2_store=l2_store))