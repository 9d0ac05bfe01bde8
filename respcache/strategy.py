"""Strategies and settings for two-level caches."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional

from .response import CacheStore

DEFAULT_L1_TTL = timedelta(minutes=5)
DEFAULT_L2_TTL = timedelta(minutes=30)
DEFAULT_ASYNC_BUFFER = 1000


class _LenientEnum(str, Enum):
    """String enum that also accepts lower-case and hyphenated spellings."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalised = value.strip().upper().replace("-", "_")
            for member in cls:
                if member.value == normalised:
                    return member
        return None


class CacheStrategy(_LenientEnum):
    """How writes reach the two cache levels."""

    WRITE_THROUGH = "WRITE_THROUGH"
    WRITE_BACK = "WRITE_BACK"
    CACHE_ASIDE = "CACHE_ASIDE"


class SyncMode(_LenientEnum):
    """Whether background work may be done asynchronously."""

    SYNC = "SYNC"
    ASYNC = "ASYNC"


@dataclass
class TwoLevelConfig:
    """Settings for a two-level cache store.

    Zero TTLs and a zero async buffer fall back to the defaults.
    """

    l1_store: Optional[CacheStore] = None
    l2_store: Optional[CacheStore] = None
    strategy: CacheStrategy = CacheStrategy.WRITE_THROUGH
    l1_ttl: timedelta = DEFAULT_L1_TTL
    l2_ttl: timedelta = DEFAULT_L2_TTL
    cache_warming: bool = True
    sync_mode: SyncMode = SyncMode.ASYNC
    async_buffer: int = DEFAULT_ASYNC_BUFFER