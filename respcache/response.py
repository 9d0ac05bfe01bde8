"""Cached response records, cache keys and the store interface."""

from __future__ import annotations

import base64
import json
import re
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, fields, is_dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_ZERO_TIME_TEXT = "0001-01-01T00:00:00Z"

_FNV_OFFSET = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3
_UINT64_MASK = 0xFFFFFFFFFFFFFFFF
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

_TIME_PATTERN = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})"
)


class CacheStore(ABC):
    """Storage backend for cached responses, addressed by 64-bit keys."""

    @abstractmethod
    def get(self, key: int) -> Optional[bytes]:
        """Return the cached data for ``key``, or None when absent."""

    @abstractmethod
    def set(self, key: int, response: bytes, expiration: datetime) -> None:
        """Cache ``response`` under ``key`` until ``expiration``."""

    @abstractmethod
    def release(self, key: int) -> None:
        """Remove the entry for ``key``."""


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if moment.microsecond:
        text += f".{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset()
    if not offset:
        return text + "Z"
    total = int(offset.total_seconds())
    sign = "+" if total >= 0 else "-"
    total = abs(total)
    return f"{text}{sign}{total // 3600:02d}:{total % 3600 // 60:02d}"


def _parse_time(value: Any) -> datetime:
    if value is None:
        return ZERO_TIME
    if not isinstance(value, str):
        raise ValueError(f"invalid timestamp: {value!r}")
    match = _TIME_PATTERN.fullmatch(value)
    if match is None:
        raise ValueError(f"invalid timestamp: {value!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    microsecond = int((fraction or "").ljust(6, "0")[:6])
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), microsecond, tzinfo=tz
    )


def _parse_header(value: Any) -> Optional[dict[str, list[str]]]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError("header must be a JSON object")
    header: dict[str, list[str]] = {}
    for name, values in value.items():
        if values is None:
            header[name] = []
        elif isinstance(values, list) and all(isinstance(v, str) for v in values):
            header[name] = list(values)
        else:
            raise ValueError(f"invalid values for header {name!r}")
    return header


def _parse_frequency(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError("frequency must be a number")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ValueError("frequency must be an integer")


@dataclass
class CacheResponse:
    """A response as it is kept in a cache store."""

    url: str = ""
    header: Optional[dict[str, list[str]]] = None
    body: bytes = b""
    expiration: datetime = ZERO_TIME
    last_access: datetime = ZERO_TIME
    frequency: int = 0

    def to_bytes(self) -> bytes:
        """Serialise the response as compact JSON."""
        document = {
            "url": self.url,
            "header": self.header,
            "body": base64.b64encode(self.body).decode("ascii"),
            "expiration": _format_time(self.expiration),
            "lastAccess": _format_time(self.last_access),
            "frequency": self.frequency,
        }
        return json.dumps(document, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "CacheResponse":
        """Decode a response; raise ValueError on malformed data."""
        try:
            raw = json.loads(data)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"invalid cached response: {exc}") from exc
        if not isinstance(raw, dict):
            raise ValueError("cached response must be a JSON object")
        url = raw.get("url") or ""
        if not isinstance(url, str):
            raise ValueError("url must be a string")
        body_text = raw.get("body")
        if body_text is None:
            body = b""
        elif isinstance(body_text, str):
            body = base64.b64decode(body_text, validate=True)
        else:
            raise ValueError("body must be a base64 string")
        return cls(
            url=url,
            header=_parse_header(raw.get("header")),
            body=body,
            expiration=_parse_time(raw.get("expiration")),
            last_access=_parse_time(raw.get("lastAccess")),
            frequency=_parse_frequency(raw.get("frequency")),
        )


def to_cache_response(data: Optional[bytes]) -> CacheResponse:
    """Decode cached data, falling back to an empty response when it is unreadable."""
    if data is None:
        return CacheResponse()
    try:
        return CacheResponse.from_bytes(data)
    except ValueError:
        return CacheResponse()


def generate_key(method: str, url: str) -> int:
    """Return the 64-bit FNV-1a hash of ``"METHOD:URL"``."""
    digest = _FNV_OFFSET
    for byte in f"{method}:{url}".encode("utf-8"):
        digest ^= byte
        digest = (digest * _FNV_PRIME) & _UINT64_MASK
    return digest


def key_as_string(key: int) -> str:
    """Render a cache key in base 36."""
    if key < 0 or key > _UINT64_MASK:
        raise ValueError(f"key out of 64-bit unsigned range: {key}")
    if key == 0:
        return "0"
    digits = []
    while key:
        key, remainder = divmod(key, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def sort_url_params(url: str) -> str:
    """Return ``url`` with query parameters sorted by name and then by value."""
    parts = urlsplit(url)
    grouped: dict[str, list[str]] = defaultdict(list)
    for name, value in parse_qsl(parts.query, keep_blank_values=True):
        grouped[name].append(value)
    ordered = [(name, value) for name in sorted(grouped) for value in sorted(grouped[name])]
    return urlunsplit(parts._replace(query=urlencode(ordered)))


def _is_zero(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, datetime):
        return value == ZERO_TIME
    if is_dataclass(value) and not isinstance(value, type):
        return all(_is_zero(getattr(value, f.name)) for f in fields(value))
    if isinstance(value, (bool, int, float, complex, str, bytes, bytearray, list, tuple, dict, set, frozenset)):
        return not value
    return False


def is_all_fields_empty(value: Any) -> bool:
    """Tell whether a response body or record carries no meaningful data.

    Bytes and strings are read as JSON: anything that is not a JSON object
    counts as content, an object is judged by :func:`is_map_empty`.
    Dataclasses are empty when every field holds its zero value.
    """
    if isinstance(value, (bytes, bytearray, str)):
        if not value:
            return True
        try:
            document = json.loads(value)
        except ValueError:
            return False
        if document is None:
            return True
        if not isinstance(document, dict):
            return False
        return is_map_empty(document)
    if isinstance(value, Mapping):
        return is_map_empty(value)
    return _is_zero(value)


def is_map_empty(mapping: Mapping[str, Any]) -> bool:
    """Tell whether a decoded JSON object holds only blank values.

    Non-empty strings other than the zero timestamp and non-zero numbers
    count as content, and so does ``False``.
    """
    for value in mapping.values():
        if isinstance(value, str):
            if value and value != _ZERO_TIME_TEXT:
                return False
        elif isinstance(value, bool):
            if value is False:
                return False
        elif isinstance(value, (int, float)):
            if value != 0:
                return False
    return True


def is_expired(now: datetime, expiration: datetime) -> bool:
    """Tell whether ``now`` lies after ``expiration``."""
    return now > expiration