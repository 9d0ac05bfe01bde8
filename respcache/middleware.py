"""WSGI middleware that serves repeated GET requests from a cache store."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Optional
from urllib.parse import quote

from .response import (
    CacheResponse,
    CacheStore,
    generate_key,
    is_all_fields_empty,
    is_expired,
    sort_url_params,
    to_cache_response,
)

DEFAULT_EXPIRATION = timedelta(minutes=3)
SKIP_ENVIRON_KEY = "respcache.skip"
_PATH_SAFE = "/:@!$&'()*+,;=-._~"

Skipper = Callable[[dict], bool]


def default_skipper(environ: dict) -> bool:
    """Skip the cache only for requests flagged with ``respcache.skip``."""
    return bool(environ.get(SKIP_ENVIRON_KEY, False))


@dataclass
class CacheConfig:
    """Settings for :class:`CacheMiddleware`.

    Only URLs containing one of the include paths are cached; exclude paths
    win over include paths, and per-path expirations win over the default.
    """

    store: Optional[CacheStore] = None
    expiration: timedelta = DEFAULT_EXPIRATION
    include_paths: list[str] = field(default_factory=list)
    include_paths_with_expiration: dict[str, timedelta] = field(default_factory=dict)
    exclude_paths: list[str] = field(default_factory=list)
    skipper: Optional[Skipper] = None

    def is_include_path(self, url: str) -> bool:
        """Tell whether ``url`` contains any include path."""
        return any(path in url for path in self.include_paths) or any(
            path in url for path in self.include_paths_with_expiration
        )

    def is_exclude_path(self, url: str) -> bool:
        """Tell whether ``url`` contains any exclude path."""
        return any(path in url for path in self.exclude_paths)

    def expiration_for(self, now: datetime, url: str) -> datetime:
        """Return when a response for ``url`` stored at ``now`` expires."""
        for path, ttl in self.include_paths_with_expiration.items():
            if path in url:
                return now + ttl
        return now + self.expiration


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _request_url(environ: dict) -> str:
    path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")
    try:
        raw = path.encode("latin-1")
    except UnicodeEncodeError:
        raw = path.encode("utf-8")
    url = quote(raw, safe=_PATH_SAFE) or "/"
    query = environ.get("QUERY_STRING", "")
    return f"{url}?{query}" if query else url


def _canonical_header(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))


def _group_headers(headers: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for name, value in headers:
        grouped.setdefault(_canonical_header(name), []).append(value)
    return grouped


def _status_code(status: str) -> int:
    return int(status.split(None, 1)[0])


class CacheMiddleware:
    """Wrap a WSGI application and cache its successful GET responses."""

    def __init__(self, app: Callable, config: CacheConfig):
        if config.store is None:
            raise ValueError("store configuration must be provided")
        if config.expiration <= timedelta(0):
            raise ValueError("cache expiration must be provided")
        self.app = app
        self.config = replace(config, skipper=config.skipper or default_skipper)

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        config = self.config
        if config.skipper(environ):
            return self.app(environ, start_response)

        url = _request_url(environ)
        if config.is_exclude_path(url) or not config.is_include_path(url):
            return self.app(environ, start_response)

        if environ.get("REQUEST_METHOD") != "GET":
            start_response("200 OK", [])
            return [b""]

        url = sort_url_params(url)
        key = generate_key("GET", url)

        cached = self._serve_cached(key, start_response)
        if cached is not None:
            return cached
        return self._serve_and_store(environ, start_response, key, url)

    def _serve_cached(self, key: int, start_response: Callable) -> Optional[list[bytes]]:
        store = self.config.store
        data = store.get(key)
        if data is None:
            return None
        response = to_cache_response(data)
        now = _now()
        if is_expired(now, response.expiration):
            return None
        response.last_access = now
        response.frequency += 1
        store.set(key, response.to_bytes(), response.expiration)
        headers = [(name, ",".join(values)) for name, values in (response.header or {}).items()]
        start_response("200 OK", headers)
        return [response.body]

    def _serve_and_store(
        self, environ: dict, start_response: Callable, key: int, url: str
    ) -> list[bytes]:
        captured: dict[str, Any] = {}
        chunks: list[bytes] = []

        def capture(status, headers, exc_info=None):
            captured.update(status=status, headers=list(headers), exc_info=exc_info)
            return chunks.append

        result = self.app(environ, capture)
        try:
            for chunk in result:
                if chunk:
                    chunks.append(chunk)
        finally:
            close = getattr(result, "close", None)
            if close is not None:
                close()

        if "status" not in captured:
            raise RuntimeError("application did not call start_response")

        body = b"".join(chunks)
        status = captured["status"]
        if _status_code(status) < 400:
            now = _now()
            response = CacheResponse(
                url=url,
                header=_group_headers(captured["headers"]),
                body=body,
                expiration=self.config.expiration_for(now, url),
                last_access=now,
                frequency=1,
            )
            if not is_all_fields_empty(body):
                self.config.store.set(key, response.to_bytes(), response.expiration)

        start_response(status, captured["headers"], captured["exc_info"])
        return [body]


def cache_with_config(app: Callable, config: CacheConfig) -> CacheMiddleware:
    """Wrap ``app`` with a cache configured by ``config``."""
    return CacheMiddleware(app, config)


def cache(app: Callable, store: Optional[CacheStore]) -> CacheMiddleware:
    """Wrap ``app`` with a cache using default settings and ``store``."""
    return cache_with_config(app, CacheConfig(store=store))