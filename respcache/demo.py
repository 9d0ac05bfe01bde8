"""Demonstration web application served through a two-level response cache."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timedelta, timezone
from functools import partial
from http import HTTPStatus
from typing import Any, Callable, Iterable, Optional
from wsgiref.simple_server import make_server

from .memory import Algorithm, CacheMemoryStore, CacheMemoryStoreConfig
from .middleware import CacheConfig, cache_with_config
from .redis_store import redis_cluster_store_from_nodes, redis_store_from_url
from .response import CacheStore
from .strategy import CacheStrategy, TwoLevelConfig
from .two_level import CacheTwoLevelStore

logger = logging.getLogger(__name__)

CACHE_EXPIRATION = timedelta(minutes=10)
CACHED_PREFIX = "/api/"
L1_TTL = timedelta(minutes=5)
L2_TTL = timedelta(minutes=30)
DEFAULT_PORT = 8080
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_L1_CAPACITY = 100

_USER_PREFIX = "/api/user/"
_JSON_TYPE = "application/json; charset=UTF-8"

Handler = Callable[[], "tuple[int, Any]"]

_ENDPOINTS = (
    "  GET  /api/data        - Cached API endpoint",
    "  GET  /api/user/:id    - User data endpoint",
    "  GET  /cache/stats     - Cache statistics",
    "  DELETE /cache/l1      - Clear L1 cache",
    "  DELETE /cache/l2      - Clear L2 cache",
    "  DELETE /cache/all     - Clear all caches",
    "  DELETE /cache/clear   - Clear the whole store",
    "  POST /cache/stats/reset - Reset statistics",
    "  GET  /health          - Health check",
)


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _json_reply(start_response: Callable, status: int, payload: Any) -> list[bytes]:
    body = (json.dumps(payload) + "\n").encode("utf-8")
    start_response(
        f"{status} {HTTPStatus(status).phrase}",
        [("Content-Type", _JSON_TYPE), ("Content-Length", str(len(body)))],
    )
    return [body]


def _data() -> tuple[int, Any]:
    logger.info("Generating new response...")
    return HTTPStatus.OK, {
        "data": "This response is cached in both memory and Redis",
        "timestamp": _timestamp(),
        "cached": False,
    }


def _user(user_id: str) -> tuple[int, Any]:
    logger.info("Fetching user %s...", user_id)
    return HTTPStatus.OK, {
        "user_id": user_id,
        "name": "User " + user_id,
        "timestamp": _timestamp(),
    }


def _health() -> tuple[int, Any]:
    return HTTPStatus.OK, {"status": "healthy", "time": _timestamp()}


def _clearing(action: Callable[[], None], message: str) -> tuple[int, Any]:
    try:
        action()
    except Exception as exc:
        return HTTPStatus.INTERNAL_SERVER_ERROR, {"error": str(exc)}
    return HTTPStatus.OK, {"message": message}


def _clear_store(clear: Callable[[], None]) -> tuple[int, Any]:
    try:
        clear()
    except Exception as exc:
        logger.error("Cache clear error: %s", exc)
        return HTTPStatus.INTERNAL_SERVER_ERROR, {
            "error": "Failed to clear cache",
            "details": str(exc),
        }
    return HTTPStatus.OK, {"message": "Cache cleared successfully"}


def _reset_stats(store: CacheTwoLevelStore) -> tuple[int, Any]:
    store.reset_stats()
    return HTTPStatus.OK, {"message": "Cache statistics reset successfully"}


def _build_routes(store: CacheStore) -> dict[str, dict[str, Handler]]:
    routes: dict[str, dict[str, Handler]] = {
        "/api/data": {"GET": _data},
        "/health": {"GET": _health},
    }
    if isinstance(store, CacheTwoLevelStore):
        routes["/cache/stats"] = {"GET": lambda: (HTTPStatus.OK, store.get_stats().to_dict())}
        routes["/cache/l1"] = {
            "DELETE": partial(_clearing, store.clear_l1, "L1 cache cleared successfully")
        }
        routes["/cache/l2"] = {
            "DELETE": partial(_clearing, store.clear_l2, "L2 cache cleared successfully")
        }
        routes["/cache/all"] = {
            "DELETE": partial(_clearing, store.clear_all, "All caches cleared successfully")
        }
        routes["/cache/stats/reset"] = {"POST": partial(_reset_stats, store)}
    clear = getattr(store, "clear", None)
    if callable(clear):
        routes["/cache/clear"] = {"DELETE": partial(_clear_store, clear)}
    return routes


def _resolve(routes: dict[str, dict[str, Handler]], path: str) -> Optional[dict[str, Handler]]:
    methods = routes.get(path)
    if methods is not None:
        return methods
    if path.startswith(_USER_PREFIX):
        user_id = path[len(_USER_PREFIX):]
        if user_id and "/" not in user_id:
            return {"GET": partial(_user, user_id)}
    return None


def create_app(store: CacheStore) -> Callable[[dict, Callable], Iterable[bytes]]:
    """Build the demo WSGI application, caching everything under ``/api/`` in ``store``.

    Statistics and per-level clearing endpoints exist only for two-level stores;
    ``DELETE /cache/clear`` exists for any store that can be cleared.
    """
    routes = _build_routes(store)

    def application(environ: dict, start_response: Callable) -> Iterable[bytes]:
        path = environ.get("PATH_INFO") or "/"
        methods = _resolve(routes, path)
        if methods is None:
            return _json_reply(start_response, HTTPStatus.NOT_FOUND, {"message": "Not Found"})
        handler = methods.get(environ.get("REQUEST_METHOD", "GET"))
        if handler is None:
            return _json_reply(
                start_response, HTTPStatus.METHOD_NOT_ALLOWED, {"message": "Method Not Allowed"}
            )
        status, payload = handler()
        return _json_reply(start_response, status, payload)

    return cache_with_config(
        application,
        CacheConfig(store=store, expiration=CACHE_EXPIRATION, include_paths=[CACHED_PREFIX]),
    )


def _build_store(args: argparse.Namespace) -> CacheTwoLevelStore:
    l1_store = CacheMemoryStore(
        CacheMemoryStoreConfig(capacity=args.l1_capacity, algorithm=Algorithm.LRU)
    )
    if args.cluster_nodes:
        l2_store: CacheStore = redis_cluster_store_from_nodes(args.cluster_nodes)
    else:
        l2_store = redis_store_from_url(args.redis_url)
    return CacheTwoLevelStore(
        TwoLevelConfig(
            l1_store=l1_store,
            l2_store=l2_store,
            strategy=CacheStrategy.WRITE_THROUGH,
            l1_ttl=L1_TTL,
            l2_ttl=L2_TTL,
            cache_warming=True,
        )
    )


def _parse_args(argv: Optional[list[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="respcache-demo",
        description="Serve a demo API through a memory and Redis response cache.",
    )
    parser.add_argument("--host", default="", help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    parser.add_argument(
        "--redis-url", default=DEFAULT_REDIS_URL, help="Redis server used as the L2 cache"
    )
    parser.add_argument(
        "--cluster-node",
        action="append",
        dest="cluster_nodes",
        metavar="HOST:PORT",
        help="use a Redis cluster as the L2 cache (repeatable)",
    )
    parser.add_argument(
        "--l1-capacity",
        type=int,
        default=DEFAULT_L1_CAPACITY,
        help="number of responses kept in memory",
    )
    args = parser.parse_args(argv)
    if args.l1_capacity < 1:
        parser.error("--l1-capacity must be positive")
    if not 0 < args.port < 65536:
        parser.error("--port must be between 1 and 65535")
    return args


def main(argv: Optional[list[str]] = None) -> int:
    """Run the demo server until interrupted."""
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    store = _build_store(args)
    try:
        with make_server(args.host, args.port, create_app(store)) as server:
            logger.info("Server starting on :%d...", args.port)
            logger.info("Available endpoints:")
            for line in _ENDPOINTS:
                logger.info(line)
            server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Server stopped")
    finally:
        store.stop()
    return 0