import json
from datetime import datetime
from typing import Optional
from wsgiref.util import setup_testing_defaults

import pytest

from respcache.demo import create_app, main
from respcache.memory import Algorithm, CacheMemoryStore, CacheMemoryStoreConfig
from respcache.response import CacheStore, generate_key, to_cache_response
from respcache.strategy import CacheStrategy, TwoLevelConfig
from respcache.two_level import CacheTwoLevelStore


def call(app, method, path, query=""):
    environ = {}
    setup_testing_defaults(environ)
    environ.update(REQUEST_METHOD=method, PATH_INFO=path, QUERY_STRING=query)
    captured = {}

    def start_response(status, headers, exc_info=None):
        captured["status"] = status
        captured["headers"] = headers
        return lambda data: None

    body = b"".join(app(environ, start_response))
    return int(captured["status"].split()[0]), dict(captured["headers"]), body


class BrokenClearStore(CacheStore):
    def __init__(self):
        self.entries = {}

    def get(self, key: int) -> Optional[bytes]:
        return self.entries.get(key)

    def set(self, key: int, response: bytes, expiration: datetime) -> None:
        self.entries[key] = response

    def release(self, key: int) -> None:
        self.entries.pop(key, None)

    def clear(self) -> None:
        raise RuntimeError("flush refused")


@pytest.fixture
def levels():
    l1 = CacheMemoryStore(CacheMemoryStoreConfig(capacity=10, algorithm=Algorithm.LRU))
    l2 = CacheMemoryStore(CacheMemoryStoreConfig(capacity=100, algorithm=Algorithm.LRU))
    store = CacheTwoLevelStore(
        TwoLevelConfig(l1_store=l1, l2_store=l2, strategy=CacheStrategy.WRITE_THROUGH)
    )
    yield l1, l2, store
    store.stop()


def test_health(levels):
    app = create_app(levels[2])
    status, headers, body = call(app, "GET", "/health")
    assert status == 200
    assert json.loads(body)["status"] == "healthy"
    assert headers["Content-Type"].startswith("application/json")


def test_api_data_is_stored_and_served_from_cache(levels):
    l1, l2, store = levels
    app = create_app(store)
    status, _, first = call(app, "GET", "/api/data")
    assert status == 200
    assert json.loads(first)["data"] == "This response is cached in both memory and Redis"

    key = generate_key("GET", "/api/data")
    assert to_cache_response(l1.get(key)).body == first
    assert to_cache_response(l2.get(key)).body == first

    status, _, second = call(app, "GET", "/api/data")
    assert status == 200
    assert second == first
    assert to_cache_response(l1.get(key)).frequency == 2


def test_user_endpoint(levels):
    app = create_app(levels[2])
    status, _, body = call(app, "GET", "/api/user/123")
    payload = json.loads(body)
    assert status == 200
    assert payload["user_id"] == "123"
    assert payload["name"] == "User 123"


def test_stats_reflect_hits_and_misses(levels):
    app = create_app(levels[2])
    call(app, "GET", "/api/data")
    call(app, "GET", "/api/data")
    status, _, body = call(app, "GET", "/cache/stats")
    stats = json.loads(body)
    assert status == 200
    assert stats["l1Hits"] == 1
    assert stats["totalMiss"] == 1
    assert stats["totalRequest"] == stats["l1Hits"] + stats["l2Hits"] + stats["totalMiss"]
    assert stats["hitRate"] == 50.0


def test_stats_reset(levels):
    app = create_app(levels[2])
    call(app, "GET", "/api/data")
    status, _, body = call(app, "POST", "/cache/stats/reset")
    assert status == 200
    assert json.loads(body)["message"] == "Cache statistics reset successfully"
    stats = json.loads(call(app, "GET", "/cache/stats")[2])
    assert stats["totalRequest"] == 0


def test_clear_l1_keeps_l2(levels):
    l1, l2, store = levels
    app = create_app(store)
    call(app, "GET", "/api/data")
    status, _, body = call(app, "DELETE", "/cache/l1")
    assert status == 200
    assert json.loads(body)["message"] == "L1 cache cleared successfully"
    assert len(l1) == 0
    assert len(l2) == 1


def test_clear_l2_keeps_l1(levels):
    l1, l2, store = levels
    app = create_app(store)
    call(app, "GET", "/api/data")
    status, _, body = call(app, "DELETE", "/cache/l2")
    assert status == 200
    assert json.loads(body)["message"] == "L2 cache cleared successfully"
    assert len(l2) == 0
    assert len(l1) == 1


def test_clear_all(levels):
    l1, l2, store = levels
    app = create_app(store)
    call(app, "GET", "/api/data")
    status, _, body = call(app, "DELETE", "/cache/all")
    assert status == 200
    assert json.loads(body)["message"] == "All caches cleared successfully"
    assert len(l1) == len(l2) == 0


def test_single_store_has_no_stats_endpoint():
    app = create_app(CacheMemoryStore())
    status, _, _ = call(app, "GET", "/cache/stats")
    assert status == 404


def test_clear_endpoint_on_plain_store():
    store = CacheMemoryStore()
    app = create_app(store)
    call(app, "GET", "/api/data")
    assert len(store) == 1
    status, _, body = call(app, "DELETE", "/cache/clear")
    assert status == 200
    assert json.loads(body)["message"] == "Cache cleared successfully"
    assert len(store) == 0


def test_clear_failure_reports_error():
    app = create_app(BrokenClearStore())
    status, _, body = call(app, "DELETE", "/cache/clear")
    payload = json.loads(body)
    assert status == 500
    assert payload["error"] == "Failed to clear cache"
    assert payload["details"] == "flush refused"


def test_unknown_path_and_wrong_method(levels):
    app = create_app(levels[2])
    assert call(app, "GET", "/nowhere")[0] == 404
    assert call(app, "POST", "/health")[0] == 405


def test_main_rejects_bad_port():
    with pytest.raises(SystemExit) as excinfo:
        main(["--port", "notanumber"])
    assert excinfo.value.code == 2


def test_main_rejects_zero_capacity():
    with pytest.raises(SystemExit) as excinfo:
        main(["--l1-capacity", "0"])
    assert excinfo.value.code == 2