from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from respcache.response import (
    ZERO_TIME,
    CacheResponse,
    CacheStore,
    generate_key,
    is_all_fields_empty,
    is_expired,
    is_map_empty,
    key_as_string,
    sort_url_params,
    to_cache_response,
)


def test_to_cache_response_reads_body():
    data = CacheResponse(body=b"value 1", frequency=1).to_bytes()
    assert to_cache_response(data).body == b"value 1"


def test_to_bytes_format():
    response = CacheResponse(body=b"test", frequency=1)
    assert response.to_bytes() == (
        b'{"url":"","header":null,"body":"dGVzdA==",'
        b'"expiration":"0001-01-01T00:00:00Z","lastAccess":"0001-01-01T00:00:00Z","frequency":1}'
    )


def test_round_trip_keeps_all_fields():
    original = CacheResponse(
        url="/items?a=1",
        header={"Content-Type": ["text/plain"], "X-Multi": ["a", "b"]},
        body=b"\x00binary\xff",
        expiration=datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc),
        last_access=datetime(2024, 5, 6, 7, 0, 0, tzinfo=timezone(timedelta(hours=9))),
        frequency=7,
    )
    assert CacheResponse.from_bytes(original.to_bytes()) == original


def test_timestamp_formatting_trims_fraction():
    response = CacheResponse(expiration=datetime(2024, 5, 6, 7, 8, 9, 120000, tzinfo=timezone.utc))
    assert b'"expiration":"2024-05-06T07:08:09.12Z"' in response.to_bytes()


def test_from_bytes_accepts_nanoseconds_and_offsets():
    data = b'{"expiration":"2024-05-06T07:08:09.123456789+09:00","frequency":3}'
    response = CacheResponse.from_bytes(data)
    assert response.expiration == datetime(
        2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone(timedelta(hours=9))
    )
    assert response.frequency == 3
    assert response.last_access == ZERO_TIME


def test_from_bytes_rejects_garbage():
    with pytest.raises(ValueError):
        CacheResponse.from_bytes(b"not json")


def test_from_bytes_rejects_non_object():
    with pytest.raises(ValueError):
        CacheResponse.from_bytes(b"[1, 2]")


def test_to_cache_response_falls_back_to_empty():
    assert to_cache_response(b"garbage") == CacheResponse()
    assert to_cache_response(None) == CacheResponse()


@pytest.mark.parametrize(
    "url, expected",
    [
        ("http://localhost:8080/category", "1auf9gt7r09l5"),
        ("http://localhost:8080/category/morisco", "503atd5m9ojy"),
        ("http://localhost:8080/category/mourisquinho", "110cga4fxnxb5"),
    ],
)
def test_key_as_string(url, expected):
    assert key_as_string(generate_key("GET", url)) == expected


def test_key_as_string_rejects_negative():
    with pytest.raises(ValueError):
        key_as_string(-1)


@pytest.mark.parametrize(
    "url, expected",
    [
        ("http://foo.bar/test-1", 0x3E18CC11D24701D7),
        ("http://foo.bar/test-2", 0x3E18CD11D247038A),
        ("http://foo.bar/test-3", 0x3E18CE11D247053D),
    ],
)
def test_generate_key(url, expected):
    assert generate_key("GET", url) == expected


def test_sort_url_params():
    assert (
        sort_url_params("http://test.com?zaz=bar&foo=zaz&boo=foo&boo=baz")
        == "http://test.com?boo=baz&boo=foo&foo=zaz&zaz=bar"
    )


def test_sort_url_params_relative_and_empty():
    assert sort_url_params("/test?b=2&a=1") == "/test?a=1&b=2"
    assert sort_url_params("/plain") == "/plain"


@dataclass
class _Address:
    city: str = ""
    zip: int = 0


@dataclass
class _Person:
    name: str = ""
    age: int = 0
    address: _Address = field(default_factory=_Address)
    updated_at: datetime = ZERO_TIME


def test_is_all_fields_empty_records():
    assert is_all_fields_empty(_Person(address=_Address(city="seoul"))) is False
    assert is_all_fields_empty(_Person()) is True
    assert is_all_fields_empty(_Person(name="", age=0, address=_Address(city="", zip=0))) is True


@pytest.mark.parametrize(
    "body, expected",
    [
        (b'{"a":"","b":"","c":1}', False),
        (b'{"a":"","b":"b","c":0}', False),
        (b'{"a":"","b":"","c":0}', True),
        (b'{"a":"","b":"","c":0.0}', True),
        (b'{"a":"","b":"","c":0.0,"updatedAt":"0001-01-01T00:00:00Z"}', True),
        (b"", True),
        (b"plain text", False),
        (b"null", True),
    ],
)
def test_is_all_fields_empty_json(body, expected):
    assert is_all_fields_empty(body) is expected


def test_is_map_empty_boolean_rule():
    assert is_map_empty({"flag": False}) is False
    assert is_map_empty({"flag": True}) is True
    assert is_map_empty({"items": [1, 2], "other": None}) is True


def test_is_expired():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert is_expired(now, now - timedelta(seconds=1)) is True
    assert is_expired(now, now) is False
    assert is_expired(now, now + timedelta(seconds=1)) is False


def test_cache_store_is_abstract():
    with pytest.raises(TypeError):
        CacheStore()