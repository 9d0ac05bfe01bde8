"""Cache stores backed by a Redis server or a Redis cluster."""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import redis
from redis.cluster import ClusterNode, RedisCluster

from .response import CacheStore, key_as_string

DEFAULT_CLUSTER_NODES = ("localhost:17000",)
DEFAULT_TIMEOUT = 3.0
_MILLISECOND = timedelta(milliseconds=1)


def _get(client: Any, key: int) -> Optional[bytes]:
    try:
        data = client.get(key_as_string(key))
    except redis.RedisError:
        return None
    return None if data is None else bytes(data)


def _set(client: Any, key: int, response: bytes, expiration: datetime) -> None:
    name = key_as_string(key)
    remaining = expiration - datetime.now(timezone.utc)
    try:
        if remaining <= timedelta(0):
            client.delete(name)
        else:
            client.set(name, response, px=max(1, math.ceil(remaining / _MILLISECOND)))
    except redis.RedisError:
        # A cache write that fails leaves the application unaffected.
        pass


def _release(client: Any, key: int) -> None:
    try:
        client.delete(key_as_string(key))
    except redis.RedisError:
        pass


class CacheRedisStore(CacheStore):
    """Store backed by a single Redis server; keys are base-36 strings."""

    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, key: int) -> Optional[bytes]:
        """Return the stored bytes for ``key``, or None."""
        return _get(self.client, key)

    def set(self, key: int, response: bytes, expiration: datetime) -> None:
        """Store ``response`` with a TTL running until ``expiration``."""
        _set(self.client, key, response, expiration)

    def release(self, key: int) -> None:
        """Remove ``key``."""
        _release(self.client, key)

    def clear(self) -> None:
        """Remove every key of the selected database."""
        self.client.flushdb()


class CacheRedisClusterStore(CacheStore):
    """Store backed by a Redis cluster; keys are base-36 strings."""

    def __init__(self, client: RedisCluster):
        self.client = client

    def get(self, key: int) -> Optional[bytes]:
        """Return the stored bytes for ``key``, or None."""
        return _get(self.client, key)

    def set(self, key: int, response: bytes, expiration: datetime) -> None:
        """Store ``response`` with a TTL running until ``expiration``."""
        _set(self.client, key, response, expiration)

    def release(self, key: int) -> None:
        """Remove ``key``."""
        _release(self.client, key)

    def clear(self) -> None:
        """Remove every key from every primary node."""
        self.client.flushdb(target_nodes=RedisCluster.PRIMARIES)


def redis_store_from_url(url: str) -> CacheRedisStore:
    """Create a store for the Redis server at ``url``."""
    return CacheRedisStore(redis.Redis.from_url(url))


def _parse_address(address: str) -> ClusterNode:
    host, _, port = address.rpartition(":")
    if not host or not port.isdigit():
        raise ValueError(f"invalid cluster node address: {address!r}")
    return ClusterNode(host, int(port))


def redis_cluster_store_from_nodes(
    addresses: Optional[Iterable[str]] = None,
) -> CacheRedisClusterStore:
    """Create a store for the cluster reachable through ``host:port`` addresses."""
    nodes = [_parse_address(address) for address in (addresses or DEFAULT_CLUSTER_NODES)]
    if not nodes:
        raise ValueError("at least one cluster node address is required")
    client = RedisCluster(startup_nodes=nodes, socket_timeout=DEFAULT_TIMEOUT)
    return CacheRedisClusterStore(client)