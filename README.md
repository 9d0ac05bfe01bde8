# respcache

Response caching middleware for WSGI applications.

`respcache` sits in front of a WSGI app and keeps successful `GET` responses
in a store. The cache key is a 64-bit FNV-1a hash of the method and the
request URL. Query parameters are sorted by name and then by value before the
key is computed. A repeated request for the same URL is answered from the
store with status `200 OK` until the cached entry expires. Each hit updates
the entry's last-access time and raises its access count.

The middleware never caches these responses:

- a response with a status of 400 or above;
- an empty body;
- a body that holds a JSON object whose values are all blank: empty strings,
  the zero timestamp `0001-01-01T00:00:00Z`, zeros or `true`.

## Which requests are handled

A request passes straight through to the application in three cases:

- the skipper returns true for it;
- its URL contains an excluded path;
- its URL contains none of the included paths.

The default skipper looks for a true `respcache.skip` key in the WSGI environ.
A path matches when the request URL contains it, and excluded paths are
checked first. With no include paths configured, nothing is cached.

A request on an included path that is not a `GET` is not passed to the
application. The middleware answers it itself with an empty `200 OK`.

## Using the middleware

```python
from respcache.memory import Algorithm, CacheMemoryStore, CacheMemoryStoreConfig
from respcache.middleware import CacheConfig, cache_with_config
from datetime import timedelta


def app(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain")])
    return [b"hello"]


store = CacheMemoryStore(CacheMemoryStoreConfig(capacity=100, algorithm=Algorithm.LRU))
application = cache_with_config(
    app,
    CacheConfig(
        store=store,
        expiration=timedelta(minutes=5),
        include_paths=["/api/"],
        include_paths_with_expiration={"/api/slow": timedelta(hours=1)},
        exclude_paths=["/api/live"],
    ),
)
```

`cache(app, store)` uses the default `CacheConfig`, with an expiration of
three minutes. `CacheConfig` has these fields:

- `store`;
- `expiration`;
- `include_paths`;
- `include_paths_with_expiration`, whose per-path expiration takes precedence
  over the default;
- `exclude_paths`;
- `skipper`.

`CacheMiddleware` raises `ValueError` when no store is given or when the
expiration is not positive.

## Stores

Every store has `get(key)`, `set(key, response, expiration)` and
`release(key)`. `get` returns the stored bytes or `None`. The abstract base
class `respcache.response.CacheStore` defines this interface.

- **`respcache.memory.CacheMemoryStore`** is a thread-safe in-process store
  with a fixed capacity. It does not expire entries itself; the middleware
  checks expiry when it reads. When the store is full, it evicts one entry
  according to its `Algorithm`: `LRU`, `MRU`, `LFU` or `MFU`. A
  `CacheMemoryStore()` built without a config holds 10 entries and uses
  `LFU`. A capacity of 0 means 10, and an empty algorithm means `LRU`. The
  store also has `evict()`, `clear()` and `len()`.
- **`respcache.redis_store.CacheRedisStore`** and **`CacheRedisClusterStore`**
  keep entries under base-36 keys, with a time to live that runs until the
  expiration. Redis errors on `get`, `set` and `release` are swallowed: a read
  becomes a miss and a write is dropped. `clear()` flushes the database, or
  every primary of a cluster. Build the stores with
  `redis_store_from_url(url)` and `redis_cluster_store_from_nodes(addresses)`.
  The cluster default is `localhost:17000`.
- **`respcache.two_level.CacheTwoLevelStore`** layers a first-level (L1)
  store over a second-level (L2) store. See below.

`respcache.response.CacheResponse` is the JSON record the middleware stores.
Its `to_bytes()` and `from_bytes()` convert it to and from bytes. The same
module provides `generate_key`, `key_as_string`, `sort_url_params` and
`is_all_fields_empty`.

## Two-level caching

```python
from respcache.redis_store import redis_store_from_url
from respcache.two_level import create_two_level_store

with create_two_level_store(store, redis_store_from_url("redis://localhost:6379/0")) as two_level:
    application = cache(app, two_level)
    ...
    stats = two_level.get_stats()
    print(stats.l1_hits, stats.l2_hits, stats.total_miss, stats.hit_rate)
```

Reads try L1 first and then L2. With `cache_warming` on, an L2 hit is copied
into L1 with the L1 time to live.

`TwoLevelConfig` selects the write strategy with `CacheStrategy`:

- **`WRITE_THROUGH`** writes to both levels at once.
- **`CACHE_ASIDE`** behaves the same as `WRITE_THROUGH`.
- **`WRITE_BACK`** writes to L1 at once and queues the L2 write for a
  background thread. When the queue is full, the L2 write happens at once
  instead.

Each level's expiration is the earlier of its TTL (`l1_ttl`, `l2_ttl`) and the
requested expiration. Cache warming runs in the background only for a
write-back store with `sync_mode` set to `SyncMode.ASYNC`. Otherwise it runs
immediately.

Call `stop()` on a store, or leave its `with` block, to let a write-back
store finish queued work.

The store has these further methods:

- `get_stats()` returns a `CacheStats` with hits, misses, percentage hit rates
  and the sizes of both levels. A level that does not support `len()` reports
  a size of 0. `to_dict()` gives the statistics under camelCase names.
- `reset_stats()` sets the counters to zero.
- `clear_l1()`, `clear_l2()` and `clear_all()` empty the levels that have a
  `clear()` method.

## Demo server

```
respcache-demo [--host HOST] [--port 8080] [--redis-url redis://localhost:6379/0]
               [--cluster-node HOST:PORT ...] [--l1-capacity 100]
```

The command serves a small JSON API through a two-level cache. L1 is an LRU
memory store. L2 is a Redis server, or a Redis cluster when `--cluster-node`
is given.

Endpoints:

- `GET /api/data` and `GET /api/user/<id>` are cached for ten minutes.
- `GET /health` is a health check.
- `GET /cache/stats` returns the cache statistics.
- `POST /cache/stats/reset` resets the statistics.
- `DELETE /cache/l1`, `/cache/l2` and `/cache/all` clear one level or both.

To use the same application with another store, call
`respcache.demo.create_app(store)`.

## Limits

`respcache` is WSGI middleware only; it has no ASGI or asyncio support. The
demo runs on the standard library's single-threaded reference WSGI server and
is not meant for production traffic.