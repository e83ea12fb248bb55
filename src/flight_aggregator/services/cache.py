# src/flight_aggregator/services/cache.py

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import redis
from cachetools import TLRUCache

from flight_aggregator.core.models import SearchParams


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600
DEFAULT_DB_PATH = os.path.join("data", "search_cache.sqlite")
DEFAULT_MAX_ENTRIES = 1024
DEFAULT_REDIS_PORT = 6379
# the managed-Redis TLS port
REDIS_TLS_PORT = 6380


class CacheStore(ABC):
    """Key-value backend with per-key expiry. Values are strings."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def flush_all(self) -> None:
        ...

    @abstractmethod
    def is_connected(self) -> bool:
        ...


class InMemoryCacheStore(CacheStore):
    """
    Process-local store on a cachetools TLRUCache: each entry expires after
    its own TTL and the cache never holds more than `max_entries` items.
    Expired entries are purged on every write.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cache: TLRUCache = TLRUCache(
            maxsize=max_entries,
            ttu=lambda _key, entry, now: now + entry[0],
            timer=clock,
        )
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._cache.get(key)
        return entry[1] if entry is not None else None

    def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            if ttl_seconds <= 0:
                self._cache.pop(key, None)
                return
            self._cache[key] = (ttl_seconds, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def flush_all(self) -> None:
        with self._lock:
            self._cache.clear()

    def is_connected(self) -> bool:
        return True


def _ensure_parent_dir(path: str) -> None:
    parent = os.path.dirname(path)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)


class SqliteCacheStore(CacheStore):
    """
    SQLite-backed store, shared by every process pointing at the same file.
    A store whose schema cannot be created stays disconnected.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH, clock: Callable[[], float] = time.time):
        self.db_path = db_path
        self._clock = clock
        self._connected = False
        try:
            _ensure_parent_dir(self.db_path)
            self._init_schema()
            self._connected = True
        except (OSError, sqlite3.Error) as exc:
            logger.warning("SQLite cache at %s unavailable, cache disabled: %s", db_path, exc)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=5)
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cache_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL NOT NULL      -- epoch seconds
                );
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache_entries(expires_at);"
            )

    def get(self, key: str) -> Optional[str]:
        now = self._clock()
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value, expires_at FROM cache_entries WHERE key = ?;", (key,)
            ).fetchone()
            if row is None:
                return None
            if row[1] <= now:
                conn.execute("DELETE FROM cache_entries WHERE expires_at <= ?;", (now,))
                return None
            return row[0]

    def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO cache_entries (key, value, expires_at) VALUES (?, ?, ?);",
                (key, value, self._clock() + ttl_seconds),
            )

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM cache_entries WHERE key = ?;", (key,))

    def flush_all(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM cache_entries;")

    def is_connected(self) -> bool:
        return self._connected


class RedisCacheStore(CacheStore):
    """
    Redis-backed store. Expiry is left to Redis (SETEX). A store whose
    initial PING fails stays disconnected; it is not retried.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = DEFAULT_REDIS_PORT,
        password: Optional[str] = None,
        db: int = 0,
        client: Optional[redis.Redis] = None,
        socket_timeout: float = 2.0,
    ):
        self.host = host
        self.port = port
        self.client = client or redis.Redis(
            host=host,
            port=port,
            password=password or None,
            db=db,
            ssl=port == REDIS_TLS_PORT,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        self._connected = False
        try:
            self.client.ping()
            self._connected = True
            logger.info("Redis cache connected at %s:%s", host, port)
        except (redis.RedisError, OSError) as exc:
            logger.warning("Failed to connect to Redis at %s:%s, cache disabled: %s", host, port, exc)

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            self.client.delete(key)
            return
        self.client.setex(key, ttl_seconds, value)

    def delete(self, key: str) -> None:
        self.client.delete(key)

    def flush_all(self) -> None:
        self.client.flushdb()

    def is_connected(self) -> bool:
        return self._connected


class CacheGate:
    """
    Best-effort JSON cache in front of a CacheStore.

    Every backend or (de)serialization fault is logged and turned into a
    miss (get) or a no-op (set/delete/clear). Nothing is retried.
    """

    def __init__(self, store: Optional[CacheStore] = None, default_ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.store = store
        self.default_ttl_seconds = default_ttl_seconds

    def _available(self) -> bool:
        if self.store is None:
            return False
        try:
            return bool(self.store.is_connected())
        except Exception as exc:
            logger.warning("Cache health check failed: %s", exc)
            return False

    def get(self, key: str) -> Optional[Any]:
        if not self._available():
            return None
        try:
            raw = self.store.get(key)
        except Exception as exc:
            logger.warning("Cache get error for key %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Cache entry for key %s is not valid JSON: %s", key, exc)
            return None

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        if not self._available():
            return
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as exc:
            logger.warning("Cache value for key %s is not serializable: %s", key, exc)
            return
        if ttl_seconds is None:
            ttl_seconds = self.default_ttl_seconds
        try:
            self.store.set_with_ttl(key, raw, ttl_seconds)
        except Exception as exc:
            logger.warning("Cache set error for key %s: %s", key, exc)

    def delete(self, key: str) -> None:
        if not self._available():
            return
        try:
            self.store.delete(key)
        except Exception as exc:
            logger.warning("Cache delete error for key %s: %s", key, exc)

    def clear(self) -> None:
        if not self._available():
            return
        try:
            self.store.flush_all()
        except Exception as exc:
            logger.warning("Cache clear error: %s", exc)

    def healthy(self) -> bool:
        return self._available()


def search_cache_key(params: SearchParams) -> str:
    """
    Deterministic key for a search. Cabin, price cap, airline allow-list,
    provider subset and multi-city legs change the result set, so they are
    part of the key; list fields are normalized so their order and casing
    do not matter.
    """
    airlines = ",".join(sorted({a.strip().upper() for a in params.airlines if a.strip()})) or "*"
    providers = (
        ",".join(sorted({p.strip().lower() for p in params.include_providers if p.strip()})) or "*"
    )
    legs = ";".join(
        f"{leg.origin.upper()}-{leg.destination.upper()}-"
        f"{leg.departure_date.isoformat() if leg.departure_date else ''}"
        for leg in params.legs
    ) or "-"
    max_price = f"{params.max_price:g}" if params.max_price is not None else "*"
    return ":".join(
        [
            "flight_search",
            (params.origin or "").upper(),
            (params.destination or "").upper(),
            params.departure_date.isoformat() if params.departure_date else "",
            params.return_date.isoformat() if params.return_date else "oneway",
            str(params.total_passengers),
            params.trip_type,
            params.cabin or "any",
            max_price,
            airlines,
            providers,
            legs,
        ]
    )
