"""Storage media behind the key-value store.

Every medium speaks the same small contract: get_item/set_item/remove_item
plus key enumeration. Three implementations:

    MemoryBackend: process-local dict (transient scope, tests)
    SQLiteBackend: single-table SQLite file (default durable scope)
    RedisBackend: Redis, when REDIS_URL is configured

Usage:
    from storage_backend import create_durable_backend, MemoryBackend
    durable = create_durable_backend(config)
    transient = MemoryBackend()
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Protocol

import redis
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """The backing medium rejected an operation."""


class StorageQuotaExceeded(StorageError):
    """The medium is full."""


class StorageUnavailable(StorageError):
    """The medium cannot be reached or is read-only."""


# ── Protocol ───────────────────────────────────────────────

class StorageBackend(Protocol):
    def get_item(self, key: str) -> str | None: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...
    def keys(self, prefix: str = "") -> list[str]: ...


# ── In-Memory Implementation ──────────────────────────────

class MemoryBackend:
    """Dict-backed medium. ``quota_bytes`` caps total stored key+value size."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self._lock = threading.Lock()
        self.quota_bytes = quota_bytes

    def _used_bytes(self, skip_key: str = "") -> int:
        return sum(
            len(k.encode()) + len(v.encode())
            for k, v in self._items.items()
            if k != skip_key
        )

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            if self.quota_bytes is not None:
                needed = self._used_bytes(skip_key=key) + len(key.encode()) + len(value.encode())
                if needed > self.quota_bytes:
                    raise StorageQuotaExceeded(
                        f"quota of {self.quota_bytes} bytes exceeded writing {key!r}"
                    )
            self._items[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return [k for k in self._items if k.startswith(prefix)]


# ── SQLite Implementation ─────────────────────────────────

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_items (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class SQLiteBackend:
    """Durable medium stored in one SQLite file (WAL mode)."""

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if self.path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    def _fail(self, op: str, key: str, exc: sqlite3.Error) -> StorageError:
        msg = str(exc).lower()
        if "full" in msg:
            return StorageQuotaExceeded(f"SQLite {op} failed (key={key}): {exc}")
        return StorageUnavailable(f"SQLite {op} failed (key={key}): {exc}")

    def get_item(self, key: str) -> str | None:
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT value FROM kv_items WHERE key = ?", (key,)
                ).fetchone()
            except sqlite3.Error as e:
                raise self._fail("GET", key, e) from e
        return row["value"] if row else None

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT INTO kv_items (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise self._fail("SET", key, e) from e

    def remove_item(self, key: str) -> None:
        with self._lock:
            try:
                self._conn.execute("DELETE FROM kv_items WHERE key = ?", (key,))
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise self._fail("DELETE", key, e) from e

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            try:
                rows = self._conn.execute(
                    "SELECT key FROM kv_items WHERE substr(key, 1, ?) = ? ORDER BY key",
                    (len(prefix), prefix),
                ).fetchall()
            except sqlite3.Error as e:
                raise self._fail("KEYS", prefix, e) from e
        return [r["key"] for r in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()


# ── Redis Implementation ──────────────────────────────────

_redis_retry = retry(
    retry=retry_if_exception_type((redis.ConnectionError, redis.TimeoutError)),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    stop=stop_after_attempt(3),
    reraise=True,
)


def _decode(raw: Any) -> str:
    return raw.decode() if isinstance(raw, bytes) else raw


class RedisBackend:
    """Wraps redis.Redis; connection blips are retried before giving up."""

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    def _fail(self, op: str, key: str, exc: redis.RedisError) -> StorageError:
        if "oom" in str(exc).lower():
            return StorageQuotaExceeded(f"Redis {op} failed (key={key}): {exc}")
        return StorageUnavailable(f"Redis {op} failed (key={key}): {exc}")

    @_redis_retry
    def _get(self, key: str):
        return self._redis.get(key)

    @_redis_retry
    def _set(self, key: str, value: str) -> None:
        self._redis.set(key, value)

    @_redis_retry
    def _delete(self, key: str) -> None:
        self._redis.delete(key)

    @_redis_retry
    def _scan(self, prefix: str) -> list:
        return list(self._redis.scan_iter(match=f"{prefix}*"))

    def get_item(self, key: str) -> str | None:
        try:
            raw = self._get(key)
        except redis.RedisError as e:
            raise self._fail("GET", key, e) from e
        return None if raw is None else _decode(raw)

    def set_item(self, key: str, value: str) -> None:
        try:
            self._set(key, value)
        except redis.RedisError as e:
            raise self._fail("SET", key, e) from e

    def remove_item(self, key: str) -> None:
        try:
            self._delete(key)
        except redis.RedisError as e:
            raise self._fail("DELETE", key, e) from e

    def keys(self, prefix: str = "") -> list[str]:
        try:
            raw_keys = self._scan(prefix)
        except redis.RedisError as e:
            raise self._fail("SCAN", prefix, e) from e
        return sorted(_decode(k) for k in raw_keys)


# ── Factory ───────────────────────────────────────────────

def create_durable_backend(config: dict) -> StorageBackend:
    """Pick the durable medium from config: Redis when reachable, else SQLite."""
    redis_url = config.get("REDIS_URL", "")
    if redis_url:
        try:
            client = redis.Redis.from_url(redis_url, decode_responses=False)
            client.ping()
            logger.info("Durable storage: Redis (%s)", redis_url)
            return RedisBackend(client)
        except redis.RedisError as e:
            logger.warning("Redis connection failed (%s), falling back to SQLite.", e)

    path = config.get("STORE_DATABASE", ":memory:")
    logger.info("Durable storage: SQLite (%s)", path)
    return SQLiteBackend(path)
