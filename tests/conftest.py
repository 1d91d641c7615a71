"""
Test fixtures for the classroom store.

Provides in-memory storage media, a KeyValueStore, a ManualScheduler-driven
Repository and a dict-backed stand-in for a redis client.
"""

from __future__ import annotations

import fnmatch

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeRedis:
    """The handful of redis.Redis calls RedisBackend makes, over a dict."""

    def __init__(self):
        self.data: dict[bytes, bytes] = {}

    @staticmethod
    def _b(value) -> bytes:
        return value if isinstance(value, bytes) else str(value).encode()

    def ping(self):
        return True

    def get(self, key):
        return self.data.get(self._b(key))

    def set(self, key, value):
        self.data[self._b(key)] = self._b(value)
        return True

    def delete(self, key):
        return 1 if self.data.pop(self._b(key), None) is not None else 0

    def scan_iter(self, match="*"):
        pattern = match.encode() if isinstance(match, str) else match
        for key in list(self.data):
            if fnmatch.fnmatchcase(key.decode(), pattern.decode()):
                yield key


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def durable():
    from storage_backend import MemoryBackend
    return MemoryBackend()


@pytest.fixture
def transient():
    from storage_backend import MemoryBackend
    return MemoryBackend()


@pytest.fixture
def kv(durable, transient):
    """KeyValueStore over two memory media, namespace 'test'."""
    from kv_store import KeyValueStore
    return KeyValueStore(durable, transient, namespace="test")


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "store.db")


@pytest.fixture
def scheduler():
    from scheduler import ManualScheduler
    return ManualScheduler()


@pytest.fixture
def repo(kv, scheduler):
    """Repository loaded with the default dataset (storage starts empty)."""
    from repository import Repository
    repository = Repository(kv, scheduler=scheduler, autosync_seconds=30)
    yield repository
    repository.stop()
