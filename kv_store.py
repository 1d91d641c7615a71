"""Namespaced key-value store over a durable and a transient medium.

Values are JSON-serialized and stored under ``namespace:key``. Writes never
raise: a rejected write is logged, recorded in ``write_failures`` and kept in
a memory-only overlay so the process keeps seeing its own data until a later
write reaches the medium.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from storage_backend import MemoryBackend, StorageBackend, StorageError

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0.0"
DEFAULT_NAMESPACE = "classroom-store"
_SENTINEL_KEY = "__storage_test__"


class Scope(str, Enum):
    DURABLE = "durable"
    TRANSIENT = "transient"


@dataclass
class WriteFailure:
    scope: Scope
    key: str
    error: str
    at: str


class KeyValueStore:
    """Synchronous namespaced get/set/remove over two storage scopes."""

    MAX_RECORDED_FAILURES = 100

    def __init__(
        self,
        durable: StorageBackend,
        transient: StorageBackend | None = None,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self.namespace = namespace
        self._backends: dict[Scope, StorageBackend] = {
            Scope.DURABLE: durable,
            Scope.TRANSIENT: transient if transient is not None else MemoryBackend(),
        }
        # full key -> serialized value that the medium refused
        self._overlay: dict[Scope, dict[str, str]] = {s: {} for s in Scope}
        self.write_failures: deque[WriteFailure] = deque(maxlen=self.MAX_RECORDED_FAILURES)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    @property
    def _prefix(self) -> str:
        return f"{self.namespace}:"

    def _strip(self, full_key: str) -> str:
        return full_key[len(self._prefix):]

    # ── Raw access ─────────────────────────────────────────

    def _write_raw(self, scope: Scope, full_key: str, raw: str) -> bool:
        try:
            self._backends[scope].set_item(full_key, raw)
        except StorageError as e:
            logger.error("Storage write failed (%s, key=%s): %s", scope.value, full_key, e)
            self.write_failures.append(WriteFailure(
                scope=scope,
                key=full_key,
                error=str(e),
                at=datetime.now(timezone.utc).isoformat(),
            ))
            self._overlay[scope][full_key] = raw
            return False
        self._overlay[scope].pop(full_key, None)
        return True

    def _read_raw(self, scope: Scope, full_key: str) -> str | None:
        if full_key in self._overlay[scope]:
            return self._overlay[scope][full_key]
        try:
            return self._backends[scope].get_item(full_key)
        except StorageError as e:
            logger.warning("Storage read failed (%s, key=%s): %s", scope.value, full_key, e)
            return None

    def _namespaced_keys(self, scope: Scope) -> list[str]:
        try:
            keys = set(self._backends[scope].keys(self._prefix))
        except StorageError as e:
            logger.warning("Storage key listing failed (%s): %s", scope.value, e)
            keys = set()
        keys.update(self._overlay[scope])
        return sorted(keys)

    # ── Public API ─────────────────────────────────────────

    def set(self, scope: Scope, key: str, value: Any) -> bool:
        """Store ``value``. Returns False when the medium refused the write."""
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error("Cannot serialize value for key=%s: %s", key, e)
            return False
        return self._write_raw(scope, self._key(key), raw)

    def get(self, scope: Scope, key: str, default: Any = None) -> Any:
        raw = self._read_raw(scope, self._key(key))
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt entry ignored (%s, key=%s): %s", scope.value, key, e)
            return default

    def remove(self, scope: Scope, key: str) -> None:
        full_key = self._key(key)
        self._overlay[scope].pop(full_key, None)
        try:
            self._backends[scope].remove_item(full_key)
        except StorageError as e:
            logger.error("Storage remove failed (%s, key=%s): %s", scope.value, full_key, e)

    def clear(self, scope: Scope) -> None:
        """Remove every key under this namespace; other keys are untouched."""
        for full_key in self._namespaced_keys(scope):
            self._overlay[scope].pop(full_key, None)
            try:
                self._backends[scope].remove_item(full_key)
            except StorageError as e:
                logger.error("Storage remove failed (%s, key=%s): %s", scope.value, full_key, e)

    def set_batch(self, items: Mapping[str, Any], scope: Scope = Scope.DURABLE) -> bool:
        results = [self.set(scope, key, value) for key, value in items.items()]
        return all(results)

    def get_batch(self, keys: list[str], scope: Scope = Scope.DURABLE) -> dict[str, Any]:
        return {key: self.get(scope, key) for key in keys}

    def degraded_keys(self, scope: Scope = Scope.DURABLE) -> list[str]:
        """Keys currently held only in memory because the medium refused them."""
        return sorted(self._strip(k) for k in self._overlay[scope])

    # ── Utility ────────────────────────────────────────────

    def is_available(self, scope: Scope = Scope.DURABLE) -> bool:
        backend = self._backends[scope]
        try:
            backend.set_item(_SENTINEL_KEY, "test")
            backend.remove_item(_SENTINEL_KEY)
            return True
        except StorageError:
            return False

    def size_bytes(self, scope: Scope = Scope.DURABLE) -> int:
        """UTF-8 size of every namespaced key plus its stored content."""
        backend = self._backends[scope]
        try:
            keys = backend.keys(self._prefix)
        except StorageError:
            return 0
        total = 0
        for full_key in keys:
            try:
                raw = backend.get_item(full_key)
            except StorageError:
                continue
            if raw is not None:
                total += len(full_key.encode("utf-8")) + len(raw.encode("utf-8"))
        return total

    # ── Export / Import ────────────────────────────────────

    def export_namespace(self) -> dict[str, Any]:
        """Every durable key of this namespace mapped to its decoded value."""
        data: dict[str, Any] = {}
        for full_key in self._namespaced_keys(Scope.DURABLE):
            raw = self._read_raw(Scope.DURABLE, full_key)
            if raw is None:
                continue
            try:
                data[self._strip(full_key)] = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Skipping corrupt entry during export: %s", full_key)
        return data

    @staticmethod
    def _encode_all(data: Mapping[str, Any]) -> dict[str, str] | None:
        encoded: dict[str, str] = {}
        for key, value in data.items():
            if not isinstance(key, str):
                return None
            try:
                encoded[key] = json.dumps(value)
            except (TypeError, ValueError):
                return None
        return encoded

    def import_namespace(self, snapshot: Mapping[str, Any] | str) -> bool:
        """Write every key of ``snapshot`` into the durable scope.

        Nothing is written unless the whole snapshot serializes; keys not in
        the snapshot are left alone.
        """
        if isinstance(snapshot, str):
            try:
                snapshot = json.loads(snapshot)
            except json.JSONDecodeError as e:
                logger.error("Error importing data: %s", e)
                return False
        if not isinstance(snapshot, Mapping):
            logger.error("Error importing data: expected an object, got %s", type(snapshot).__name__)
            return False

        encoded = self._encode_all(snapshot)
        if encoded is None:
            logger.error("Error importing data: snapshot is not serializable")
            return False

        results = [self._write_raw(Scope.DURABLE, self._key(k), raw) for k, raw in encoded.items()]
        return all(results)

    def create_backup(self) -> str:
        backup = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": BACKUP_VERSION,
            "data": self.export_namespace(),
        }
        return json.dumps(backup, indent=2)

    def restore_backup(self, backup: Mapping[str, Any] | str) -> bool:
        """Replace the durable namespace with ``backup['data']``.

        The wrapper is validated and every value encoded before anything is
        cleared, so a malformed backup leaves storage untouched.
        """
        if isinstance(backup, str):
            try:
                backup = json.loads(backup)
            except json.JSONDecodeError as e:
                logger.error("Error restoring backup: %s", e)
                return False
        if not isinstance(backup, Mapping) or not isinstance(backup.get("data"), Mapping):
            logger.error("Error restoring backup: invalid backup format")
            return False

        encoded = self._encode_all(backup["data"])
        if encoded is None:
            logger.error("Error restoring backup: backup data is not serializable")
            return False

        self.clear(Scope.DURABLE)
        results = [self._write_raw(Scope.DURABLE, self._key(k), raw) for k, raw in encoded.items()]
        logger.info("Restored %d keys from backup dated %s", len(encoded), backup.get("timestamp", "?"))
        return all(results)
