"""
Repository: the classroom store's seven collections, kept in step with
durable storage.

Collections are loaded from the KeyValueStore on construction (falling back
to the compiled defaults), exposed as live read-only views, and written back
by persist_all(), either explicitly, on every bulk operation, or from the
auto-sync job. Nothing here raises at runtime: outcomes are reported through
return values so the caller decides what to surface.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Iterator, TypeVar

from integrity import (
    ReassignPolicy,
    ValidationReport,
    cleanup_collections,
    first_teacher,
    validate_collections,
)
from kv_store import KeyValueStore, Scope
from metrics import attendance_rate, weighted_average
from models import (
    ATTENDANCE_STATUSES,
    COLLECTIONS,
    COLLECTIONS_BY_NAME,
    MARK_TYPES,
    NOTIFICATION_TYPES,
    POST_TYPES,
    Account,
    AttendanceRecord,
    Classroom,
    CollectionSpec,
    Entity,
    GradeRecord,
    Group,
    Notification,
    Post,
    ShapeError,
    dump_collection,
    parse_collection,
)
from scheduler import Scheduler
from seed_data import default_collections

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0.0"
AUTOSYNC_JOB_ID = "store_autosync"
DEFAULT_AUTOSYNC_SECONDS = 30

E = TypeVar("E", bound=Entity)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Collection(Generic[E]):
    """Live read-only view of one collection.

    The Repository swaps contents in place, so a reference held by a caller
    always reflects the current state.
    """

    def __init__(self, spec: CollectionSpec) -> None:
        self.spec = spec
        self._items: list[E] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[E]:
        return iter(tuple(self._items))

    def __getitem__(self, index: int) -> E:
        return self._items[index]

    def __repr__(self) -> str:
        return f"<Collection {self.spec.label} ({len(self._items)} items)>"

    def get(self, entity_id: str) -> E | None:
        for item in self._items:
            if item.id == entity_id:
                return item
        return None

    def ids(self) -> set[str]:
        return {item.id for item in self._items}

    def all(self) -> tuple[E, ...]:
        return tuple(self._items)

    def filter(self, predicate: Callable[[E], bool]) -> list[E]:
        return [item for item in self._items if predicate(item)]

    def to_list(self) -> list[dict]:
        return dump_collection(self._items)

    # Mutators are for the Repository only.

    def _replace(self, items: list[E]) -> None:
        self._items[:] = items

    def _index_of(self, entity_id: str) -> int | None:
        for index, item in enumerate(self._items):
            if item.id == entity_id:
                return index
        return None


@dataclass
class MutationResult:
    ok: bool
    entity: Entity | None = None
    error: str = ""


class Repository:
    """Owns the seven collections and their persistence lifecycle."""

    def __init__(
        self,
        store: KeyValueStore,
        scheduler: Scheduler | None = None,
        defaults: Callable[[], dict[str, list[Entity]]] = default_collections,
        autosync_seconds: float = DEFAULT_AUTOSYNC_SECONDS,
        teacher_policy: ReassignPolicy = first_teacher,
        owns_scheduler: bool = False,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.owns_scheduler = owns_scheduler
        self.autosync_seconds = autosync_seconds
        self.teacher_policy = teacher_policy
        self._defaults = defaults
        self._lock = threading.RLock()
        self._initialized = False
        self._collections: dict[str, Collection] = {
            spec.name: Collection(spec) for spec in COLLECTIONS
        }
        self.initialize()

    # ── Views ──────────────────────────────────────────────

    def collection(self, name: str) -> Collection:
        """View by collection name (``accounts``, ``grade_records``, ...)."""
        return self._collections[name]

    @property
    def accounts(self) -> Collection[Account]:
        return self._collections["accounts"]

    @property
    def classrooms(self) -> Collection[Classroom]:
        return self._collections["classrooms"]

    @property
    def groups(self) -> Collection[Group]:
        return self._collections["groups"]

    @property
    def posts(self) -> Collection[Post]:
        return self._collections["posts"]

    @property
    def grade_records(self) -> Collection[GradeRecord]:
        return self._collections["grade_records"]

    @property
    def attendance_records(self) -> Collection[AttendanceRecord]:
        return self._collections["attendance_records"]

    @property
    def notifications(self) -> Collection[Notification]:
        return self._collections["notifications"]

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _current(self) -> dict[str, tuple[Entity, ...]]:
        return {name: coll.all() for name, coll in self._collections.items()}

    # ── Lifecycle ──────────────────────────────────────────

    def initialize(self) -> None:
        """Load every collection (or its default) and start auto-sync. No-op if loaded."""
        with self._lock:
            if self._initialized:
                return
            defaults = self._defaults()
            for spec in COLLECTIONS:
                raw = self.store.get(Scope.DURABLE, spec.key)
                items = self._load_or_default(spec, raw, defaults[spec.name])
                self._collections[spec.name]._replace(items)
            self._initialized = True
        self.start()
        logger.info(
            "Repository initialized (%s)",
            ", ".join(f"{name}={len(coll)}" for name, coll in self._collections.items()),
        )

    @staticmethod
    def _load_or_default(spec: CollectionSpec, raw: Any, default: list[Entity]) -> list[Entity]:
        if raw is None:
            logger.info("%s not found in storage; using defaults", spec.label)
            return default
        try:
            return parse_collection(spec, raw)
        except ShapeError as e:
            logger.warning("Stored %s is malformed (%s); using defaults", spec.label, e)
            return default

    @property
    def _job_id(self) -> str:
        return f"{AUTOSYNC_JOB_ID}:{self.store.namespace}"

    @property
    def autosync_running(self) -> bool:
        return self.scheduler is not None and self.scheduler.has_job(self._job_id)

    def start(self) -> None:
        """Begin periodic persist_all() on the injected scheduler."""
        if self.scheduler is None or self.autosync_running:
            return
        self.scheduler.add_interval_job(self.persist_all, self.autosync_seconds, self._job_id)
        logger.debug("Auto-sync every %ss", self.autosync_seconds)

    def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.remove_job(self._job_id)

    def flush(self) -> None:
        """Host shutdown / suspend hook."""
        self.persist_all()

    def destroy(self) -> None:
        """Stop auto-sync and write everything one last time.

        A scheduler handed over with ``owns_scheduler=True`` is shut down too;
        a shared one only loses this repository's job.
        """
        self.stop()
        self.persist_all()
        if self.owns_scheduler and self.scheduler is not None:
            self.scheduler.shutdown()
        with self._lock:
            self._initialized = False

    # ── Persistence ────────────────────────────────────────

    def persist_all(self) -> int:
        """Write all collections. Returns how many were accepted by storage."""
        written = 0
        with self._lock:
            for spec in COLLECTIONS:
                if self.store.set(Scope.DURABLE, spec.key, self._collections[spec.name].to_list()):
                    written += 1
                else:
                    logger.warning("Could not persist %s; next sync will retry", spec.label)
        logger.debug("Persisted %d/%d collections", written, len(COLLECTIONS))
        return written

    def reset_to_defaults(self) -> None:
        with self._lock:
            self.store.clear(Scope.DURABLE)
            defaults = self._defaults()
            for spec in COLLECTIONS:
                self._collections[spec.name]._replace(defaults[spec.name])
            self.persist_all()
        logger.info("Data reset to defaults")

    def export_snapshot(self) -> str:
        with self._lock:
            data: dict[str, Any] = {
                spec.key: self._collections[spec.name].to_list() for spec in COLLECTIONS
            }
        data["exportedAt"] = _now()
        data["version"] = SNAPSHOT_VERSION
        return json.dumps(data, indent=2)

    def import_snapshot(self, text: str) -> bool:
        """Replace each collection present in ``text``; absent ones are kept.

        The whole document is decoded before anything changes, so a parse or
        shape error leaves the repository untouched.
        """
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error("Error importing data: %s", e)
            return False
        if not isinstance(data, dict):
            logger.error("Error importing data: expected a JSON object")
            return False

        parsed: dict[str, list[Entity]] = {}
        for spec in COLLECTIONS:
            if data.get(spec.key) is None:
                continue
            try:
                parsed[spec.name] = parse_collection(spec, data[spec.key])
            except ShapeError as e:
                logger.error("Error importing data: %s", e)
                return False

        with self._lock:
            for name, items in parsed.items():
                self._collections[name]._replace(items)
            self.persist_all()
        logger.info("Data imported successfully (%s)", ", ".join(parsed) or "nothing")
        return True

    # ── Mutations ──────────────────────────────────────────

    def add(self, name: str, entity: Entity | dict) -> MutationResult:
        spec = COLLECTIONS_BY_NAME[name]
        if isinstance(entity, dict):
            try:
                entity = spec.entity.from_dict(entity)
            except ShapeError as e:
                return MutationResult(ok=False, error=str(e))
        if not isinstance(entity, spec.entity):
            return MutationResult(ok=False, error=f"{spec.label} holds {spec.entity.__name__} entities")
        if not entity.id:
            return MutationResult(ok=False, error="id must not be empty")

        now = _now()
        entity = replace(
            entity,
            created_at=now if entity.created_at is None else entity.created_at,
            updated_at=now if entity.updated_at is None else entity.updated_at,
        )
        with self._lock:
            coll = self._collections[name]
            if coll._index_of(entity.id) is not None:
                return MutationResult(ok=False, error=f"duplicate id {entity.id!r} in {spec.label}")
            coll._replace([*coll.all(), entity])
        return MutationResult(ok=True, entity=entity)

    def update(self, name: str, entity_id: str, **changes: Any) -> MutationResult:
        spec = COLLECTIONS_BY_NAME[name]
        allowed = {f.name for f in fields(spec.entity)} - {"id"}
        unknown = sorted(set(changes) - allowed)
        if unknown:
            return MutationResult(ok=False, error=f"unknown fields for {spec.label}: {', '.join(unknown)}")
        changes.setdefault("updated_at", _now())
        try:
            changes = spec.entity.coerce_changes(changes)
        except ShapeError as e:
            return MutationResult(ok=False, error=str(e))

        with self._lock:
            coll = self._collections[name]
            index = coll._index_of(entity_id)
            if index is None:
                return MutationResult(ok=False, error=f"{entity_id!r} not found in {spec.label}")
            updated = replace(coll[index], **changes)
            items = list(coll.all())
            items[index] = updated
            coll._replace(items)
        return MutationResult(ok=True, entity=updated)

    def remove(self, name: str, entity_id: str) -> MutationResult:
        spec = COLLECTIONS_BY_NAME[name]
        with self._lock:
            coll = self._collections[name]
            index = coll._index_of(entity_id)
            if index is None:
                return MutationResult(ok=False, error=f"{entity_id!r} not found in {spec.label}")
            items = list(coll.all())
            removed = items.pop(index)
            coll._replace(items)
        return MutationResult(ok=True, entity=removed)

    # ── Integrity ──────────────────────────────────────────

    def validate(self) -> ValidationReport:
        with self._lock:
            current = self._current()
        try:
            return validate_collections(current)
        except Exception as e:
            logger.exception("Validation aborted")
            return ValidationReport(ok=False, errors=[f"Validation error: {e}"])

    def cleanup(self) -> int:
        """Repair dangling references. Returns the number of repairs made."""
        with self._lock:
            try:
                repaired, count = cleanup_collections(self._current(), self.teacher_policy)
            except Exception:
                logger.exception("Error during data cleanup")
                return 0
            if count:
                for name, items in repaired.items():
                    self._collections[name]._replace(items)
                self.persist_all()
                logger.info("Cleaned up %d orphaned references", count)
        return count

    # ── Statistics ─────────────────────────────────────────

    def stats(self) -> dict:
        with self._lock:
            accounts = self.accounts.all()
            classrooms = self.classrooms.all()
            groups = self.groups.all()
            posts = self.posts.all()
            grades = self.grade_records.all()
            attendance = self.attendance_records.all()
            notifications = self.notifications.all()

        def count(items, predicate) -> int:
            return sum(1 for item in items if predicate(item))

        unread = count(notifications, lambda n: not n.is_read)
        return {
            "accounts": {
                "total": len(accounts),
                "admins": count(accounts, lambda a: a.role == "admin"),
                "teachers": count(accounts, lambda a: a.role == "teacher"),
                "students": count(accounts, lambda a: a.role == "student"),
                "parents": count(accounts, lambda a: a.role == "parent"),
                "active": count(accounts, lambda a: a.status == "active"),
            },
            "classrooms": {
                "total": len(classrooms),
                "active": count(classrooms, lambda c: not c.is_archived),
                "archived": count(classrooms, lambda c: bool(c.is_archived)),
            },
            "groups": {
                "total": len(groups),
                "active": count(groups, lambda g: not g.is_archived),
                "archived": count(groups, lambda g: bool(g.is_archived)),
            },
            "posts": {
                "total": len(posts),
                "published": count(posts, lambda p: bool(p.is_published)),
                "by_type": {t: count(posts, lambda p, t=t: p.type == t) for t in POST_TYPES},
            },
            "grade_records": {
                "total": len(grades),
                "exempted": count(grades, lambda g: bool(g.exempted)),
                "by_type": {t: count(grades, lambda g, t=t: g.mark_type == t) for t in MARK_TYPES},
            },
            "attendance_records": {
                "total": len(attendance),
                **{s: count(attendance, lambda a, s=s: a.status == s) for s in ATTENDANCE_STATUSES},
            },
            "notifications": {
                "total": len(notifications),
                "unread": unread,
                "read": len(notifications) - unread,
                "by_type": {
                    t: count(notifications, lambda n, t=t: n.type == t) for t in NOTIFICATION_TYPES
                },
            },
            "storage": {
                "size": self.store.size_bytes(Scope.DURABLE),
                "available": self.store.is_available(Scope.DURABLE),
            },
        }

    # ── Relationship & search helpers ──────────────────────

    def classrooms_for_account(self, account_id: str) -> list[Classroom]:
        """Classrooms the account teaches or attends."""
        return self.classrooms.filter(
            lambda c: c.teacher_id == account_id or account_id in (c.student_ids or ())
        )

    def groups_for_account(self, account_id: str) -> list[Group]:
        return self.groups.filter(lambda g: account_id in (g.member_ids or ()))

    def classroom_students(self, classroom_id: str) -> list[Account]:
        classroom = self.classrooms.get(classroom_id)
        if classroom is None:
            return []
        enrolled = set(classroom.student_ids or ())
        return self.accounts.filter(lambda a: a.id in enrolled)

    def search_accounts(self, query: str, role: str | None = None) -> list[Account]:
        term = query.lower()

        def matches(a: Account) -> bool:
            if role is not None and a.role != role:
                return False
            return any(term in (v or "").lower() for v in (a.first_name, a.last_name, a.email))

        return self.accounts.filter(matches)

    def search_classrooms(self, query: str) -> list[Classroom]:
        term = query.lower()
        return self.classrooms.filter(
            lambda c: any(term in (v or "").lower() for v in (c.title, c.field, c.teacher_name))
        )

    def grade_records_for(self, student_id: str, classroom_id: str | None = None) -> list[GradeRecord]:
        return self.grade_records.filter(
            lambda g: g.student_id == student_id
            and (classroom_id is None or g.classroom_id == classroom_id)
        )

    def student_average(self, student_id: str, classroom_id: str | None = None) -> float:
        return weighted_average(self.grade_records_for(student_id), classroom_id)

    def attendance_rate(self, student_id: str | None = None, classroom_id: str | None = None) -> float:
        records = self.attendance_records.filter(
            lambda a: student_id is None or a.student_id == student_id
        )
        return attendance_rate(records, classroom_id)

    def notifications_for(self, recipient_id: str, unread_only: bool = False) -> list[Notification]:
        return self.notifications.filter(
            lambda n: n.recipient_id == recipient_id and not (unread_only and n.is_read)
        )
