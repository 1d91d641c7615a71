"""Entity types for the classroom store and their JSON wire format.

Each entity is a frozen dataclass. ``WIRE`` lists the modelled fields as
(attribute, json key, kind) triples; anything else in a stored document is
carried through untouched in ``extra`` so documents survive a load/persist
cycle unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, Union

Timestamp = Union[str, int, float, None]

ROLES = ("admin", "teacher", "student", "parent")
ACCOUNT_STATUSES = ("active", "inactive", "pending", "suspended")
POST_TYPES = ("announcement", "homework", "quiz", "poll", "material")
MARK_TYPES = ("exam", "homework", "quiz", "participation", "project")
ATTENDANCE_STATUSES = ("present", "absent", "late", "excused")
NOTIFICATION_TYPES = ("info", "success", "warning", "error", "announcement")


class ShapeError(ValueError):
    """A stored or imported document does not have the expected field shapes."""


# ── Field coercion ─────────────────────────────────────────

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _coerce(kind: str, key: str, value: Any) -> Any:
    if value is None:
        return None
    if kind == "str":
        if not isinstance(value, str):
            raise ShapeError(f"{key}: expected string, got {type(value).__name__}")
        return value
    if kind == "refs":
        if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
            raise ShapeError(f"{key}: expected list of strings")
        return tuple(value)
    if kind == "number":
        if not _is_number(value):
            raise ShapeError(f"{key}: expected number, got {type(value).__name__}")
        return value
    if kind == "bool":
        if not isinstance(value, bool):
            raise ShapeError(f"{key}: expected boolean, got {type(value).__name__}")
        return value
    if kind == "time":
        if not (isinstance(value, str) or _is_number(value)):
            raise ShapeError(f"{key}: expected timestamp, got {type(value).__name__}")
        return value
    raise ValueError(f"Unknown field kind: {kind}")


def _emit(kind: str, value: Any) -> Any:
    return list(value) if kind == "refs" else value


# ── Entities ───────────────────────────────────────────────

@dataclass(frozen=True)
class Entity:
    id: str
    created_at: Timestamp = None
    updated_at: Timestamp = None
    extra: dict = field(default_factory=dict, repr=False)

    BASE_WIRE: ClassVar[tuple] = (
        ("id", "id", "str"),
        ("created_at", "createdAt", "time"),
        ("updated_at", "updatedAt", "time"),
    )
    WIRE: ClassVar[tuple] = ()

    @classmethod
    def wire_fields(cls) -> tuple:
        return cls.BASE_WIRE + cls.WIRE

    @classmethod
    def from_dict(cls, data: Any) -> Entity:
        if not isinstance(data, dict):
            raise ShapeError(f"{cls.__name__}: expected object, got {type(data).__name__}")
        if "id" not in data:
            raise ShapeError(f"{cls.__name__}: missing id")
        kwargs: dict[str, Any] = {}
        known = set()
        for attr, key, kind in cls.wire_fields():
            known.add(key)
            if key in data:
                kwargs[attr] = _coerce(kind, key, data[key])
        if kwargs.get("id") is None:
            raise ShapeError(f"{cls.__name__}: id must be a string")
        kwargs["extra"] = {k: v for k, v in data.items() if k not in known}
        return cls(**kwargs)

    @classmethod
    def coerce_changes(cls, changes: dict[str, Any]) -> dict[str, Any]:
        """Shape-check attribute updates the same way from_dict checks wire fields."""
        kinds = {attr: (key, kind) for attr, key, kind in cls.wire_fields()}
        coerced: dict[str, Any] = {}
        for attr, value in changes.items():
            if attr == "extra":
                if not isinstance(value, dict):
                    raise ShapeError(f"extra: expected object, got {type(value).__name__}")
                coerced[attr] = value
                continue
            key, kind = kinds[attr]
            coerced[attr] = _coerce(kind, key, value)
        return coerced

    def to_dict(self) -> dict:
        out = dict(self.extra)
        for attr, key, kind in self.wire_fields():
            value = getattr(self, attr)
            if value is not None:
                out[key] = _emit(kind, value)
        return out


@dataclass(frozen=True)
class Account(Entity):
    role: str | None = None
    status: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None

    WIRE: ClassVar[tuple] = (
        ("role", "role", "str"),
        ("status", "status", "str"),
        ("first_name", "firstName", "str"),
        ("last_name", "lastName", "str"),
        ("email", "email", "str"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


@dataclass(frozen=True)
class Classroom(Entity):
    teacher_id: str | None = None
    student_ids: tuple[str, ...] | None = None
    title: str | None = None
    field: str | None = None
    teacher_name: str | None = None
    is_archived: bool | None = None

    WIRE: ClassVar[tuple] = (
        ("teacher_id", "teacher", "str"),
        ("student_ids", "students", "refs"),
        ("title", "title", "str"),
        ("field", "field", "str"),
        ("teacher_name", "teacherName", "str"),
        ("is_archived", "isArchived", "bool"),
    )


@dataclass(frozen=True)
class Group(Entity):
    member_ids: tuple[str, ...] | None = None
    classroom_ids: tuple[str, ...] | None = None
    title: str | None = None
    is_archived: bool | None = None

    WIRE: ClassVar[tuple] = (
        ("member_ids", "members", "refs"),
        ("classroom_ids", "classrooms", "refs"),
        ("title", "title", "str"),
        ("is_archived", "isArchived", "bool"),
    )


@dataclass(frozen=True)
class Post(Entity):
    author_id: str | None = None
    type: str | None = None
    title: str | None = None
    is_published: bool | None = None
    classroom_id: str | None = None

    WIRE: ClassVar[tuple] = (
        ("author_id", "author", "str"),
        ("type", "type", "str"),
        ("title", "title", "str"),
        ("is_published", "isPublished", "bool"),
        ("classroom_id", "classroom", "str"),
    )


@dataclass(frozen=True)
class GradeRecord(Entity):
    student_id: str | None = None
    classroom_id: str | None = None
    subject: str | None = None
    mark_type: str | None = None
    value: float | None = None
    max_value: float | None = None
    weight: float | None = None
    exempted: bool | None = None

    WIRE: ClassVar[tuple] = (
        ("student_id", "student", "str"),
        ("classroom_id", "classroom", "str"),
        ("subject", "subject", "str"),
        ("mark_type", "markType", "str"),
        ("value", "value", "number"),
        ("max_value", "maxValue", "number"),
        ("weight", "weight", "number"),
        ("exempted", "isExempted", "bool"),
    )


@dataclass(frozen=True)
class AttendanceRecord(Entity):
    student_id: str | None = None
    classroom_id: str | None = None
    status: str | None = None
    date: Timestamp = None

    WIRE: ClassVar[tuple] = (
        ("student_id", "student", "str"),
        ("classroom_id", "classroom", "str"),
        ("status", "status", "str"),
        ("date", "date", "time"),
    )


@dataclass(frozen=True)
class Notification(Entity):
    recipient_id: str | None = None
    title: str | None = None
    type: str | None = None
    is_read: bool | None = None

    WIRE: ClassVar[tuple] = (
        ("recipient_id", "recipient", "str"),
        ("title", "title", "str"),
        ("type", "type", "str"),
        ("is_read", "isRead", "bool"),
    )


# ── Collection registry ────────────────────────────────────

@dataclass(frozen=True)
class CollectionSpec:
    name: str          # attribute / stats name
    label: str         # human-readable, used in validation messages
    key: str           # storage key and snapshot field
    entity: type


COLLECTIONS: tuple[CollectionSpec, ...] = (
    CollectionSpec("accounts", "Accounts", "accounts", Account),
    CollectionSpec("classrooms", "Classrooms", "classrooms", Classroom),
    CollectionSpec("groups", "Groups", "groups", Group),
    CollectionSpec("posts", "Posts", "posts", Post),
    CollectionSpec("grade_records", "GradeRecords", "gradeRecords", GradeRecord),
    CollectionSpec("attendance_records", "AttendanceRecords", "attendanceRecords", AttendanceRecord),
    CollectionSpec("notifications", "Notifications", "notifications", Notification),
)

COLLECTIONS_BY_NAME: dict[str, CollectionSpec] = {c.name: c for c in COLLECTIONS}


@dataclass(frozen=True)
class ForeignKey:
    """``source.attr`` must hold ids of ``target`` entities.

    on_dangling: "reassign" (pick a replacement), "strip" (drop the id from
    the array) or "delete" (drop the owning entity).
    """
    source: str
    attr: str
    target: str
    many: bool
    on_dangling: str


FOREIGN_KEYS: tuple[ForeignKey, ...] = (
    ForeignKey("classrooms", "teacher_id", "accounts", many=False, on_dangling="reassign"),
    ForeignKey("classrooms", "student_ids", "accounts", many=True, on_dangling="strip"),
    ForeignKey("groups", "member_ids", "accounts", many=True, on_dangling="strip"),
    ForeignKey("groups", "classroom_ids", "classrooms", many=True, on_dangling="strip"),
    ForeignKey("posts", "author_id", "accounts", many=False, on_dangling="delete"),
    ForeignKey("grade_records", "student_id", "accounts", many=False, on_dangling="delete"),
    ForeignKey("attendance_records", "student_id", "accounts", many=False, on_dangling="delete"),
    ForeignKey("notifications", "recipient_id", "accounts", many=False, on_dangling="delete"),
)


def parse_collection(spec: CollectionSpec, raw: Any) -> list[Entity]:
    """Decode a stored list of documents; raises ShapeError on any mismatch."""
    if not isinstance(raw, list):
        raise ShapeError(f"{spec.label}: expected a list, got {type(raw).__name__}")
    items = []
    for index, doc in enumerate(raw):
        try:
            items.append(spec.entity.from_dict(doc))
        except ShapeError as e:
            raise ShapeError(f"{spec.label}[{index}]: {e}") from e
    return items


def dump_collection(items: Iterable[Entity]) -> list[dict]:
    return [item.to_dict() for item in items]
