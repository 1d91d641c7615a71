"""Referential integrity: validation pass and cleanup pass.

Both passes work on plain ``{collection name: [entities]}`` mappings and
never touch storage; the Repository owns persistence.

Validation rules:
    ids:           non-empty, unique within a collection
    accounts:      role is one of ROLES
    foreign keys:  every reference in FOREIGN_KEYS resolves
    grade records: value >= 0, maxValue > 0, weight > 0 when present
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Mapping, Sequence

from models import (
    COLLECTIONS,
    COLLECTIONS_BY_NAME,
    FOREIGN_KEYS,
    ROLES,
    Account,
    Classroom,
    Entity,
    ForeignKey,
    GradeRecord,
)

logger = logging.getLogger(__name__)

ReassignPolicy = Callable[[Sequence[Account], Sequence[Classroom]], "str | None"]


@dataclass
class ValidationReport:
    ok: bool
    errors: list[str] = field(default_factory=list)


# ── Teacher fallback policies ──────────────────────────────

def first_teacher(accounts: Sequence[Account], classrooms: Sequence[Classroom]) -> str | None:
    """First account with the teacher role, in collection order."""
    for account in accounts:
        if account.role == "teacher":
            return account.id
    return None


def first_active_teacher(accounts: Sequence[Account], classrooms: Sequence[Classroom]) -> str | None:
    """First active teacher; any teacher when none is active."""
    for account in accounts:
        if account.role == "teacher" and account.status == "active":
            return account.id
    return first_teacher(accounts, classrooms)


def least_loaded_teacher(accounts: Sequence[Account], classrooms: Sequence[Classroom]) -> str | None:
    """Teacher owning the fewest classrooms; ties go to collection order."""
    load: dict[str, int] = {}
    for classroom in classrooms:
        if classroom.teacher_id:
            load[classroom.teacher_id] = load.get(classroom.teacher_id, 0) + 1
    teachers = [a.id for a in accounts if a.role == "teacher"]
    if not teachers:
        return None
    return min(teachers, key=lambda tid: load.get(tid, 0))


TEACHER_POLICIES: dict[str, ReassignPolicy] = {
    "first": first_teacher,
    "first_active": first_active_teacher,
    "least_loaded": least_loaded_teacher,
}


def get_teacher_policy(name: str) -> ReassignPolicy:
    try:
        return TEACHER_POLICIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown teacher fallback policy {name!r}; expected one of {sorted(TEACHER_POLICIES)}"
        ) from None


# ── Helpers ────────────────────────────────────────────────

def _wire_name(entity_cls: type, attr: str) -> str:
    for a, key, _ in entity_cls.wire_fields():
        if a == attr:
            return key
    return attr


def _role_problem(account: Account) -> str | None:
    if account.role is None:
        return "role is missing"
    if account.role not in ROLES:
        return f"role {account.role!r} is not one of {', '.join(ROLES)}"
    return None


def _grade_problems(record: GradeRecord) -> list[str]:
    problems = []
    if record.value is None:
        problems.append("value is missing")
    elif record.value < 0:
        problems.append(f"value must be >= 0 (got {record.value})")
    if record.max_value is None or record.max_value <= 0:
        problems.append(f"maxValue must be > 0 (got {record.max_value})")
    if record.weight is not None and record.weight <= 0:
        problems.append(f"weight must be > 0 when present (got {record.weight})")
    return problems


def _id_set(items: Sequence[Entity]) -> set[str]:
    return {e.id for e in items if e.id}


# ── Validation ─────────────────────────────────────────────

def _check_references(
    entity: Entity,
    where: str,
    fks: Sequence[ForeignKey],
    ids: Mapping[str, set[str]],
    errors: list[str],
) -> None:
    for fk in fks:
        target_label = COLLECTIONS_BY_NAME[fk.target].label
        name = _wire_name(type(entity), fk.attr)
        value = getattr(entity, fk.attr)
        if fk.many:
            for ref in value or ():
                if ref not in ids[fk.target]:
                    errors.append(f"{where}: {name} entry {ref!r} does not resolve in {target_label}")
        elif not value:
            errors.append(f"{where}: missing {name} reference")
        elif value not in ids[fk.target]:
            errors.append(f"{where}: {name} {value!r} does not resolve in {target_label}")


def validate_collections(collections: Mapping[str, Sequence[Entity]]) -> ValidationReport:
    """Check every invariant; collect one message per violation."""
    errors: list[str] = []
    ids = {spec.name: _id_set(collections.get(spec.name, ())) for spec in COLLECTIONS}

    for spec in COLLECTIONS:
        fks = [fk for fk in FOREIGN_KEYS if fk.source == spec.name]
        first_seen: dict[str, int] = {}
        for index, entity in enumerate(collections.get(spec.name, ())):
            where = f"{spec.label}[{index}]"
            try:
                if not entity.id:
                    errors.append(f"{where}: missing id")
                elif entity.id in first_seen:
                    errors.append(
                        f"{where}: duplicate id {entity.id!r} (first seen at index {first_seen[entity.id]})"
                    )
                else:
                    first_seen[entity.id] = index

                _check_references(entity, where, fks, ids, errors)

                if isinstance(entity, Account):
                    problem = _role_problem(entity)
                    if problem:
                        errors.append(f"{where}: {problem}")

                if isinstance(entity, GradeRecord):
                    errors.extend(f"{where}: {p}" for p in _grade_problems(entity))
            except Exception as e:
                errors.append(f"{where}: could not be checked: {e}")

    return ValidationReport(ok=not errors, errors=errors)


# ── Cleanup ────────────────────────────────────────────────

def cleanup_collections(
    collections: Mapping[str, Sequence[Entity]],
    reassign: ReassignPolicy = first_teacher,
) -> tuple[dict[str, list[Entity]], int]:
    """Repair or drop everything validate_collections would report.

    Returns the repaired collections and the number of repairs. Running it
    on its own output yields zero repairs.
    """
    result: dict[str, list[Entity]] = {
        spec.name: list(collections.get(spec.name, ())) for spec in COLLECTIONS
    }
    count = 0

    # Entities without a usable identity
    for spec in COLLECTIONS:
        kept: list[Entity] = []
        seen: set[str] = set()
        for entity in result[spec.name]:
            if not entity.id or entity.id in seen:
                logger.debug("Dropping %s entry with missing/duplicate id %r", spec.label, entity.id)
                count += 1
                continue
            seen.add(entity.id)
            kept.append(entity)
        result[spec.name] = kept

    # Accounts with an unknown role; references to them cascade below
    kept = []
    for account in result["accounts"]:
        if _role_problem(account):
            logger.debug("Dropping account %s with invalid role %r", account.id, account.role)
            count += 1
            continue
        kept.append(account)
    result["accounts"] = kept

    # Grade records that cannot be scored
    kept = []
    for record in result["grade_records"]:
        if _grade_problems(record):
            logger.debug("Dropping invalid grade record %s", record.id)
            count += 1
            continue
        kept.append(record)
    result["grade_records"] = kept

    # Foreign keys, in table order: classroom repairs happen before groups
    # are checked against the classroom ids.
    for fk in FOREIGN_KEYS:
        valid = _id_set(result[fk.target])
        repaired: list[Entity] = []
        source = result[fk.source]
        for index, entity in enumerate(source):
            value = getattr(entity, fk.attr)
            if fk.many:
                if value:
                    kept_refs = tuple(ref for ref in value if ref in valid)
                    if len(kept_refs) != len(value):
                        count += len(value) - len(kept_refs)
                        entity = replace(entity, **{fk.attr: kept_refs})
                repaired.append(entity)
            elif value and value in valid:
                repaired.append(entity)
            elif fk.on_dangling == "reassign":
                # policies see reassignments already made in this pass
                replacement = reassign(result["accounts"], repaired + source[index + 1:])
                count += 1
                if replacement is None:
                    logger.warning(
                        "No replacement for %s %s on %s; removing it", fk.attr, value, entity.id
                    )
                    continue
                logger.debug("Reassigning %s.%s %r -> %r", entity.id, fk.attr, value, replacement)
                repaired.append(replace(entity, **{fk.attr: replacement}))
            else:
                logger.debug("Dropping %s: %s %r does not resolve", entity.id, fk.attr, value)
                count += 1
        result[fk.source] = repaired

    return result, count
