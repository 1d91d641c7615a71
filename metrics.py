"""Derived academic metrics over grade and attendance records."""

from __future__ import annotations

from typing import Iterable

from models import AttendanceRecord, GradeRecord

PRESENT_STATUSES = ("present", "late")


def weighted_average(records: Iterable[GradeRecord], classroom_id: str | None = None) -> float:
    """Weighted average percentage of one student's grade records.

    Exempted records are ignored; a missing weight counts as 1. Records
    that cannot produce a percentage (no value, maxValue <= 0) are skipped.
    Returns 0.0 when nothing is left or the weights sum to zero.
    """
    total_score = 0.0
    total_weight = 0.0
    for record in records:
        if classroom_id is not None and record.classroom_id != classroom_id:
            continue
        if record.exempted:
            continue
        if record.value is None or not record.max_value or record.max_value <= 0:
            continue
        weight = 1 if record.weight is None else record.weight
        percentage = record.value / record.max_value * 100
        total_score += percentage * weight
        total_weight += weight

    if total_weight == 0:
        return 0.0
    return total_score / total_weight


def attendance_rate(records: Iterable[AttendanceRecord], classroom_id: str | None = None) -> float:
    """Percentage of sessions attended (present or late). 0.0 with no records."""
    total = 0
    attended = 0
    for record in records:
        if classroom_id is not None and record.classroom_id != classroom_id:
            continue
        total += 1
        if record.status in PRESENT_STATUSES:
            attended += 1
    if total == 0:
        return 0.0
    return attended / total * 100
