"""Tests for integrity.py: validation messages, cleanup repairs, teacher policies."""

from __future__ import annotations

from dataclasses import replace

import pytest

from integrity import (
    TEACHER_POLICIES,
    cleanup_collections,
    first_active_teacher,
    first_teacher,
    get_teacher_policy,
    least_loaded_teacher,
    validate_collections,
)
from models import Account, Classroom, GradeRecord
from seed_data import default_collections


@pytest.fixture
def data():
    return default_collections()


def _drop(data, name, entity_id):
    data[name] = [e for e in data[name] if e.id != entity_id]


class TestValidation:
    def test_defaults_are_valid(self, data):
        report = validate_collections(data)
        assert report.ok, report.errors
        assert report.errors == []

    def test_dangling_teacher(self, data):
        _drop(data, "accounts", "teacher-002")
        report = validate_collections(data)
        assert not report.ok
        assert "Classrooms[2]: teacher 'teacher-002' does not resolve in Accounts" in report.errors
        # teacher-002 also authored post-003
        assert any(e.startswith("Posts[2]: author") for e in report.errors)

    def test_missing_single_reference(self, data):
        data["posts"][0] = replace(data["posts"][0], author_id=None)
        report = validate_collections(data)
        assert report.errors == ["Posts[0]: missing author reference"]

    def test_dangling_array_entries(self, data):
        data["groups"][0] = replace(data["groups"][0], member_ids=("student-001", "ghost"))
        report = validate_collections(data)
        assert report.errors == [
            "Groups[0]: members entry 'ghost' does not resolve in Accounts"
        ]

    def test_group_classroom_reference(self, data):
        _drop(data, "classrooms", "classroom-003")
        report = validate_collections(data)
        assert "Groups[1]: classrooms entry 'classroom-003' does not resolve in Classrooms" in report.errors

    def test_duplicate_and_empty_ids(self, data):
        data["posts"].append(replace(data["posts"][0]))
        data["posts"].append(replace(data["posts"][1], id=""))
        report = validate_collections(data)
        assert "Posts[3]: duplicate id 'post-001' (first seen at index 0)" in report.errors
        assert "Posts[4]: missing id" in report.errors

    def test_grade_value_rules(self, data):
        data["grade_records"][0] = replace(data["grade_records"][0], value=-1)
        data["grade_records"][1] = replace(data["grade_records"][1], max_value=0, weight=0)
        data["grade_records"][2] = replace(data["grade_records"][2], value=None)
        errors = validate_collections(data).errors
        assert "GradeRecords[0]: value must be >= 0 (got -1)" in errors
        assert "GradeRecords[1]: maxValue must be > 0 (got 0)" in errors
        assert "GradeRecords[1]: weight must be > 0 when present (got 0)" in errors
        assert "GradeRecords[2]: value is missing" in errors

    def test_unexpected_entity_state_is_reported_not_raised(self, data):
        data["grade_records"].append(GradeRecord(
            id="weird", student_id="student-001", value="abc", max_value=20,
        ))
        report = validate_collections(data)
        assert not report.ok
        assert any("GradeRecords[6]: could not be checked" in e for e in report.errors)

    def test_does_not_mutate_input(self, data):
        _drop(data, "accounts", "teacher-001")
        before = {name: list(items) for name, items in data.items()}
        validate_collections(data)
        assert data == before

    def test_missing_collections_treated_as_empty(self):
        assert validate_collections({}).ok

    def test_account_roles(self, data):
        data["accounts"].append(Account(id="x-1", role="janitor"))
        data["accounts"].append(Account(id="x-2"))
        errors = validate_collections(data).errors
        assert errors == [
            "Accounts[10]: role 'janitor' is not one of admin, teacher, student, parent",
            "Accounts[11]: role is missing",
        ]


class TestCleanup:
    def test_clean_data_needs_no_repairs(self, data):
        repaired, count = cleanup_collections(data)
        assert count == 0
        assert repaired == data

    def test_reassigns_dangling_teacher(self, data):
        _drop(data, "accounts", "teacher-002")
        repaired, count = cleanup_collections(data)
        classroom = next(c for c in repaired["classrooms"] if c.id == "classroom-003")
        assert classroom.teacher_id == "teacher-001"
        # teacher reassignment + post-003 removed
        assert count == 2
        assert [p.id for p in repaired["posts"]] == ["post-001", "post-002"]

    def test_strips_one_repair_per_dangling_id(self, data):
        _drop(data, "accounts", "student-003")
        repaired, count = cleanup_collections(data)
        # classroom-002, classroom-003, group-001, group-002 lose the id;
        # mark-004, attendance-004, attendance-005 are dropped
        assert count == 7
        for classroom in repaired["classrooms"]:
            assert "student-003" not in classroom.student_ids
        for group in repaired["groups"]:
            assert "student-003" not in group.member_ids
        assert "mark-004" not in {g.id for g in repaired["grade_records"]}
        assert {a.id for a in repaired["attendance_records"]} == {
            "attendance-001", "attendance-002", "attendance-003",
        }

    def test_deletes_owned_records(self, data):
        _drop(data, "accounts", "student-001")
        repaired, _ = cleanup_collections(data)
        assert all(g.student_id != "student-001" for g in repaired["grade_records"])
        assert all(n.recipient_id != "student-001" for n in repaired["notifications"])

    def test_drops_bad_ids_and_grades(self, data):
        data["posts"].append(replace(data["posts"][0]))
        data["posts"].append(replace(data["posts"][1], id=""))
        data["grade_records"][0] = replace(data["grade_records"][0], max_value=0)
        repaired, count = cleanup_collections(data)
        assert count == 3
        assert [p.id for p in repaired["posts"]] == ["post-001", "post-002", "post-003"]
        assert "mark-001" not in {g.id for g in repaired["grade_records"]}

    def test_classroom_without_any_teacher_is_removed(self, data):
        for teacher in ("teacher-001", "teacher-002"):
            _drop(data, "accounts", teacher)
        repaired, _ = cleanup_collections(data)
        assert repaired["classrooms"] == []
        assert all(g.classroom_ids == () for g in repaired["groups"])
        assert repaired["posts"] == []
        assert validate_collections(repaired).ok

    def test_cleanup_is_idempotent(self, data):
        _drop(data, "accounts", "teacher-002")
        _drop(data, "accounts", "student-002")
        _drop(data, "classrooms", "classroom-001")
        data["groups"][1] = replace(data["groups"][1], member_ids=("nobody",))
        repaired, count = cleanup_collections(data)
        assert count > 0
        assert validate_collections(repaired).ok

        again, second = cleanup_collections(repaired)
        assert second == 0
        assert again == repaired

    def test_input_left_untouched(self, data):
        _drop(data, "accounts", "student-001")
        before = {name: list(items) for name, items in data.items()}
        cleanup_collections(data)
        assert data == before

    def test_drops_accounts_with_unknown_role(self, data):
        data["accounts"] = [
            replace(a, role="janitor") if a.id == "student-004" else a for a in data["accounts"]
        ]
        repaired, count = cleanup_collections(data)
        assert "student-004" not in {a.id for a in repaired["accounts"]}
        # the account, its enrolment, its group membership and mark-005
        assert count == 4
        assert validate_collections(repaired).ok
        assert cleanup_collections(repaired)[1] == 0

    def test_least_loaded_spreads_dangling_classrooms(self):
        data = {
            "accounts": [
                Account(id="t1", role="teacher", status="active"),
                Account(id="t2", role="teacher", status="active"),
            ],
            "classrooms": [Classroom(id=f"c{i}", teacher_id="gone") for i in range(4)],
        }
        repaired, count = cleanup_collections(data, reassign=least_loaded_teacher)
        assert count == 4
        assert [c.teacher_id for c in repaired["classrooms"]] == ["t1", "t2", "t1", "t2"]

    def test_least_loaded_counts_existing_classrooms(self):
        data = {
            "accounts": [
                Account(id="t1", role="teacher"),
                Account(id="t2", role="teacher"),
            ],
            "classrooms": [
                Classroom(id="c0", teacher_id="t1"),
                Classroom(id="c1", teacher_id="t1"),
                Classroom(id="c2", teacher_id="gone"),
                Classroom(id="c3", teacher_id="gone"),
                Classroom(id="c4", teacher_id="gone"),
            ],
        }
        repaired, _ = cleanup_collections(data, reassign=least_loaded_teacher)
        assert [c.teacher_id for c in repaired["classrooms"]] == ["t1", "t1", "t2", "t2", "t1"]

    def test_custom_policy_is_used(self, data):
        _drop(data, "accounts", "teacher-002")
        policy_calls = []

        def policy(accounts, classrooms):
            policy_calls.append(len(accounts))
            return "admin-001"

        repaired, _ = cleanup_collections(data, reassign=policy)
        assert policy_calls
        assert next(c for c in repaired["classrooms"] if c.id == "classroom-003").teacher_id == "admin-001"


class TestTeacherPolicies:
    accounts = [
        Account(id="t-inactive", role="teacher", status="inactive"),
        Account(id="t-busy", role="teacher", status="active"),
        Account(id="t-free", role="teacher", status="active"),
        Account(id="s1", role="student", status="active"),
    ]
    classrooms = [
        Classroom(id="c1", teacher_id="t-inactive"),
        Classroom(id="c2", teacher_id="t-busy"),
        Classroom(id="c3", teacher_id="t-busy"),
        Classroom(id="c4", teacher_id="t-free"),
    ]

    def test_first(self):
        assert first_teacher(self.accounts, self.classrooms) == "t-inactive"

    def test_first_active(self):
        assert first_active_teacher(self.accounts, self.classrooms) == "t-busy"

    def test_first_active_falls_back_to_any_teacher(self):
        accounts = [Account(id="t", role="teacher", status="inactive")]
        assert first_active_teacher(accounts, []) == "t"

    def test_least_loaded(self):
        assert least_loaded_teacher(self.accounts, self.classrooms) == "t-inactive"

    def test_least_loaded_ignores_non_teachers(self):
        classrooms = [Classroom(id="c", teacher_id="t-inactive")]
        assert least_loaded_teacher(self.accounts, classrooms) == "t-busy"

    def test_no_teacher(self):
        students = [Account(id="s", role="student")]
        for policy in TEACHER_POLICIES.values():
            assert policy(students, []) is None

    def test_lookup(self):
        assert get_teacher_policy("least_loaded") is least_loaded_teacher
        with pytest.raises(ValueError, match="Unknown teacher fallback policy"):
            get_teacher_policy("random")
