"""
Default dataset: compiled fallback for every collection.

Used when a collection is missing or unreadable in durable storage, and by
Repository.reset_to_defaults(). The documents are in wire format; call
default_collections() for freshly parsed entities.
"""

from __future__ import annotations

import copy

from models import COLLECTIONS, Entity, parse_collection

DEFAULT_ACCOUNTS = [
    {"id": "admin-001", "firstName": "Sarah", "lastName": "Patel",
     "email": "sarah.patel@demo.school", "role": "admin", "status": "active",
     "permissions": ["manage_users", "manage_classes", "system_settings"],
     "createdAt": "2024-01-15T00:00:00Z", "updatedAt": "2024-11-20T00:00:00Z"},
    {"id": "admin-002", "firstName": "Omar", "lastName": "Haddad",
     "email": "omar.haddad@demo.school", "role": "admin", "status": "active",
     "permissions": ["manage_users", "manage_classes"],
     "createdAt": "2024-02-10T00:00:00Z", "updatedAt": "2024-11-19T00:00:00Z"},
    {"id": "teacher-001", "firstName": "Karim", "lastName": "Mansour",
     "email": "karim.mansour@demo.school", "role": "teacher", "status": "active",
     "subjects": ["Mathematics", "Physics"], "yearsOfExperience": 8,
     "createdAt": "2024-01-20T00:00:00Z", "updatedAt": "2024-11-18T00:00:00Z"},
    {"id": "teacher-002", "firstName": "Lena", "lastName": "Schmidt",
     "email": "lena.schmidt@demo.school", "role": "teacher", "status": "active",
     "subjects": ["Literature"], "yearsOfExperience": 5,
     "createdAt": "2024-02-01T00:00:00Z", "updatedAt": "2024-11-15T00:00:00Z"},
    {"id": "student-001", "firstName": "Alice", "lastName": "Chen",
     "email": "alice.chen@demo.school", "role": "student", "status": "active",
     "grade": "11", "guardians": ["parent-001"],
     "createdAt": "2024-09-01T00:00:00Z", "updatedAt": "2024-11-20T00:00:00Z"},
    {"id": "student-002", "firstName": "Bob", "lastName": "Tanaka",
     "email": "bob.tanaka@demo.school", "role": "student", "status": "active",
     "grade": "11", "guardians": ["parent-002"],
     "createdAt": "2024-09-01T00:00:00Z", "updatedAt": "2024-11-19T00:00:00Z"},
    {"id": "student-003", "firstName": "Clara", "lastName": "Rossi",
     "email": "clara.rossi@demo.school", "role": "student", "status": "active",
     "grade": "12", "guardians": [],
     "createdAt": "2024-09-01T00:00:00Z", "updatedAt": "2024-11-12T00:00:00Z"},
    {"id": "student-004", "firstName": "David", "lastName": "Kim",
     "email": "david.kim@demo.school", "role": "student", "status": "pending",
     "grade": "12", "guardians": [],
     "createdAt": "2024-10-05T00:00:00Z", "updatedAt": "2024-10-05T00:00:00Z"},
    {"id": "parent-001", "firstName": "Mei", "lastName": "Chen",
     "email": "mei.chen@example.com", "role": "parent", "status": "active",
     "children": ["student-001"], "relationship": "mother",
     "createdAt": "2024-09-02T00:00:00Z", "updatedAt": "2024-11-01T00:00:00Z"},
    {"id": "parent-002", "firstName": "Hiro", "lastName": "Tanaka",
     "email": "hiro.tanaka@example.com", "role": "parent", "status": "inactive",
     "children": ["student-002"], "relationship": "father",
     "createdAt": "2024-09-02T00:00:00Z", "updatedAt": "2024-10-20T00:00:00Z"},
]

DEFAULT_CLASSROOMS = [
    {"id": "classroom-001", "title": "Advanced Algebra", "field": "Mathematics",
     "level": "High School", "teacher": "teacher-001", "teacherName": "Karim Mansour",
     "students": ["student-001", "student-002"], "isArchived": False,
     "price": 3000, "mode": "monthly",
     "schedule": [{"day": "Monday", "startTime": "14:00", "endTime": "16:00"}],
     "createdAt": "2024-09-01T00:00:00Z", "updatedAt": "2024-11-15T00:00:00Z"},
    {"id": "classroom-002", "title": "Physics Fundamentals", "field": "Physics",
     "level": "High School", "teacher": "teacher-001", "teacherName": "Karim Mansour",
     "students": ["student-002", "student-003"], "isArchived": False,
     "price": 3500, "mode": "monthly",
     "schedule": [{"day": "Wednesday", "startTime": "10:00", "endTime": "12:00"}],
     "createdAt": "2024-09-01T00:00:00Z", "updatedAt": "2024-11-10T00:00:00Z"},
    {"id": "classroom-003", "title": "Modern Literature", "field": "Literature",
     "level": "High School", "teacher": "teacher-002", "teacherName": "Lena Schmidt",
     "students": ["student-003", "student-004"], "isArchived": True,
     "price": 2500, "mode": "sessional",
     "schedule": [{"day": "Thursday", "startTime": "09:00", "endTime": "11:00"}],
     "createdAt": "2024-02-01T00:00:00Z", "updatedAt": "2024-06-30T00:00:00Z"},
]

DEFAULT_GROUPS = [
    {"id": "group-001", "title": "Science Track", "field": "Sciences",
     "level": "High School", "members": ["student-001", "student-002", "student-003"],
     "classrooms": ["classroom-001", "classroom-002"], "isArchived": False,
     "createdAt": "2024-09-01T00:00:00Z", "updatedAt": "2024-11-01T00:00:00Z"},
    {"id": "group-002", "title": "Humanities Club", "field": "Humanities",
     "level": "High School", "members": ["student-003", "student-004"],
     "classrooms": ["classroom-003"], "isArchived": True,
     "createdAt": "2024-02-01T00:00:00Z", "updatedAt": "2024-06-30T00:00:00Z"},
]

DEFAULT_POSTS = [
    {"id": "post-001", "author": "teacher-001", "authorName": "Karim Mansour",
     "classroom": "classroom-001", "type": "announcement",
     "title": "Midterm schedule", "content": "The midterm exam is on November 15.",
     "isPublished": True, "allowComments": True,
     "createdAt": "2024-11-01T00:00:00Z", "updatedAt": "2024-11-01T00:00:00Z"},
    {"id": "post-002", "author": "teacher-001", "authorName": "Karim Mansour",
     "classroom": "classroom-002", "type": "homework",
     "title": "Newton's laws problem set", "content": "Exercises 1 to 12.",
     "dueDate": "2024-11-22T00:00:00Z", "isPublished": True, "allowComments": False,
     "createdAt": "2024-11-08T00:00:00Z", "updatedAt": "2024-11-08T00:00:00Z"},
    {"id": "post-003", "author": "teacher-002", "authorName": "Lena Schmidt",
     "classroom": "classroom-003", "type": "material",
     "title": "Reading list", "content": "Draft reading list for next term.",
     "isPublished": False, "allowComments": True,
     "createdAt": "2024-06-01T00:00:00Z", "updatedAt": "2024-06-01T00:00:00Z"},
]

DEFAULT_GRADE_RECORDS = [
    {"id": "mark-001", "student": "student-001", "studentName": "Alice Chen",
     "classroom": "classroom-001", "subject": "Advanced Algebra", "markType": "exam",
     "value": 17, "maxValue": 20, "date": "2024-11-15T00:00:00Z",
     "description": "Midterm on quadratic equations", "isExempted": False, "weight": 2,
     "createdAt": "2024-11-15T00:00:00Z", "updatedAt": "2024-11-15T00:00:00Z"},
    {"id": "mark-002", "student": "student-001", "studentName": "Alice Chen",
     "classroom": "classroom-001", "subject": "Advanced Algebra", "markType": "homework",
     "value": 18, "maxValue": 20, "date": "2024-11-10T00:00:00Z",
     "description": "Polynomial functions problem set", "isExempted": False, "weight": 1,
     "createdAt": "2024-11-10T00:00:00Z", "updatedAt": "2024-11-10T00:00:00Z"},
    {"id": "mark-003", "student": "student-002", "studentName": "Bob Tanaka",
     "classroom": "classroom-002", "subject": "Physics", "markType": "quiz",
     "value": 15, "maxValue": 20, "date": "2024-11-12T00:00:00Z",
     "description": "Quiz on Newton's laws", "isExempted": False, "weight": 1,
     "createdAt": "2024-11-12T00:00:00Z", "updatedAt": "2024-11-12T00:00:00Z"},
    {"id": "mark-004", "student": "student-003", "studentName": "Clara Rossi",
     "classroom": "classroom-003", "subject": "Modern Literature", "markType": "participation",
     "value": 19, "maxValue": 20, "date": "2024-05-18T00:00:00Z",
     "description": "Poetry analysis discussion", "isExempted": False, "weight": 0.5,
     "createdAt": "2024-05-18T00:00:00Z", "updatedAt": "2024-05-18T00:00:00Z"},
    {"id": "mark-005", "student": "student-004", "studentName": "David Kim",
     "classroom": "classroom-003", "subject": "Modern Literature", "markType": "project",
     "value": 16, "maxValue": 20, "date": "2024-06-20T00:00:00Z",
     "description": "Author study project", "isExempted": False, "weight": 3,
     "createdAt": "2024-06-20T00:00:00Z", "updatedAt": "2024-06-20T00:00:00Z"},
    {"id": "mark-006", "student": "student-002", "studentName": "Bob Tanaka",
     "classroom": "classroom-002", "subject": "Physics", "markType": "exam",
     "value": 0, "maxValue": 20, "date": "2024-11-14T00:00:00Z",
     "description": "Thermodynamics exam (medical leave)", "isExempted": True, "weight": 2,
     "createdAt": "2024-11-14T00:00:00Z", "updatedAt": "2024-11-14T00:00:00Z"},
]

DEFAULT_ATTENDANCE_RECORDS = [
    {"id": "attendance-001", "student": "student-001", "studentName": "Alice Chen",
     "classroom": "classroom-001", "date": "2024-11-11T00:00:00Z", "status": "present",
     "notes": "", "createdAt": "2024-11-11T00:00:00Z", "updatedAt": "2024-11-11T00:00:00Z"},
    {"id": "attendance-002", "student": "student-002", "studentName": "Bob Tanaka",
     "classroom": "classroom-001", "date": "2024-11-11T00:00:00Z", "status": "late",
     "notes": "Arrived 10 minutes late",
     "createdAt": "2024-11-11T00:00:00Z", "updatedAt": "2024-11-11T00:00:00Z"},
    {"id": "attendance-003", "student": "student-002", "studentName": "Bob Tanaka",
     "classroom": "classroom-002", "date": "2024-11-13T00:00:00Z", "status": "absent",
     "notes": "", "createdAt": "2024-11-13T00:00:00Z", "updatedAt": "2024-11-13T00:00:00Z"},
    {"id": "attendance-004", "student": "student-003", "studentName": "Clara Rossi",
     "classroom": "classroom-002", "date": "2024-11-13T00:00:00Z", "status": "excused",
     "notes": "Doctor's appointment",
     "createdAt": "2024-11-13T00:00:00Z", "updatedAt": "2024-11-13T00:00:00Z"},
    {"id": "attendance-005", "student": "student-003", "studentName": "Clara Rossi",
     "classroom": "classroom-003", "date": "2024-05-16T00:00:00Z", "status": "present",
     "notes": "", "createdAt": "2024-05-16T00:00:00Z", "updatedAt": "2024-05-16T00:00:00Z"},
]

DEFAULT_NOTIFICATIONS = [
    {"id": "notification-001", "recipient": "student-001", "recipientName": "Alice Chen",
     "title": "New grade posted", "message": "Your midterm grade is available.",
     "type": "info", "isRead": False, "priority": "medium", "category": "academic",
     "createdAt": "2024-11-15T12:00:00Z"},
    {"id": "notification-002", "recipient": "parent-001", "recipientName": "Mei Chen",
     "title": "Midterm results", "message": "Alice scored 17/20 in Advanced Algebra.",
     "type": "success", "isRead": True, "readAt": "2024-11-16T08:00:00Z",
     "priority": "low", "category": "academic", "createdAt": "2024-11-15T12:05:00Z"},
    {"id": "notification-003", "recipient": "student-002", "recipientName": "Bob Tanaka",
     "title": "Absence recorded", "message": "You were marked absent in Physics Fundamentals.",
     "type": "warning", "isRead": False, "priority": "high", "category": "administrative",
     "createdAt": "2024-11-13T18:00:00Z"},
    {"id": "notification-004", "recipient": "teacher-001", "recipientName": "Karim Mansour",
     "title": "Scheduled maintenance", "message": "The platform will be offline on Sunday.",
     "type": "announcement", "isRead": True, "readAt": "2024-11-18T09:30:00Z",
     "priority": "low", "category": "system", "createdAt": "2024-11-17T10:00:00Z"},
]

DEFAULT_DATASET: dict[str, list[dict]] = {
    "accounts": DEFAULT_ACCOUNTS,
    "classrooms": DEFAULT_CLASSROOMS,
    "groups": DEFAULT_GROUPS,
    "posts": DEFAULT_POSTS,
    "grade_records": DEFAULT_GRADE_RECORDS,
    "attendance_records": DEFAULT_ATTENDANCE_RECORDS,
    "notifications": DEFAULT_NOTIFICATIONS,
}


def default_collections() -> dict[str, list[Entity]]:
    """Fresh parsed copies of the default dataset, keyed by collection name.

    A ShapeError here means the dataset above is broken, which is a
    programming error and is allowed to propagate.
    """
    return {
        spec.name: parse_collection(spec, copy.deepcopy(DEFAULT_DATASET[spec.name]))
        for spec in COLLECTIONS
    }
