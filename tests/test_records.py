import os

import pytest

from campusdesk.models import NotificationRecord, Role
from conftest import API, run


def lesson_plan(topic="Fractions"):
    return {
        "head": {"banner_title": "Week 3 plan", "program_name": "Grade 5", "week_label": "Week 3"},
        "times_sat": ["08:00", "09:00", "10:00", "11:00", "12:00"],
        "times_sun": ["14:00", "15:00", "16:00", "17:00", "18:00"],
        "cells": [{"text": f"{topic} {i}"} for i in range(10)],
    }


# Notifications

def insert_notification(db, recipient_type, account, role):
    doc = NotificationRecord(
        recipient_type=recipient_type,
        subject=f"{recipient_type} notice",
        message="Staff meeting moved",
        created_by=account["id"],
        created_by_role=role,
    ).model_dump(mode="json")
    run(db.notifications.insert_one(doc))
    return doc["id"]


def test_teacher_sees_own_notification_but_not_peer_broadcast(client, factory, db):
    _, me, my_headers = factory.teacher()
    _, peer, _ = factory.teacher()
    admin_account = run(db.accounts.find_one({"role": "admin"}))

    own_id = insert_notification(db, "teachers", me, Role.TEACHER)
    peer_id = insert_notification(db, "teachers", peer, Role.TEACHER)
    leadership_id = insert_notification(db, "teachers", admin_account, Role.ADMIN)

    resp = client.get(f"{API}/notifications", headers=my_headers)
    assert resp.status_code == 200
    ids = {n["id"] for n in resp.json()["data"]}
    assert own_id in ids
    assert leadership_id in ids
    assert peer_id not in ids

    assert client.get(f"{API}/notifications/{peer_id}", headers=my_headers).status_code == 403
    assert client.get(f"{API}/notifications/{own_id}", headers=my_headers).status_code == 200
    assert client.get(f"{API}/notifications/missing", headers=my_headers).status_code == 404


def test_notification_creation_follows_the_role_matrix(client, factory, db):
    _, _, teacher_headers = factory.teacher()
    _, _, student_headers = factory.student()
    note = {"subject": "Exams", "message": "Exams start Monday"}

    resp = client.post(f"{API}/notifications", json={**note, "recipient_type": "principle"}, headers=teacher_headers)
    assert resp.status_code == 201
    assert resp.json()["data"]["recipient_type"] == "principals"
    assert resp.json()["data"]["created_by_role"] == "teacher"

    resp = client.post(f"{API}/notifications", json={**note, "recipient_type": "teachers"}, headers=teacher_headers)
    assert resp.status_code == 403
    assert resp.json()["error"] == "Not allowed to create this type of notification"

    assert client.post(
        f"{API}/notifications", json={**note, "recipient_type": "all"}, headers=student_headers
    ).status_code == 403
    assert client.post(
        f"{API}/notifications", json={**note, "recipient_type": "everyone"}, headers=factory.admin
    ).status_code == 400


def test_students_only_read_broadcasts_to_all(client, factory):
    _, _, student_headers = factory.student()
    for recipient_type in ("all", "teachers", "both", "admin"):
        client.post(
            f"{API}/notifications",
            json={"recipient_type": recipient_type, "subject": "s", "message": "m"},
            headers=factory.admin,
        )
    resp = client.get(f"{API}/notifications", headers=student_headers)
    assert [n["recipient_type"] for n in resp.json()["data"]] == ["all"]
    assert client.get(f"{API}/notifications", params={"recipient_type": "admin"}, headers=student_headers).json()[
        "data"
    ] == []


def test_teacher_filter_keeps_own_notifications(client, factory, db):
    _, me, headers = factory.teacher()
    own_id = insert_notification(db, "admin", me, Role.TEACHER)
    admin_account = run(db.accounts.find_one({"role": "admin"}))
    insert_notification(db, "admin", admin_account, Role.ADMIN)

    resp = client.get(f"{API}/notifications", params={"recipient_type": "admin"}, headers=headers)
    assert resp.status_code == 200
    assert [n["id"] for n in resp.json()["data"]] == [own_id]
    assert client.get(f"{API}/notifications", params={"recipient_type": "all"}, headers=headers).json()["count"] == 0


# Documents

def test_zip_upload_is_rejected_before_storage(client, factory, db, settings):
    _, _, headers = factory.student()
    resp = client.post(
        f"{API}/documents",
        files={"file": ("records.zip", b"PK\x03\x04 zipped", "application/zip")},
        data={"document_type": "cnic"},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Please upload a PDF, JPEG, or PNG file"
    assert run(db.documents.count_documents({})) == 0
    assert not settings.upload_dir.exists() or os.listdir(settings.upload_dir) == []


def test_document_is_verified_exactly_once(client, factory, db, settings):
    student, _, headers = factory.student()
    resp = client.post(
        f"{API}/documents",
        files={"file": ("cnic.pdf", b"%PDF-1.4 test", "application/pdf")},
        data={"document_type": "cnic"},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    document = resp.json()["data"]
    assert document["status"] == "pending"
    assert (settings.upload_dir / document["file_path"]).exists()

    resp = client.put(f"{API}/documents/{document['id']}/verify", json={"status": "verified"}, headers=factory.admin)
    assert resp.status_code == 200
    assert resp.json()["data"]["verified_by"] is not None
    assert run(db.students.find_one({"id": student["id"]}))["document_status"] == "verified"

    resp = client.put(f"{API}/documents/{document['id']}/verify", json={"status": "rejected"}, headers=factory.admin)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Document already processed"

    assert client.get(f"{API}/documents/student/{student['id']}", headers=headers).json()["count"] == 1
    _, _, stranger = factory.student()
    assert client.get(f"{API}/documents/student/{student['id']}", headers=stranger).status_code == 403


def test_stored_extension_follows_the_mimetype(client, factory, settings):
    _, _, headers = factory.student()
    resp = client.post(
        f"{API}/documents",
        files={"file": ("photo.html", b"\x89PNG\r\n\x1a\n", "image/png")},
        data={"document_type": "cnic"},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    document = resp.json()["data"]
    assert document["file_path"].endswith(".png")
    assert document["original_name"] == "photo.html"
    assert (settings.upload_dir / document["file_path"]).exists()


# Lesson plans

def test_lesson_plan_round_trip_and_soft_delete(client, factory, db):
    _, _, headers = factory.teacher()
    resp = client.post(f"{API}/lesson-plans", json=lesson_plan(), headers=headers)
    assert resp.status_code == 201, resp.text
    created = resp.json()["data"]

    cells = [dict(c) for c in created["cells"]]
    cells[4]["text"] = "Decimals"
    resp = client.put(f"{API}/lesson-plans/{created['id']}", json={"cells": cells}, headers=headers)
    assert resp.status_code == 200

    fetched = client.get(f"{API}/lesson-plans/{created['id']}", headers=headers).json()["data"]
    assert fetched["cells"][4]["text"] == "Decimals"
    assert fetched["cells"][:4] == created["cells"][:4]
    assert fetched["cells"][5:] == created["cells"][5:]
    for field in ("head", "times_sat", "times_sun", "created_by", "is_active", "saved_at", "created_at"):
        assert fetched[field] == created[field]

    assert client.delete(f"{API}/lesson-plans/{created['id']}", headers=headers).status_code == 200
    listing = client.get(f"{API}/lesson-plans", headers=headers).json()
    assert listing["total"] == 0
    assert client.get(f"{API}/lesson-plans/{created['id']}", headers=headers).status_code == 404
    assert run(db.lesson_plans.find_one({"id": created["id"]}))["is_active"] is False


@pytest.mark.parametrize("field, value", [("times_sat", ["08:00"] * 4), ("cells", [{"text": "x"}] * 9)])
def test_lesson_plan_structure_is_fixed(client, factory, field, value):
    _, _, headers = factory.teacher()
    resp = client.post(f"{API}/lesson-plans", json={**lesson_plan(), field: value}, headers=headers)
    assert resp.status_code == 400


def test_lesson_plans_are_private_to_their_author(client, factory):
    _, _, author = factory.teacher()
    _, _, other = factory.teacher()
    plan = client.post(f"{API}/lesson-plans", json=lesson_plan("Algebra"), headers=author).json()["data"]

    assert client.get(f"{API}/lesson-plans/{plan['id']}", headers=other).status_code == 403
    assert client.get(f"{API}/lesson-plans/search", params={"q": "algebra"}, headers=other).json()["count"] == 0
    assert client.get(f"{API}/lesson-plans/search", params={"q": "algebra"}, headers=author).json()["count"] == 1
    assert client.get(f"{API}/lesson-plans/{plan['id']}", headers=factory.admin).status_code == 200

    copy = client.post(f"{API}/lesson-plans/{plan['id']}/duplicate", headers=author).json()["data"]
    assert copy["head"]["banner_title"] == "Week 3 plan (Copy)"
    assert copy["id"] != plan["id"]


# Attendance

def test_attendance_marking(client, factory, db):
    campus = factory.campus()
    teacher, _, headers = factory.teacher(campus_id=campus["id"])
    course = factory.course(campus_id=campus["id"], teacher_ids=[teacher["id"]])
    enrolled, _, enrolled_headers = factory.student(campus_id=campus["id"])
    outsider, _, _ = factory.student(campus_id=campus["id"])
    factory.enroll(course["id"], [enrolled["id"]])

    resp = client.post(
        f"{API}/attendance",
        json={"student_id": enrolled["id"], "course_id": course["id"], "status": "Present", "session": "morning"},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    record = resp.json()["data"]
    assert record["status"] == "present"
    assert record["marked_by"] == teacher["id"]

    resp = client.post(
        f"{API}/attendance/bulk",
        json={"course_id": course["id"], "attendances": [
            {"student_id": enrolled["id"], "status": "absent"},
            {"student_id": outsider["id"], "status": "present"},
        ]},
        headers=headers,
    )
    assert resp.status_code == 400
    assert run(db.attendance.count_documents({})) == 1

    resp = client.post(
        f"{API}/attendance",
        json={"student_id": enrolled["id"], "course_id": course["id"], "status": "sleeping"},
        headers=headers,
    )
    assert resp.status_code == 400

    assert client.get(f"{API}/student/attendance", headers=enrolled_headers).json()["count"] == 1
    course_records = client.get(f"{API}/attendance/course/{course['id']}", headers=headers).json()["data"]
    assert course_records[0]["student_name"] == enrolled["name"]


# Coordinator scope

def test_coordinator_is_confined_to_its_campus(client, factory):
    north, south = factory.campus("North"), factory.campus("South")
    _, _, headers = factory.coordinator(north["id"])
    local, _, _ = factory.student(campus_id=north["id"])
    remote, _, _ = factory.student(campus_id=south["id"])
    remote_teacher, _, _ = factory.teacher(campus_id=south["id"])
    north_course = factory.course(campus_id=north["id"])

    assert client.get(f"{API}/coordinator/students/{local['id']}", headers=headers).status_code == 200
    assert client.get(f"{API}/coordinator/students/{remote['id']}", headers=headers).status_code == 403
    assert client.get(f"{API}/coordinator/students/nope", headers=headers).status_code == 404
    listed = client.get(f"{API}/coordinator/students", headers=headers).json()["data"]
    assert [s["id"] for s in listed] == [local["id"]]

    resp = client.post(
        f"{API}/coordinator/courses/{north_course['id']}/assign-teacher/{remote_teacher['id']}", headers=headers
    )
    assert resp.status_code == 403
    assert client.get(f"{API}/coordinator/teachers/{remote_teacher['id']}", headers=headers).status_code == 403


def test_coordinator_staffs_its_own_courses(client, factory, db):
    campus = factory.campus()
    _, _, headers = factory.coordinator(campus["id"])
    course = factory.course(campus_id=campus["id"])

    resp = client.post(
        f"{API}/coordinator/teachers",
        json={
            "email": "local.teacher@campus.test",
            "password": "secret123",
            "name": "Local Teacher",
            "contact_number": "0300",
            "subject_specialization": "Biology",
            "qualifications": "MPhil",
        },
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    teacher = resp.json()["data"]["profile"]
    assert teacher["campus_ids"] == [campus["id"]]

    url = f"{API}/coordinator/courses/{course['id']}/assign-teacher/{teacher['id']}"
    assert client.post(url, headers=headers).status_code == 200
    again = client.post(url, headers=headers)
    assert again.status_code == 400
    assert again.json()["error"] == "Teacher is already assigned to this course"

    resp = client.delete(f"{API}/coordinator/courses/{course['id']}/unassign-teacher/{teacher['id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["teacher_ids"] == []
    assert campus["id"] in run(db.teachers.find_one({"id": teacher["id"]}))["campus_ids"]


def test_coordinator_cannot_read_admin_accounts(client, factory, admin):
    campus = factory.campus()
    _, own_account, headers = factory.coordinator(campus["id"])
    admin_account, _ = admin

    assert client.get(f"{API}/users/{admin_account['id']}", headers=headers).status_code == 403
    assert client.get(f"{API}/users/{own_account['id']}", headers=headers).status_code == 200
    resp = client.put(f"{API}/users/{own_account['id']}", json={"active": False}, headers=headers)
    assert resp.status_code == 403


def test_requests_without_a_token_are_rejected(client):
    resp = client.get(f"{API}/notifications")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "Not authorized to access this route"}


# Course outlines

def outline(week="Week 1", date="2025-01-06"):
    return {
        "program_name": "Grade 5",
        "week_title": week,
        "location": "Room 4",
        "days": [
            {
                "day_name": "Monday",
                "date": date,
                "unit": "Fractions",
                "instructor": "Ms. Noor",
                "slots": [{"time_start": "08:00", "time_end": "08:45", "topic": "Halves and quarters"}],
            }
        ],
        "references": ["Textbook ch. 3"],
    }


def test_teacher_adds_outlines_to_own_course(client, factory):
    campus = factory.campus()
    teacher, _, headers = factory.teacher(campus_id=campus["id"])
    _, _, other_headers = factory.teacher(campus_id=campus["id"])
    course = factory.course(campus_id=campus["id"], teacher_ids=[teacher["id"]])
    url = f"{API}/courses/{course['id']}/outline"

    resp = client.post(url, json=outline(), headers=headers)
    assert resp.status_code == 201, resp.text
    assert resp.json()["data"]["course_id"] == course["id"]
    client.post(url, json=outline("Week 2", "2025-01-13"), headers=headers)

    assert client.post(url, json=outline(), headers=other_headers).status_code == 403
    assert client.post(url, json=outline(), headers=factory.admin).status_code == 403
    assert client.post(f"{API}/courses/missing/outline", json=outline(), headers=headers).status_code == 404

    assert client.get(url, headers=headers).json()["count"] == 2
    resp = client.get(url, params={"week_title": "Week 2"}, headers=headers)
    assert [o["week_title"] for o in resp.json()["data"]] == ["Week 2"]
    resp = client.get(url, params={"date": "2025-01-06"}, headers=factory.admin)
    assert [o["week_title"] for o in resp.json()["data"]] == ["Week 1"]
    assert client.get(url, headers=other_headers).status_code == 403


@pytest.mark.parametrize("broken", [
    {"days": []},
    {"location": ""},
    {"days": [{"day_name": "Monday", "date": "2025-01-06", "unit": "U1", "instructor": "T", "slots": []}]},
    {"days": [{"day_name": "Monday", "date": "2025-01-06", "unit": "U1", "instructor": "T",
               "slots": [{"time_start": "08:00", "topic": "x"}]}]},
])
def test_outline_structure_is_checked(client, factory, db, broken):
    teacher, _, headers = factory.teacher()
    course = factory.course(teacher_ids=[teacher["id"]])
    resp = client.post(f"{API}/courses/{course['id']}/outline", json={**outline(), **broken}, headers=headers)
    assert resp.status_code == 400
    assert run(db.course_outlines.count_documents({})) == 0


def test_enrolled_students_read_outlines(client, factory):
    teacher, _, teacher_headers = factory.teacher()
    course = factory.course(teacher_ids=[teacher["id"]])
    enrolled, _, enrolled_headers = factory.student()
    _, _, outsider_headers = factory.student()
    factory.enroll(course["id"], [enrolled["id"]])
    client.post(f"{API}/courses/{course['id']}/outline", json=outline(), headers=teacher_headers)

    assert client.get(f"{API}/courses/{course['id']}/outline", headers=enrolled_headers).json()["count"] == 1
    assert client.get(f"{API}/courses/{course['id']}/outline", headers=outsider_headers).status_code == 403
