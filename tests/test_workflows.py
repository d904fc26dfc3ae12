import pytest

from campusdesk import workflows
from campusdesk.models import CourseRecord, Role
from conftest import API, PASSWORD, run


def test_assign_courses_to_campus_is_idempotent(client, factory, db):
    campus = factory.campus("North")
    first, second = factory.course(), factory.course()
    payload = {"course_ids": [first["id"], second["id"]], "campus_id": campus["id"]}

    resp = client.post(f"{API}/admin/assign/courses", json=payload, headers=factory.admin)
    assert resp.status_code == 200, resp.text
    assert sorted(resp.json()["data"]["assigned"]) == sorted(payload["course_ids"])

    resp = client.post(f"{API}/admin/assign/courses", json=payload, headers=factory.admin)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["assigned"] == []
    assert sorted(data["already_linked"]) == sorted(payload["course_ids"])

    stored = run(db.campuses.find_one({"id": campus["id"]}))
    assert sorted(stored["course_ids"]) == sorted(payload["course_ids"])
    for course_id in payload["course_ids"]:
        assert run(db.courses.find_one({"id": course_id}))["campus_id"] == campus["id"]


def test_moving_a_course_detaches_it_from_the_old_campus(client, factory, db):
    north, south = factory.campus("North"), factory.campus("South")
    course = factory.course(campus_id=north["id"])

    resp = client.post(
        f"{API}/admin/assign/courses", json={"course_ids": [course["id"]], "campus_id": south["id"]},
        headers=factory.admin,
    )
    assert resp.status_code == 200
    assert course["id"] not in run(db.campuses.find_one({"id": north["id"]}))["course_ids"]
    assert course["id"] in run(db.campuses.find_one({"id": south["id"]}))["course_ids"]


def test_assign_courses_reports_every_missing_id(client, factory):
    campus = factory.campus()
    course = factory.course()
    resp = client.post(
        f"{API}/admin/assign/courses",
        json={"course_ids": ["ghost-1", course["id"], "ghost-2"], "campus_id": campus["id"]},
        headers=factory.admin,
    )
    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["details"]["missing_course_ids"] == ["ghost-1", "ghost-2"]


def test_assign_students_with_a_missing_id_changes_nothing(client, factory, db):
    campus = factory.campus()
    course = factory.course()
    student, _, _ = factory.student()

    resp = client.post(
        f"{API}/admin/assign/students",
        json={"student_ids": [student["id"], "missing-student"], "campus_id": campus["id"], "course_ids": [course["id"]]},
        headers=factory.admin,
    )
    assert resp.status_code == 404
    assert resp.json()["details"]["missing_student_ids"] == ["missing-student"]

    stored = run(db.students.find_one({"id": student["id"]}))
    assert stored["campus_id"] is None
    assert stored["course_ids"] == []
    assert run(db.campuses.find_one({"id": campus["id"]}))["student_ids"] == []
    assert run(db.courses.find_one({"id": course["id"]}))["student_ids"] == []


def test_assign_students_links_campus_and_courses(client, factory, db):
    campus = factory.campus()
    course = factory.course(campus_id=campus["id"])
    first, first_account, _ = factory.student()
    second, _, _ = factory.student()
    ids = [first["id"], second["id"]]

    for _ in range(2):
        resp = client.post(
            f"{API}/admin/assign/students",
            json={"student_ids": ids, "campus_id": campus["id"], "course_ids": [course["id"]]},
            headers=factory.admin,
        )
        assert resp.status_code == 200, resp.text

    assert sorted(run(db.campuses.find_one({"id": campus["id"]}))["student_ids"]) == sorted(ids)
    assert sorted(run(db.courses.find_one({"id": course["id"]}))["student_ids"]) == sorted(ids)
    assert run(db.students.find_one({"id": first["id"]}))["course_ids"] == [course["id"]]
    assert run(db.accounts.find_one({"id": first_account["id"]}))["campus_id"] == campus["id"]


def test_teacher_assignment_derives_campus_links(client, factory, db):
    north = factory.campus("North")
    course_a = factory.course(campus_id=north["id"])
    teacher, account, _ = factory.teacher()
    assert teacher["campus_ids"] == []

    resp = client.post(
        f"{API}/admin/assign/teachers",
        json={"teacher_id": teacher["id"], "course_ids": [course_a["id"]]},
        headers=factory.admin,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["assigned"] == [course_a["id"]]

    assert north["id"] in run(db.teachers.find_one({"id": teacher["id"]}))["campus_ids"]
    assert teacher["id"] in run(db.campuses.find_one({"id": north["id"]}))["teacher_ids"]
    assert teacher["id"] in run(db.courses.find_one({"id": course_a["id"]}))["teacher_ids"]
    assert run(db.accounts.find_one({"id": account["id"]}))["campus_id"] == north["id"]

    resp = client.post(
        f"{API}/admin/assign/teachers",
        json={"teacher_id": teacher["id"], "course_ids": [course_a["id"]]},
        headers=factory.admin,
    )
    assert resp.json()["data"]["already_linked"] == [course_a["id"]]
    assert run(db.courses.find_one({"id": course_a["id"]}))["teacher_ids"] == [teacher["id"]]


def test_courses_keep_several_teachers(factory, db):
    campus = factory.campus()
    first, _, _ = factory.teacher()
    second, _, _ = factory.teacher()
    course = factory.course(campus_id=campus["id"], teacher_ids=[first["id"], second["id"]])
    assert sorted(course["teacher_ids"]) == sorted([first["id"], second["id"]])
    assert sorted(run(db.campuses.find_one({"id": campus["id"]}))["teacher_ids"]) == sorted(
        [first["id"], second["id"]]
    )


def test_coordinator_assignment_round_trip(client, factory, db):
    north, south = factory.campus("North"), factory.campus("South")
    coordinator, account, _ = factory.coordinator(north["id"])
    assert coordinator["id"] in run(db.campuses.find_one({"id": north["id"]}))["coordinator_ids"]

    resp = client.post(
        f"{API}/admin/assign/coordinator",
        json={"coordinator_id": coordinator["id"], "campus_id": south["id"]},
        headers=factory.admin,
    )
    assert resp.status_code == 200, resp.text
    assert coordinator["id"] not in run(db.campuses.find_one({"id": north["id"]}))["coordinator_ids"]
    assert coordinator["id"] in run(db.campuses.find_one({"id": south["id"]}))["coordinator_ids"]
    assert run(db.accounts.find_one({"id": account["id"]}))["campus_id"] == south["id"]

    resp = client.post(f"{API}/admin/unassign/coordinator/{coordinator['id']}", headers=factory.admin)
    assert resp.status_code == 200
    assert resp.json()["data"]["campus_id"] is None
    assert run(db.campuses.find_one({"id": south["id"]}))["coordinator_ids"] == []

    resp = client.post(f"{API}/admin/unassign/coordinator/{coordinator['id']}", headers=factory.admin)
    assert resp.status_code == 400


def test_create_member_rejects_a_taken_email(client, factory, db):
    campus = factory.campus()
    factory.student(campus_id=campus["id"])
    existing = run(db.accounts.find_one({"role": "student"}))

    resp = client.post(
        f"{API}/admin/students",
        json={
            "email": existing["email"].upper(),
            "password": "secret123",
            "name": "Duplicate",
            "cnic": "99999-1",
            "phone": "0300",
            "campus_id": campus["id"],
        },
        headers=factory.admin,
    )
    assert resp.status_code == 409
    assert run(db.students.count_documents({})) == 1
    assert len(run(db.campuses.find_one({"id": campus["id"]}))["student_ids"]) == 1


def test_create_member_with_unknown_campus_writes_nothing(client, factory, db):
    resp = client.post(
        f"{API}/admin/teachers",
        json={
            "email": "nobody@campus.test",
            "password": "secret123",
            "name": "Nobody",
            "contact_number": "0300",
            "subject_specialization": "Physics",
            "qualifications": "BSc",
            "campus_id": "no-such-campus",
        },
        headers=factory.admin,
    )
    assert resp.status_code == 404
    assert run(db.accounts.count_documents({"email": "nobody@campus.test"})) == 0
    assert run(db.teachers.count_documents({})) == 0


def test_deleting_a_teacher_removes_account_and_links(client, factory, db):
    campus = factory.campus()
    teacher, account, _ = factory.teacher(campus_id=campus["id"])
    course = factory.course(campus_id=campus["id"], teacher_ids=[teacher["id"]])

    resp = client.delete(f"{API}/admin/teachers/{teacher['id']}", headers=factory.admin)
    assert resp.status_code == 200

    assert run(db.teachers.find_one({"id": teacher["id"]})) is None
    assert run(db.accounts.find_one({"id": account["id"]})) is None
    assert run(db.courses.find_one({"id": course["id"]}))["teacher_ids"] == []
    assert run(db.campuses.find_one({"id": campus["id"]}))["teacher_ids"] == []


def test_deleting_an_account_removes_its_profile(client, factory, db):
    campus = factory.campus()
    student, account, _ = factory.student(campus_id=campus["id"])

    resp = client.delete(f"{API}/users/{account['id']}", headers=factory.admin)
    assert resp.status_code == 200
    assert run(db.students.find_one({"id": student["id"]})) is None
    assert run(db.campuses.find_one({"id": campus["id"]}))["student_ids"] == []


def test_deleting_a_campus_only_detaches_members(client, factory, db):
    campus = factory.campus()
    student, _, _ = factory.student(campus_id=campus["id"])
    teacher, _, _ = factory.teacher(campus_id=campus["id"])
    coordinator, _, _ = factory.coordinator(campus["id"])
    course = factory.course(campus_id=campus["id"])

    resp = client.delete(f"{API}/admin/campuses/{campus['id']}", headers=factory.admin)
    assert resp.status_code == 200

    assert run(db.campuses.find_one({"id": campus["id"]})) is None
    assert run(db.students.find_one({"id": student["id"]}))["campus_id"] is None
    assert run(db.teachers.find_one({"id": teacher["id"]}))["campus_ids"] == []
    assert run(db.coordinators.find_one({"id": coordinator["id"]}))["campus_id"] is None
    assert run(db.courses.find_one({"id": course["id"]}))["campus_id"] is None


def test_admin_cannot_delete_itself(client, admin):
    account, headers = admin
    resp = client.delete(f"{API}/users/{account['id']}", headers=headers)
    assert resp.status_code == 403
    assert resp.json() == {"success": False, "error": "You cannot delete yourself"}


def test_account_campus_cannot_be_rewritten_directly(client, factory, db):
    north, south = factory.campus("North"), factory.campus("South")
    student, account, _ = factory.student(campus_id=north["id"])
    _, _, south_coordinator = factory.coordinator(south["id"])

    resp = client.put(f"{API}/users/{account['id']}", json={"campus_id": south["id"]}, headers=factory.admin)
    assert resp.status_code == 400
    assert run(db.accounts.find_one({"id": account["id"]}))["campus_id"] == north["id"]
    assert run(db.students.find_one({"id": student["id"]}))["campus_id"] == north["id"]
    assert student["id"] in run(db.campuses.find_one({"id": north["id"]}))["student_ids"]

    assert client.delete(f"{API}/users/{account['id']}", headers=south_coordinator).status_code == 403
    assert run(db.students.find_one({"id": student["id"]})) is not None


# Rollback

@pytest.fixture
def break_write(db, monkeypatch):
    """Make the next ``method`` call on one collection raise; later calls go through."""

    def arm(collection, method):
        cls = type(db[collection])
        original = getattr(cls, method)
        state = {"armed": True}

        async def flaky(self, *args, **kwargs):
            if state["armed"] and self.name == collection:
                state["armed"] = False
                raise RuntimeError(f"{collection}.{method} failed")
            return await original(self, *args, **kwargs)

        monkeypatch.setattr(cls, method, flaky)

    return arm


def test_create_member_undoes_account_and_profile(factory, db, break_write):
    campus = factory.campus()
    break_write("campuses", "update_one")

    with pytest.raises(RuntimeError):
        run(workflows.create_member(
            db, Role.STUDENT, "late@campus.test", PASSWORD,
            {"name": "Late", "cnic": "35202-77", "phone": "0300"}, campus["id"], created_by="admin",
        ))

    assert run(db.accounts.find_one({"email": "late@campus.test"})) is None
    assert run(db.students.find_one({"cnic": "35202-77"})) is None
    assert run(db.campuses.find_one({"id": campus["id"]}))["student_ids"] == []


def test_assign_students_restores_every_link(factory, db, break_write):
    north, south = factory.campus("North"), factory.campus("South")
    course = factory.course(campus_id=south["id"])
    student, account, _ = factory.student(campus_id=north["id"])
    break_write("courses", "update_one")

    with pytest.raises(RuntimeError):
        run(workflows.assign_students_to_campus(db, [student["id"]], south["id"], [course["id"]]))

    stored = run(db.students.find_one({"id": student["id"]}))
    assert stored["campus_id"] == north["id"]
    assert stored["course_ids"] == []
    assert run(db.accounts.find_one({"id": account["id"]}))["campus_id"] == north["id"]
    assert run(db.campuses.find_one({"id": north["id"]}))["student_ids"] == [student["id"]]
    assert run(db.campuses.find_one({"id": south["id"]}))["student_ids"] == []
    assert run(db.courses.find_one({"id": course["id"]}))["student_ids"] == []


def test_delete_member_puts_links_and_account_back(factory, db, break_write):
    campus = factory.campus()
    teacher, account, _ = factory.teacher(campus_id=campus["id"])
    course = factory.course(campus_id=campus["id"], teacher_ids=[teacher["id"]])
    break_write("teachers", "delete_one")

    with pytest.raises(RuntimeError):
        run(workflows.delete_member(db, Role.TEACHER, teacher["id"]))

    assert run(db.teachers.find_one({"id": teacher["id"]})) is not None
    assert run(db.accounts.find_one({"id": account["id"]}))["email"] == account["email"]
    assert run(db.courses.find_one({"id": course["id"]}))["teacher_ids"] == [teacher["id"]]
    assert run(db.campuses.find_one({"id": campus["id"]}))["teacher_ids"] == [teacher["id"]]


def test_create_course_undoes_earlier_teacher_links(factory, db, monkeypatch):
    campus = factory.campus()
    first, first_account, _ = factory.teacher()
    second, _, _ = factory.teacher()
    link_teacher = workflows._link_teacher
    linked = []

    async def link_then_fail(comp, db_, teacher, courses):
        linked.append(teacher["id"])
        if len(linked) == 2:
            raise RuntimeError("teacher link failed")
        return await link_teacher(comp, db_, teacher, courses)

    monkeypatch.setattr(workflows, "_link_teacher", link_then_fail)
    course = CourseRecord(
        name="Algebra", code="ALG-9", campus_id=campus["id"],
        teacher_ids=[first["id"], second["id"]], created_by="admin",
    ).model_dump(mode="json")

    with pytest.raises(RuntimeError):
        run(workflows.create_course(db, course))

    assert linked == [first["id"], second["id"]]
    assert run(db.courses.count_documents({})) == 0
    stored_campus = run(db.campuses.find_one({"id": campus["id"]}))
    assert stored_campus["course_ids"] == []
    assert stored_campus["teacher_ids"] == []
    assert run(db.teachers.find_one({"id": first["id"]}))["campus_ids"] == []
    assert run(db.accounts.find_one({"id": first_account["id"]}))["campus_id"] is None
