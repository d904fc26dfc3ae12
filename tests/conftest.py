import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from campusdesk.config import Settings
from campusdesk.server import create_app

API = "/api/v1"
PASSWORD = "secret123"


def run(coro):
    return asyncio.run(coro)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


class Campus:
    """Builds records through the admin API and logs members in."""

    def __init__(self, client, admin_headers):
        self.client = client
        self.admin = admin_headers
        self._seq = 0

    def _next(self, prefix):
        self._seq += 1
        return f"{prefix}{self._seq}"

    def login(self, email, password=PASSWORD):
        resp = self.client.post(f"{API}/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return bearer(resp.json()["token"])

    def campus(self, name=None):
        resp = self.client.post(
            f"{API}/admin/campuses",
            json={"name": name or self._next("Campus "), "location": "City", "address": "Main road"},
            headers=self.admin,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    def course(self, campus_id=None, teacher_ids=None, code=None):
        code = code or self._next("C-")
        resp = self.client.post(
            f"{API}/admin/courses",
            json={"name": f"Course {code}", "code": code, "campus_id": campus_id, "teacher_ids": teacher_ids or []},
            headers=self.admin,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    def teacher(self, campus_id=None):
        email = f"{self._next('teacher')}@campus.test"
        resp = self.client.post(
            f"{API}/admin/teachers",
            json={
                "email": email,
                "password": PASSWORD,
                "name": email.split("@")[0].capitalize(),
                "contact_number": "0300-0000000",
                "subject_specialization": "Mathematics",
                "qualifications": "MSc",
                "campus_id": campus_id,
            },
            headers=self.admin,
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        return data["profile"], data["account"], self.login(email)

    def student(self, campus_id=None, name=None):
        email = f"{self._next('student')}@campus.test"
        resp = self.client.post(
            f"{API}/admin/students",
            json={
                "email": email,
                "password": PASSWORD,
                "name": name or email.split("@")[0].capitalize(),
                "cnic": self._next("35202-"),
                "phone": "0311-0000000",
                "campus_id": campus_id,
            },
            headers=self.admin,
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        return data["profile"], data["account"], self.login(email)

    def coordinator(self, campus_id):
        email = f"{self._next('coordinator')}@campus.test"
        resp = self.client.post(
            f"{API}/admin/coordinators",
            json={"email": email, "password": PASSWORD, "name": "Coordinator", "campus_id": campus_id},
            headers=self.admin,
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        return data["profile"], data["account"], self.login(email)

    def enroll(self, course_id, student_ids):
        resp = self.client.post(
            f"{API}/courses/{course_id}/students/bulk", json={"student_ids": student_ids}, headers=self.admin
        )
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]


@pytest.fixture
def db():
    return AsyncMongoMockClient()[f"campusdesk_{uuid.uuid4().hex[:8]}"]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret="test-secret",
        db_name="campusdesk_test",
        upload_dir=tmp_path / "uploads",
        seed_admin_email="",
        seed_admin_password="",
    )


@pytest.fixture
def client(db, settings):
    return TestClient(create_app(database=db, settings=settings))


@pytest.fixture
def admin(client):
    resp = client.post(
        f"{API}/auth/admin/register",
        json={"email": "Admin@Campus.test", "password": PASSWORD, "name": "Admin", "contact_number": "0300-1234567"},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return body["data"], bearer(body["token"])


@pytest.fixture
def factory(client, admin):
    return Campus(client, admin[1])
