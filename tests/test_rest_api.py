import sqlite3

import pytest
from fastapi.testclient import TestClient

from courseclaim.main import CourseClaimPlatform


@pytest.fixture()
def platform(tmp_path):
    platform = CourseClaimPlatform({
        'database_type': 'sqlite',
        'database_config': {'database_path': str(tmp_path / "api.db")},
    })
    yield platform
    platform.stop_platform()


@pytest.fixture()
def client(platform):
    return TestClient(platform.app)


@pytest.fixture()
def admin_headers(platform):
    admin = platform.profile_service.bootstrap_admin("admin@example.edu")
    return {"X-Actor-Id": admin.id}


def _create_profile(client, admin_headers, email, role):
    response = client.post("/profiles", json={"email": email, "role": role},
                           headers=admin_headers)
    assert response.status_code == 201, response.text
    return {"X-Actor-Id": response.json()["id"]}


@pytest.fixture()
def teacher_headers(client, admin_headers):
    return _create_profile(client, admin_headers, "teacher.a@example.edu", "teacher")


@pytest.fixture()
def other_teacher_headers(client, admin_headers):
    return _create_profile(client, admin_headers, "teacher.b@example.edu", "teacher")


@pytest.fixture()
def student_headers(client, admin_headers):
    return _create_profile(client, admin_headers, "student@example.edu", "student")


def test_root_and_health(client):
    assert client.get("/").json()["message"] == "Course Claim API"
    assert client.get("/health").json()["status"] == "healthy"


def test_requests_need_a_known_actor(client):
    response = client.get("/courses")
    assert response.status_code == 401
    assert response.json()["error"] == "AuthenticationError"

    assert client.get("/courses", headers={"X-Actor-Id": "ghost"}).status_code == 401


def test_me(client, teacher_headers):
    response = client.get("/me", headers=teacher_headers)

    assert response.status_code == 200
    assert response.json()["role"] == "teacher"


def test_profile_management(client, admin_headers, teacher_headers):
    duplicate = client.post("/profiles", json={"email": "Teacher.A@example.edu", "role": "teacher"},
                            headers=admin_headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["message"] == "A user with this email already exists"

    assert client.post("/profiles", json={"email": "x@example.edu", "role": "student"},
                       headers=teacher_headers).status_code == 403
    assert client.post("/profiles", json={"email": "nope", "role": "student"},
                       headers=admin_headers).status_code == 400

    teachers = client.get("/profiles", params={"role": "teacher"}, headers=admin_headers).json()
    assert [p["email"] for p in teachers] == ["teacher.a@example.edu"]


def test_claim_flow(client, admin_headers, teacher_headers, other_teacher_headers):
    created = client.post("/courses", json={"name": "Databases 101", "code": "DB101"},
                          headers=admin_headers)
    assert created.status_code == 201
    course = created.json()
    assert course["state"] == "unclaimed"

    claimed = client.post("/courses/claim", json={"access_code": course["access_code"]},
                          headers=teacher_headers)
    assert claimed.status_code == 200
    assert claimed.json()["state"] == "claimed"
    assert claimed.json()["teacher_id"] == teacher_headers["X-Actor-Id"]

    rejected = client.post("/courses/claim", json={"access_code": course["access_code"]},
                           headers=other_teacher_headers)
    assert rejected.status_code == 409
    assert rejected.json() == {
        "error": "AlreadyClaimedError",
        "message": "This access code has already been claimed by another teacher.",
    }

    missing = client.post("/courses/claim", json={"access_code": "AC-0-NONE"},
                          headers=teacher_headers)
    assert missing.status_code == 404


def test_update_and_listing(client, admin_headers, teacher_headers, other_teacher_headers):
    course = client.post("/courses/self-service", json={"name": "Physics"},
                         headers=teacher_headers).json()

    forbidden = client.put(f"/courses/{course['id']}", json={"name": "Hijacked"},
                           headers=other_teacher_headers)
    assert forbidden.status_code == 403

    updated = client.put(f"/courses/{course['id']}", json={"name": "Physics II", "code": "PHY2"},
                         headers=teacher_headers)
    assert updated.status_code == 200
    assert updated.json()["code"] == "PHY2"

    own = client.get("/courses", headers=teacher_headers).json()
    assert [c["id"] for c in own] == [course["id"]]
    assert client.get("/courses", headers=other_teacher_headers).json() == []
    assert len(client.get("/courses", headers=admin_headers).json()) == 1

    found = client.get("/courses/search", params={"q": "physics"}, headers=teacher_headers)
    assert [c["name"] for c in found.json()] == ["Physics II"]

    assert client.get(f"/courses/{course['id']}", headers=teacher_headers).status_code == 200
    assert client.get("/courses/missing", headers=admin_headers).status_code == 404


def test_regenerate_access_code(client, admin_headers, teacher_headers):
    course = client.post("/courses", json={"name": "Databases 101"}, headers=admin_headers).json()

    response = client.post(f"/courses/{course['id']}/access-code", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["course_id"] == course["id"]
    assert response.json()["access_code"] != course["access_code"]
    assert client.post(f"/courses/{course['id']}/access-code",
                       headers=teacher_headers).status_code == 403


def test_enrollment_endpoints(client, admin_headers, teacher_headers, student_headers):
    course = client.post("/courses/self-service", json={"name": "Physics"},
                         headers=teacher_headers).json()
    student_id = student_headers["X-Actor-Id"]
    path = f"/courses/{course['id']}/enrollments"

    first = client.post(path, json={"student_id": student_id}, headers=teacher_headers)
    assert first.status_code == 201
    second = client.post(path, json={"student_id": student_id}, headers=teacher_headers)
    assert second.status_code == 409
    assert second.json()["error"] == "AlreadyEnrolledError"

    assert len(client.get(path, headers=teacher_headers).json()) == 1
    own = client.get(f"/students/{student_id}/enrollments", headers=student_headers)
    assert [e["course_id"] for e in own.json()] == [course["id"]]
    assert client.get(f"/courses/{course['id']}", headers=student_headers).status_code == 200


def test_audit_log_endpoint(client, admin_headers, teacher_headers):
    course = client.post("/courses", json={"name": "Databases 101"}, headers=admin_headers).json()
    client.post("/courses/claim", json={"access_code": course["access_code"]},
                headers=teacher_headers)

    entries = client.get("/audit-logs", params={"entity_id": course["id"]},
                         headers=admin_headers).json()
    assert [e["action"] for e in entries] == ["CLAIM_COURSE", "CREATE_COURSE"]
    assert client.get("/audit-logs", headers=teacher_headers).status_code == 403


def test_storage_failure_maps_to_service_unavailable(client, platform, admin_headers):
    conn = sqlite3.connect(platform.database.database_path)
    try:
        conn.execute("DROP TABLE courses")
        conn.commit()
    finally:
        conn.close()

    response = client.get("/courses", headers=admin_headers)

    assert response.status_code == 503
    assert response.json()["error"] == "StorageError"
