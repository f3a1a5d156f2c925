from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from conftest import create_assignment, create_class, join_class, register_and_login, upload


def _classroom_with_student(client: TestClient):
    _, teacher = register_and_login(client, "t@example.com", "teacher")
    _, student = register_and_login(client, "s@example.com", "student")
    classroom = create_class(client, teacher)
    join_class(client, student, classroom["class_code"])
    return teacher, student, classroom


def test_create_assignment_defaults(client: TestClient):
    teacher, _, classroom = _classroom_with_student(client)

    data = create_assignment(client, teacher, classroom["id"], "  Fractions  ")
    assert data["title"] == "Fractions"
    assert data["rubric"] is None
    assert data["answer_key"] is None
    assert data["class_name"] == classroom["name"]


def test_create_assignment_validation(client: TestClient):
    teacher, student, classroom = _classroom_with_student(client)
    _, other_teacher = register_and_login(client, "t2@example.com", "teacher")
    payload = {"class_id": classroom["id"], "title": "HW", "due_date": "2030-01-01T00:00:00Z"}

    assert client.post("/api/v2/assignments/", json={**payload, "title": "  "}, headers=teacher).status_code == 400
    assert client.post("/api/v2/assignments/", json={**payload, "class_id": 999}, headers=teacher).status_code == 404
    assert client.post("/api/v2/assignments/", json=payload, headers=other_teacher).status_code == 403
    assert client.post("/api/v2/assignments/", json=payload, headers=student).status_code == 403
    missing_due = {"class_id": classroom["id"], "title": "HW"}
    assert client.post("/api/v2/assignments/", json=missing_due, headers=teacher).status_code == 422


def test_update_grading_material(client: TestClient):
    teacher, _, classroom = _classroom_with_student(client)
    assignment = create_assignment(client, teacher, classroom["id"])

    resp = client.put(
        f"/api/v2/assignments/{assignment['id']}/grading-material",
        json={"rubric": "Show all steps", "answer_key": "x = 4"},
        headers=teacher,
    )
    assert resp.status_code == 200
    assert resp.json()["rubric"] == "Show all steps"
    assert resp.json()["answer_key"] == "x = 4"

    cleared = client.put(
        f"/api/v2/assignments/{assignment['id']}/grading-material",
        json={"rubric": None, "answer_key": "  "},
        headers=teacher,
    ).json()
    assert cleared["rubric"] is None
    assert cleared["answer_key"] is None


def test_student_assignments_sorted_by_due_date_with_attempts(client: TestClient):
    teacher, student, classroom = _classroom_with_student(client)
    later = create_assignment(client, teacher, classroom["id"], "Later", "2031-05-01T00:00:00Z")
    sooner = create_assignment(client, teacher, classroom["id"], "Sooner", "2030-05-01T00:00:00Z")

    assert upload(client, student, later["id"]).status_code == 201
    assert upload(client, student, later["id"]).status_code == 201

    resp = client.get("/api/v2/assignments/", headers=student)
    assert resp.status_code == 200
    items = resp.json()["assignments"]
    assert [a["id"] for a in items] == [sooner["id"], later["id"]]
    assert items[0]["attempts"] == []
    assert items[0]["latest_attempt"] is None
    assert [s["attempt_number"] for s in items[1]["attempts"]] == [2, 1]
    assert items[1]["latest_attempt"]["attempt_number"] == 2


def test_teacher_assignments_include_counts(client: TestClient):
    teacher, student, classroom = _classroom_with_student(client)
    assignment = create_assignment(client, teacher, classroom["id"])
    upload(client, student, assignment["id"])
    upload(client, student, assignment["id"])

    items = client.get("/api/v2/assignments/", headers=teacher).json()["assignments"]
    assert len(items) == 1
    assert items[0]["submission_count"] == 2
    assert items[0]["student_count"] == 1
    assert items[0]["graded_count"] == 2


def test_get_assignment_visibility(client: TestClient):
    teacher, student, classroom = _classroom_with_student(client)
    _, outsider = register_and_login(client, "o@example.com", "student")
    assignment = create_assignment(client, teacher, classroom["id"])

    assert client.get(f"/api/v2/assignments/{assignment['id']}", headers=student).status_code == 200
    assert client.get(f"/api/v2/assignments/{assignment['id']}", headers=outsider).status_code == 403
    assert client.get("/api/v2/assignments/999", headers=teacher).status_code == 404


def test_class_assignments_listing(client: TestClient):
    teacher, student, classroom = _classroom_with_student(client)
    create_assignment(client, teacher, classroom["id"], "A")
    create_assignment(client, teacher, classroom["id"], "B")

    resp = client.get(f"/api/v2/classes/{classroom['id']}/assignments", headers=student)
    assert resp.status_code == 200
    assert {a["title"] for a in resp.json()} == {"A", "B"}


def test_due_date_with_offset_stored_as_utc(client: TestClient):
    teacher, _, classroom = _classroom_with_student(client)

    data = create_assignment(client, teacher, classroom["id"], "Offset", "2099-01-01T00:00:00+08:00")
    assert data["due_date"].startswith("2098-12-31T16:00:00")

    fetched = client.get(f"/api/v2/assignments/{data['id']}", headers=teacher).json()
    assert fetched["due_date"].startswith("2098-12-31T16:00:00")


def test_student_order_uses_utc_instant_across_offsets(client: TestClient):
    teacher, student, classroom = _classroom_with_student(client)
    # 2030-01-01T10:00-05:00 = 15:00Z，晚于 2030-01-01T12:00Z
    later = create_assignment(client, teacher, classroom["id"], "Later", "2030-01-01T10:00:00-05:00")
    sooner = create_assignment(client, teacher, classroom["id"], "Sooner", "2030-01-01T12:00:00Z")

    items = client.get("/api/v2/assignments/", headers=student).json()["assignments"]
    assert [a["id"] for a in items] == [sooner["id"], later["id"]]


def test_offset_due_date_in_future_is_not_late(client: TestClient):
    teacher, student, classroom = _classroom_with_student(client)
    due = datetime.now(timezone(timedelta(hours=-5))) + timedelta(hours=2)
    assignment = create_assignment(client, teacher, classroom["id"], "Soon", due.isoformat())

    assert upload(client, student, assignment["id"]).status_code == 201
    stats = client.get("/dashboard/teacher", headers=teacher).json()["stats"]
    assert stats["late_submissions"] == 0
