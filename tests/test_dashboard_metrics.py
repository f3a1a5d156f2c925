from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

from fastapi.testclient import TestClient

from classgrade.models import SubmissionStatus
from classgrade.services.dashboard import (
    average_score,
    completion_count,
    day_streak,
    effective_score,
    is_completed,
    late_count,
)
from conftest import create_assignment, create_class, join_class, register_and_login, upload


def _sub(status="graded", ai=None, teacher=None, created=None, assignment_id=1):
    return SimpleNamespace(
        status=status,
        ai_score=ai,
        teacher_score=teacher,
        created_at=created or datetime(2026, 10, 19, 12, tzinfo=timezone.utc),
        assignment_id=assignment_id,
    )


def _on(day: date, status="graded"):
    return _sub(status=status, ai=50, created=datetime(day.year, day.month, day.day, 8, tzinfo=timezone.utc))


def test_effective_score_prefers_teacher():
    assert effective_score(_sub(ai=70, teacher=90)) == 90
    assert effective_score(_sub(ai=70, teacher=0)) == 0
    assert effective_score(_sub(ai=70)) == 70
    assert effective_score(_sub()) is None


def test_average_score_rounds_and_ignores_ungraded():
    subs = [
        _sub(ai=80),
        _sub(ai=85, teacher=91),
        _sub(status="grading", ai=10),
        _sub(status=SubmissionStatus.GRADING_FAILED),
        _sub(),
    ]
    # (80 + 91) / 2 = 85.5 -> 86
    assert average_score(subs) == 86
    assert average_score([]) == 0
    assert average_score([_sub(status="grading")]) == 0


def test_day_streak_counts_consecutive_days_from_today():
    today = date(2026, 10, 19)
    subs = [
        _on(today),
        _on(today),
        _on(today - timedelta(days=1), status="grading"),
        _on(today - timedelta(days=2)),
        _on(today - timedelta(days=4)),
    ]
    assert day_streak(subs, today) == 3


def test_average_uses_teacher_score_over_ai_score():
    assert average_score([_sub(ai=80, teacher=90), _sub(ai=70)]) == 80


def test_day_streak_breaks_at_first_gap():
    today = date(2026, 10, 19)
    subs = [_on(today), _on(today - timedelta(days=1)), _on(today - timedelta(days=3))]
    assert day_streak(subs, today) == 2


def test_day_streak_zero_without_submission_today():
    today = date(2026, 10, 19)
    assert day_streak([_on(today - timedelta(days=1))], today) == 0
    assert day_streak([], today) == 0


def test_day_streak_ignores_failed_attempts():
    today = date(2026, 10, 19)
    subs = [_on(today), _on(today - timedelta(days=1), status="grading_failed"), _on(today - timedelta(days=2))]
    assert day_streak(subs, today) == 1


def test_completion_uses_latest_attempt():
    assert is_completed([_sub(status="graded"), _sub(status="grading_failed")])
    assert is_completed([_sub(status="grading")])
    assert not is_completed([_sub(status="grading_failed"), _sub(status="graded")])
    assert not is_completed([])
    assert completion_count([[_sub()], [], [_sub(status="grading_failed")]]) == 1


def test_late_count():
    due = {1: datetime(2026, 10, 1, tzinfo=timezone.utc), 2: datetime(2026, 12, 1)}
    subs = [
        _sub(created=datetime(2026, 10, 2, tzinfo=timezone.utc), assignment_id=1),
        _sub(created=datetime(2026, 9, 30, tzinfo=timezone.utc), assignment_id=1),
        _sub(created=datetime(2026, 10, 2, tzinfo=timezone.utc), assignment_id=2),
        _sub(created=datetime(2026, 10, 2, tzinfo=timezone.utc), assignment_id=3),
    ]
    assert late_count(subs, due) == 1


# === 仪表盘接口 ===

def test_student_dashboard(client: TestClient, pipeline):
    _, teacher = register_and_login(client, "t@example.com", "teacher")
    _, student = register_and_login(client, "s@example.com", "student")
    classroom = create_class(client, teacher)
    join_class(client, student, classroom["class_code"])
    first = create_assignment(client, teacher, classroom["id"], "First")
    create_assignment(client, teacher, classroom["id"], "Second")

    pipeline.score = 71
    upload(client, student, first["id"])
    pipeline.score = 90
    upload(client, student, first["id"])

    resp = client.get("/dashboard/student", headers=student)
    assert resp.status_code == 200
    data = resp.json()
    stats = data["stats"]
    assert stats["active_classes"] == 1
    assert stats["completed_assignments"] == 1
    assert stats["pending_assignments"] == 1
    assert stats["average_score"] == 81  # (71 + 90) / 2 = 80.5
    assert stats["day_streak"] == 1
    assert len(data["recent_submissions"]) == 2
    assert data["user"]["role"] == "student"


def test_teacher_dashboard(client: TestClient):
    _, teacher = register_and_login(client, "t@example.com", "teacher")
    _, student = register_and_login(client, "s@example.com", "student")
    _, student2 = register_and_login(client, "s2@example.com", "student")
    classroom = create_class(client, teacher)
    join_class(client, student, classroom["class_code"])
    join_class(client, student2, classroom["class_code"])
    open_hw = create_assignment(client, teacher, classroom["id"], "Open")
    closed_hw = create_assignment(client, teacher, classroom["id"], "Closed", "2020-01-01T00:00:00Z")

    upload(client, student, open_hw["id"])
    upload(client, student2, closed_hw["id"])

    resp = client.get("/dashboard/teacher", headers=teacher)
    assert resp.status_code == 200
    stats = resp.json()["stats"]
    assert stats["total_classes"] == 1
    assert stats["total_students"] == 2
    assert stats["total_assignments"] == 2
    assert stats["total_submissions"] == 2
    assert stats["average_score"] == 80
    assert stats["late_submissions"] == 1
