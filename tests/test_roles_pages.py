from types import SimpleNamespace

from fastapi.testclient import TestClient

from classgrade.models import UserRole
from classgrade.services.roles import landing_path, page_redirect
from conftest import register_and_login


def test_landing_path():
    assert landing_path(None) == "/login"
    assert landing_path(SimpleNamespace(role=UserRole.STUDENT)) == "/dashboard/student"
    assert landing_path(SimpleNamespace(role=UserRole.TEACHER)) == "/dashboard/teacher"


def test_page_redirect():
    student = SimpleNamespace(role=UserRole.STUDENT)
    assert page_redirect(None, UserRole.STUDENT) == "/login"
    assert page_redirect(student, UserRole.TEACHER) == "/"
    assert page_redirect(student, UserRole.STUDENT) is None


def test_home_redirects_by_role(client: TestClient):
    _, student = register_and_login(client, "s@example.com", "student")
    _, teacher = register_and_login(client, "t@example.com", "teacher")

    anonymous = client.get("/", follow_redirects=False)
    assert anonymous.status_code == 307
    assert anonymous.headers["location"] == "/login"

    assert client.get("/", headers=student, follow_redirects=False).headers["location"] == "/dashboard/student"
    assert client.get("/", headers=teacher, follow_redirects=False).headers["location"] == "/dashboard/teacher"


def test_dashboard_pages_enforce_role(client: TestClient):
    _, student = register_and_login(client, "s@example.com", "student")

    anonymous = client.get("/dashboard/student", follow_redirects=False)
    assert anonymous.headers["location"] == "/login"

    wrong_role = client.get("/dashboard/teacher", headers=student, follow_redirects=False)
    assert wrong_role.status_code == 307
    assert wrong_role.headers["location"] == "/"


def test_login_page(client: TestClient):
    _, teacher = register_and_login(client, "t@example.com", "teacher")

    resp = client.get("/login")
    assert resp.status_code == 200
    assert resp.json()["login"] == "/api/v2/auth/login"

    logged_in = client.get("/login", headers=teacher, follow_redirects=False)
    assert logged_in.headers["location"] == "/dashboard/teacher"


def test_health(client: TestClient):
    assert client.get("/health").json() == {"status": "ok"}
