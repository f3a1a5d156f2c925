from fastapi.testclient import TestClient

from conftest import login, signup


def test_signup_student(client: TestClient):
    response = client.post(
        "/api/v2/auth/signup",
        json={
            "email": "Student1@Example.com",
            "password": "password123",
            "name": "Test Student",
            "role": "student",
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "student1@example.com"
    assert "id" in data
    assert data["role"] == "student"
    assert data["email_confirmed_at"] is not None


def test_signup_teacher(client: TestClient):
    data = signup(client, "teacher1@example.com", "teacher", "Test Teacher")
    assert data["role"] == "teacher"
    assert data["name"] == "Test Teacher"


def test_signup_duplicate_email(client: TestClient):
    signup(client, "dup@example.com", "student")
    response = client.post(
        "/api/v2/auth/signup",
        json={"email": "dup@example.com", "password": "password123", "name": "Again", "role": "teacher"},
    )
    assert response.status_code == 409


def test_signup_rejects_unknown_role(client: TestClient):
    response = client.post(
        "/api/v2/auth/signup",
        json={"email": "x@example.com", "password": "password123", "name": "X", "role": "admin"},
    )
    assert response.status_code == 422


def test_login(client: TestClient):
    signup(client, "user1@example.com", "student")

    response = client.post(
        "/api/v2/auth/login",
        data={"email": "user1@example.com", "password": "password123"},
    )
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"


def test_login_invalid_password(client: TestClient):
    signup(client, "user2@example.com", "student")

    response = client.post(
        "/api/v2/auth/login",
        data={"email": "user2@example.com", "password": "wrongpassword"},
    )
    assert response.status_code == 401


def test_login_unconfirmed_email(client: TestClient, session):
    from classgrade.models import User

    signup(client, "pending@example.com", "student")
    user = session.query(User).filter(User.email == "pending@example.com").one()
    user.email_confirmed_at = None
    session.commit()

    response = client.post(
        "/api/v2/auth/login",
        data={"email": "pending@example.com", "password": "password123"},
    )
    assert response.status_code == 403


def test_me(client: TestClient):
    signup(client, "me@example.com", "teacher", "Me")
    headers = login(client, "me@example.com")

    response = client.get("/api/v2/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["email"] == "me@example.com"


def test_me_requires_token(client: TestClient):
    assert client.get("/api/v2/auth/me").status_code == 401
    bad = client.get("/api/v2/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401
