import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# 应用级 engine 也指向内存库，避免测试写入 ./storage
os.environ.setdefault("CLASSGRADE_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("CLASSGRADE_SECRET_KEY", "test-secret")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from classgrade.db import Base, get_db
from classgrade.dependencies import get_grading_pipeline, get_storage
from classgrade.main import app
from classgrade.schemas.grading import GradingResult
from classgrade.utils.storage import SubmissionStorage

# Use in-memory SQLite for testing to ensure isolation
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class StubPipeline:
    """替代真实评分流水线，记录调用并返回预设结果。"""

    def __init__(self, score: float = 80, feedback: str = "Good work", error: Exception = None, breakdown=None):
        self.score = score
        self.feedback = feedback
        self.breakdown = breakdown
        self.error = error
        self.calls = []

    def grade(self, image_url, config):
        self.calls.append((image_url, config))
        if self.error is not None:
            raise self.error
        return GradingResult(score=self.score, feedback=self.feedback, breakdown=self.breakdown)


@pytest.fixture(scope="function")
def session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage(tmp_path):
    return SubmissionStorage(
        root=tmp_path / "uploads",
        public_base_url="http://testserver",
        secret_key="test-secret",
    )


@pytest.fixture
def pipeline():
    return StubPipeline()


@pytest.fixture(scope="function")
def client(session, storage, pipeline):
    """
    Create a TestClient with database, storage and grading overrides.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_grading_pipeline] = lambda: pipeline
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# === 测试辅助函数 ===

def signup(client: TestClient, email: str, role: str, name: str = "Test User", password: str = "password123"):
    resp = client.post(
        "/api/v2/auth/signup",
        json={"email": email, "password": password, "role": role, "name": name},
    )
    assert resp.status_code == 201
    return resp.json()


def login(client: TestClient, email: str, password: str = "password123") -> dict:
    resp = client.post("/api/v2/auth/login", data={"email": email, "password": password})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def register_and_login(client: TestClient, email: str, role: str, name: str = "Test User"):
    user = signup(client, email, role, name)
    return user["id"], login(client, email)


def create_class(client: TestClient, headers: dict, name: str = "Math 101") -> dict:
    resp = client.post("/api/v2/classes/", json={"name": name}, headers=headers)
    assert resp.status_code == 201
    return resp.json()


def join_class(client: TestClient, headers: dict, code: str) -> dict:
    resp = client.post("/api/v2/classes/join", json={"class_code": code}, headers=headers)
    assert resp.status_code == 201
    return resp.json()


def create_assignment(
    client: TestClient, headers: dict, class_id: int, title: str = "Homework 1",
    due_date: str = "2030-01-01T00:00:00Z",
) -> dict:
    resp = client.post(
        "/api/v2/assignments/",
        json={"class_id": class_id, "title": title, "due_date": due_date},
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()


def upload(client: TestClient, headers: dict, assignment_id: int, content: bytes = PNG_BYTES,
           content_type: str = "image/png", filename: str = "work.png"):
    return client.post(
        "/api/v2/submissions/",
        data={"assignment_id": str(assignment_id)},
        files={"file": (filename, content, content_type)},
        headers=headers,
    )
