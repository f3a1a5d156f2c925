import pytest
from fastapi.testclient import TestClient

import classgrade.api.files as files_api
from classgrade.config import get_settings
from classgrade.errors import NotFoundError
from classgrade.utils.storage import SubmissionStorage
from conftest import create_assignment, create_class, join_class, register_and_login, upload


def test_build_key_layout():
    assert SubmissionStorage.build_key(3, 7, "photo.PNG", 1700000000000) == "3/7/1700000000000.png"
    assert SubmissionStorage.build_key(3, 7, None, 1) == "3/7/1.jpg"
    assert SubmissionStorage.build_key(3, 7, "weird.name.!!", 1) == "3/7/1.jpg"


def test_resolve_rejects_traversal(storage):
    assert storage.resolve("1/2/3.png") == (storage.root / "1/2/3.png").resolve()
    with pytest.raises(NotFoundError):
        storage.resolve("../../etc/passwd")


def test_signed_url_roundtrip_and_expiry(storage):
    url = storage.signed_url("1/2/3.png", expires_in=60, now=1000)
    assert url.startswith("http://testserver/files/1/2/3.png?")
    signature = url.split("signature=")[1]

    assert storage.verify_signature("1/2/3.png", 1060, signature, now=1030)
    assert not storage.verify_signature("1/2/3.png", 1060, signature, now=1061)
    assert not storage.verify_signature("1/2/4.png", 1060, signature, now=1030)
    assert not storage.verify_signature("1/2/3.png", 1060, "0" * 64, now=1030)


def _uploaded_file(client: TestClient):
    _, teacher = register_and_login(client, "t@example.com", "teacher")
    _, student = register_and_login(client, "s@example.com", "student")
    classroom = create_class(client, teacher)
    join_class(client, student, classroom["class_code"])
    assignment = create_assignment(client, teacher, classroom["id"])
    return upload(client, student, assignment["id"], b"\x89PNG-fake-image-data").json()


def test_public_file_download(client: TestClient):
    submission = _uploaded_file(client)

    resp = client.get(f"/files/{submission['file_path']}")
    assert resp.status_code == 200
    assert resp.content == b"\x89PNG-fake-image-data"
    assert client.get("/files/1/1/missing.png").status_code == 404


def test_private_file_download_requires_signature(client: TestClient, storage, monkeypatch):
    submission = _uploaded_file(client)
    private = get_settings().model_copy(update={"storage_public": False})
    monkeypatch.setattr(files_api, "get_settings", lambda: private)

    path = submission["file_path"]
    assert client.get(f"/files/{path}").status_code == 403

    signed = storage.signed_url(path)
    query = signed.split("?", 1)[1]
    resp = client.get(f"/files/{path}?{query}")
    assert resp.status_code == 200

    tampered = client.get(f"/files/{path}?expires=9999999999&signature=abc")
    assert tampered.status_code == 403


def test_upload_size_limit(client: TestClient, storage):
    storage.max_upload_bytes = 8
    _, teacher = register_and_login(client, "t@example.com", "teacher")
    _, student = register_and_login(client, "s@example.com", "student")
    classroom = create_class(client, teacher)
    join_class(client, student, classroom["class_code"])
    assignment = create_assignment(client, teacher, classroom["id"])

    resp = upload(client, student, assignment["id"], b"x" * 9)
    assert resp.status_code == 400


def test_delete_removes_stored_file(storage):
    target = storage.resolve("1/2/3.png")
    target.parent.mkdir(parents=True)
    target.write_bytes(b"data")

    storage.delete("1/2/3.png")
    assert not target.exists()
    # 再次删除不报错
    storage.delete("1/2/3.png")
