from fastapi.testclient import TestClient

from taskmaster.config import get_settings
from taskmaster.main import app
from taskmaster.services.storage import resource_type_for


def test_upload_requires_auth(client: TestClient):
    response = client.post("/upload/", files={"file": ("a.txt", b"hello", "text/plain")})
    assert response.status_code == 401


def test_upload_file(client: TestClient, auth_headers, storage):
    response = client.post("/upload/", files={"file": ("notes.txt", b"hello world", "text/plain")}, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["original_name"] == "notes.txt"
    assert data["mime_type"] == "text/plain"
    assert data["size"] == 11
    assert data["path"] == f"https://res.example.com/{data['filename']}"


def test_upload_empty_file_rejected(client: TestClient, auth_headers):
    response = client.post("/upload/", files={"file": ("empty.txt", b"", "text/plain")}, headers=auth_headers)
    assert response.status_code == 400


def test_upload_over_size_limit_rejected(client: TestClient, auth_headers, storage):
    small = get_settings().model_copy(update={"MAX_UPLOAD_SIZE_BYTES": 8})
    app.dependency_overrides[get_settings] = lambda: small
    try:
        exact = client.post("/upload/", files={"file": ("a.txt", b"12345678", "text/plain")}, headers=auth_headers)
        over = client.post("/upload/", files={"file": ("b.txt", b"123456789", "text/plain")}, headers=auth_headers)
    finally:
        del app.dependency_overrides[get_settings]

    assert exact.status_code == 200
    assert over.status_code == 400
    assert len(storage.uploads) == 1


def test_upload_task_file(client: TestClient, test_user, create_project, create_task, storage):
    _, headers = test_user
    project = create_project(headers)
    task = create_task(headers, project["id"])

    response = client.post(
        f"/upload/task/{task['id']}",
        files={"file": ("my report (final)!.pdf", b"%PDF-1.4", "application/pdf")},
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["original_name"] == "my report final.pdf"
    assert data["filename"].startswith(f"tasks/{task['id']}/")
    assert storage.uploads[0]["tags"] == [f"task_{task['id']}"]
    assert storage.uploads[0]["resource_type"] == "image"


def test_upload_task_file_unknown_task(client: TestClient, auth_headers):
    response = client.post("/upload/task/9999", files={"file": ("a.txt", b"x", "text/plain")}, headers=auth_headers)
    assert response.status_code == 404


def test_resource_type_for():
    assert resource_type_for("image/png") == "image"
    assert resource_type_for("application/pdf") == "image"
    assert resource_type_for("video/mp4") == "video"
    assert resource_type_for("audio/mpeg") == "video"
    assert resource_type_for("application/zip") == "raw"
    assert resource_type_for(None) == "raw"
