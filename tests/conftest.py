import os
import tempfile

# Settings are read at import time, so the environment must be ready first
_TEST_DIR = tempfile.mkdtemp(prefix="taskmaster-tests-")
DB_PATH = os.path.join(_TEST_DIR, "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{DB_PATH}"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["EMAIL_HOST"] = ""

import pytest
from fastapi.testclient import TestClient

from taskmaster.dependencies import get_storage
from taskmaster.main import app
from taskmaster.services.storage import StoredObject


class FakeStorage:
    """In-memory stand-in for the Cloudinary client."""

    def __init__(self):
        self.objects = {}
        self.uploads = []
        self.deleted = []

    async def upload(self, data, folder, resource_type="auto", tags=None):
        public_id = f"{folder}/object_{len(self.uploads) + 1}"
        self.objects[public_id] = data
        self.uploads.append({"public_id": public_id, "folder": folder,
                             "resource_type": resource_type, "tags": tags or []})
        return StoredObject(public_id=public_id, url=f"https://res.example.com/{public_id}", size=len(data))

    async def delete(self, public_id, resource_type="image"):
        self.deleted.append((public_id, resource_type))
        return self.objects.pop(public_id, None) is not None


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(storage):
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    if os.path.exists(DB_PATH):
        os.remove(DB_PATH)


@pytest.fixture
def make_user(client):
    """Register a user and return (user_id, auth headers)."""
    counter = {"n": 0}

    def _make_user(username=None, password="secret123", **extra):
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        payload = {
            "email": f"{username}@example.com",
            "username": username,
            "password": password,
            "first_name": extra.pop("first_name", username.capitalize()),
            **extra,
        }
        response = client.post("/auth/register", json=payload)
        assert response.status_code == 201, response.text
        headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
        me = client.get("/auth/me", headers=headers)
        return me.json()["id"], headers

    return _make_user


@pytest.fixture
def test_user(make_user):
    return make_user("alice")


@pytest.fixture
def auth_headers(test_user):
    return test_user[1]


@pytest.fixture
def create_project(client):
    def _create_project(headers, name="Website", **extra):
        response = client.post("/projects/", json={"name": name, **extra}, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create_project


@pytest.fixture
def create_task(client):
    def _create_task(headers, project_id, title="Write copy", **extra):
        response = client.post("/tasks/", json={"title": title, "project_id": project_id, **extra}, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create_task


@pytest.fixture
def add_member(client):
    def _add_member(headers, project_id, user_id, role="Member"):
        response = client.post(
            "/project-members/",
            json={"project_id": project_id, "user_id": user_id, "role": role},
            headers=headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _add_member
