import asyncio

from fastapi.testclient import TestClient
from sqlalchemy import delete, select

from taskmaster.config import get_settings
from taskmaster.database import AsyncSessionLocal
from taskmaster.main import app
from taskmaster.models.tasks import Attachment, Comment
from taskmaster.models.user import Role
from taskmaster.services.users import DEFAULT_ROLES, seed_roles


def test_create_user_without_auth(client: TestClient):
    response = client.post("/users/", json={
        "email": "carol@example.com",
        "username": "carol",
        "password": "secret123",
        "phone": "555-0100",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "carol@example.com"
    assert data["status"] is True
    assert data["role"]["name"] == "USER"


def test_list_and_get_users(client: TestClient, test_user, make_user):
    user_id, headers = test_user
    other_id, _ = make_user()

    response = client.get("/users/", headers=headers)
    assert response.status_code == 200
    assert {u["id"] for u in response.json()} == {user_id, other_id}

    assert client.get(f"/users/{other_id}", headers=headers).status_code == 200
    assert client.get("/users/9999", headers=headers).status_code == 404


def test_update_own_profile(client: TestClient, test_user):
    user_id, headers = test_user
    response = client.patch(f"/users/{user_id}", json={"last_name": "Smith"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["last_name"] == "Smith"


def test_cannot_update_other_user(client: TestClient, test_user, make_user):
    _, headers = test_user
    other_id, _ = make_user()
    response = client.patch(f"/users/{other_id}", json={"last_name": "Nope"}, headers=headers)
    assert response.status_code == 403


def test_regular_user_cannot_change_role(client: TestClient, test_user):
    user_id, headers = test_user
    response = client.patch(f"/users/{user_id}", json={"role_id": 1}, headers=headers)
    assert response.status_code == 403


def test_password_change_allows_new_login(client: TestClient, test_user):
    user_id, headers = test_user
    client.patch(f"/users/{user_id}", json={"password": "brandnew1"}, headers=headers)
    assert client.post("/auth/login", json={"email": "alice@example.com", "password": "brandnew1"}).status_code == 200
    assert client.post("/auth/login", json={"email": "alice@example.com", "password": "secret123"}).status_code == 401


def test_upload_avatar(client: TestClient, test_user, storage):
    user_id, headers = test_user
    response = client.put(
        f"/users/{user_id}/avatar",
        files={"file": ("me.png", b"\x89PNG fake image", "image/png")},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["avatar"].startswith("https://res.example.com/avatars/")
    assert storage.uploads[0]["folder"] == "avatars"


def test_avatar_over_size_limit_rejected(client: TestClient, test_user, storage):
    user_id, headers = test_user
    small = get_settings().model_copy(update={"MAX_AVATAR_SIZE_BYTES": 4})
    app.dependency_overrides[get_settings] = lambda: small
    try:
        response = client.put(
            f"/users/{user_id}/avatar",
            files={"file": ("me.png", b"\x89PNG fake image", "image/png")},
            headers=headers,
        )
    finally:
        del app.dependency_overrides[get_settings]

    assert response.status_code == 400
    assert storage.uploads == []


def test_avatar_must_be_image(client: TestClient, test_user):
    user_id, headers = test_user
    response = client.put(
        f"/users/{user_id}/avatar",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=headers,
    )
    assert response.status_code == 400


def test_delete_self(client: TestClient, test_user):
    user_id, headers = test_user
    assert client.delete(f"/users/{user_id}", headers=headers).status_code == 204
    # The token now points at a user that no longer exists
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_cannot_delete_user_owning_projects(client: TestClient, test_user, create_project):
    user_id, headers = test_user
    create_project(headers)
    assert client.delete(f"/users/{user_id}", headers=headers).status_code == 409


async def _rows_for_user(user_id):
    async with AsyncSessionLocal() as db:
        comments = await db.execute(select(Comment.id).filter(Comment.user_id == user_id))
        attachments = await db.execute(select(Attachment.id).filter(Attachment.user_id == user_id))
        return len(comments.all()), len(attachments.all())


def test_delete_user_removes_their_comments_and_attachments(
    client: TestClient, test_user, make_user, create_project, add_member, create_task
):
    _, owner_headers = test_user
    member_id, member_headers = make_user()
    project = create_project(owner_headers)
    add_member(owner_headers, project["id"], member_id)
    task = create_task(owner_headers, project["id"])

    client.post("/comments/", json={"task_id": task["id"], "content": "Mine"}, headers=member_headers)
    client.post("/comments/", json={"task_id": task["id"], "content": "Owner note"}, headers=owner_headers)
    client.post("/attachments/", json={
        "task_id": task["id"],
        "filename": "tasks/1/object_1",
        "original_name": "notes.txt",
        "path": "https://res.example.com/tasks/1/object_1",
        "mime_type": "text/plain",
        "size": 12,
    }, headers=member_headers)
    assert client.portal.call(_rows_for_user, member_id) == (1, 1)

    assert client.delete(f"/users/{member_id}", headers=member_headers).status_code == 204

    assert client.portal.call(_rows_for_user, member_id) == (0, 0)
    comments = client.get(f"/comments/task/{task['id']}", headers=owner_headers).json()
    assert [c["content"] for c in comments] == ["Owner note"]


async def _seed_from_two_workers():
    async with AsyncSessionLocal() as db:
        await db.execute(delete(Role))
        await db.commit()

    async def seed():
        async with AsyncSessionLocal() as db:
            await seed_roles(db)

    await asyncio.gather(seed(), seed())

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Role.name))
        return sorted(result.scalars().all())


def test_concurrent_role_seeding(client: TestClient):
    assert client.portal.call(_seed_from_two_workers) == sorted(DEFAULT_ROLES)
