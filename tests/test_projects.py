from fastapi.testclient import TestClient


def test_create_project(client: TestClient, test_user):
    user_id, headers = test_user
    response = client.post("/projects/", json={
        "name": "Website",
        "description": "Relaunch",
        "start_date": "2026-01-01",
        "end_date": "2026-03-01",
    }, headers=headers)
    assert response.status_code == 201
    data = response.json()
    assert data["owner_id"] == user_id
    assert data["owner"]["id"] == user_id
    assert data["status"] == "Active"
    assert data["task_count"] == 0
    assert data["member_count"] == 0


def test_create_project_rejects_bad_dates(client: TestClient, test_user):
    _, headers = test_user
    response = client.post("/projects/", json={
        "name": "Backwards",
        "start_date": "2026-03-01",
        "end_date": "2026-01-01",
    }, headers=headers)
    assert response.status_code == 400


def test_create_project_rejects_unknown_status(client: TestClient, test_user):
    _, headers = test_user
    response = client.post("/projects/", json={"name": "X", "status": "Paused"}, headers=headers)
    assert response.status_code == 400


def test_list_projects_only_visible(client: TestClient, test_user, make_user, create_project, add_member):
    owner_id, owner_headers = test_user
    member_id, member_headers = make_user()
    _, outsider_headers = make_user()

    shared = create_project(owner_headers, name="Shared")
    create_project(owner_headers, name="Private")
    add_member(owner_headers, shared["id"], member_id)

    names = {p["name"] for p in client.get("/projects/", headers=owner_headers).json()}
    assert names == {"Shared", "Private"}
    names = {p["name"] for p in client.get("/projects/", headers=member_headers).json()}
    assert names == {"Shared"}
    assert client.get("/projects/", headers=outsider_headers).json() == []


def test_list_projects_by_owner(client: TestClient, test_user, create_project):
    user_id, headers = test_user
    create_project(headers, name="One")
    create_project(headers, name="Two")
    response = client.get(f"/projects/owner/{user_id}", headers=headers)
    assert response.status_code == 200
    assert len(response.json()) == 2
    assert client.get("/projects/owner/9999", headers=headers).status_code == 404


def test_project_detail_includes_members(client: TestClient, test_user, make_user, create_project, add_member):
    _, headers = test_user
    member_id, _ = make_user()
    project = create_project(headers)
    add_member(headers, project["id"], member_id, role="Leader")

    response = client.get(f"/projects/{project['id']}", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["member_count"] == 1
    assert data["members"][0]["user"]["id"] == member_id
    assert data["members"][0]["role"] == "Leader"
    assert client.get("/projects/9999", headers=headers).status_code == 404


def test_member_can_update_project(client: TestClient, test_user, make_user, create_project, add_member):
    _, owner_headers = test_user
    member_id, member_headers = make_user()
    project = create_project(owner_headers)
    add_member(owner_headers, project["id"], member_id)

    response = client.patch(f"/projects/{project['id']}", json={"status": "On Hold"}, headers=member_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "On Hold"


def test_outsider_cannot_update_project(client: TestClient, test_user, make_user, create_project):
    _, owner_headers = test_user
    _, outsider_headers = make_user()
    project = create_project(owner_headers)

    response = client.patch(f"/projects/{project['id']}", json={"name": "Hijacked"}, headers=outsider_headers)
    assert response.status_code == 403


def test_owner_transfers_project(client: TestClient, test_user, make_user, create_project):
    _, owner_headers = test_user
    new_owner_id, _ = make_user()
    project = create_project(owner_headers)

    response = client.patch(f"/projects/{project['id']}", json={"owner_id": new_owner_id}, headers=owner_headers)
    assert response.status_code == 200
    assert response.json()["owner"]["id"] == new_owner_id


def test_only_owner_can_delete_project(client: TestClient, test_user, make_user, create_project, add_member):
    _, owner_headers = test_user
    member_id, member_headers = make_user()
    project = create_project(owner_headers)
    add_member(owner_headers, project["id"], member_id)

    assert client.delete(f"/projects/{project['id']}", headers=member_headers).status_code == 403
    assert client.delete(f"/projects/{project['id']}", headers=owner_headers).status_code == 204
    assert client.get(f"/projects/{project['id']}", headers=owner_headers).status_code == 404


def test_delete_project_cascades(client: TestClient, test_user, make_user, create_project, create_task, add_member):
    _, headers = test_user
    member_id, member_headers = make_user()
    project = create_project(headers)
    member = add_member(headers, project["id"], member_id)
    task = create_task(headers, project["id"])

    comment = client.post("/comments/", json={"task_id": task["id"], "content": "First"}, headers=headers).json()
    attachment = client.post("/attachments/", json={
        "task_id": task["id"],
        "filename": "tasks/1/brief",
        "original_name": "brief.pdf",
        "path": "https://res.example.com/tasks/1/brief",
        "mime_type": "application/pdf",
        "size": 1024,
    }, headers=headers).json()

    assert client.delete(f"/projects/{project['id']}", headers=headers).status_code == 204

    assert client.get(f"/project-members/{member['id']}", headers=headers).status_code == 404
    assert client.get(f"/tasks/{task['id']}", headers=headers).status_code == 404
    assert client.get(f"/comments/{comment['id']}", headers=headers).status_code == 404
    assert client.get(f"/attachments/{attachment['id']}", headers=headers).status_code == 404
    assert client.get(f"/project-members/user/{member_id}", headers=member_headers).json() == []
