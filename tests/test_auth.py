from fastapi.testclient import TestClient

from taskmaster.config import get_settings
from taskmaster.utils.security import decode_access_token


def test_register_returns_token(client: TestClient):
    response = client.post("/auth/register", json={
        "email": "  New.User@Example.com ",
        "username": "newuser",
        "password": "secret123",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["token_type"] == "bearer"

    claims = decode_access_token(data["access_token"], get_settings())
    assert claims["email"] == "new.user@example.com"
    assert claims["username"] == "newuser"
    assert claims["role"] == "USER"


def test_register_duplicate_email(client: TestClient, test_user):
    response = client.post("/auth/register", json={
        "email": "alice@example.com",
        "username": "someoneelse",
        "password": "secret123",
    })
    assert response.status_code == 409
    assert "Email" in response.json()["detail"]


def test_register_duplicate_username(client: TestClient, test_user):
    response = client.post("/auth/register", json={
        "email": "other@example.com",
        "username": "alice",
        "password": "secret123",
    })
    assert response.status_code == 409


def test_register_rejects_short_password(client: TestClient):
    response = client.post("/auth/register", json={"email": "a@example.com", "password": "123"})
    assert response.status_code == 400


def test_login_user(client: TestClient, test_user):
    response = client.post("/auth/login", json={"email": "ALICE@example.com", "password": "secret123"})
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"


def test_login_wrong_password(client: TestClient, test_user):
    response = client.post("/auth/login", json={"email": "alice@example.com", "password": "wrong-pass"})
    assert response.status_code == 401


def test_token_endpoint_accepts_form(client: TestClient, test_user):
    response = client.post("/auth/token", data={"username": "alice@example.com", "password": "secret123"})
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"


def test_me_requires_token(client: TestClient):
    assert client.get("/auth/me").status_code == 401
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_me_returns_current_user(client: TestClient, test_user):
    user_id, headers = test_user
    response = client.get("/auth/me", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == user_id
    assert data["email"] == "alice@example.com"
    assert data["role"]["name"] == "USER"
    assert "password" not in data


def test_html_is_stripped_from_names(client: TestClient):
    response = client.post("/auth/register", json={
        "email": "bob@example.com",
        "password": "secret123",
        "first_name": "<b>Bob</b>",
    })
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
    assert client.get("/auth/me", headers=headers).json()["first_name"] == "Bob"
