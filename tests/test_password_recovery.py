import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from taskmaster.config import get_settings
from taskmaster.database import AsyncSessionLocal
from taskmaster.exceptions import UnauthorizedError
from taskmaster.main import app
from taskmaster.models.email import EmailLog
from taskmaster.models.user import VerificationCode
from taskmaster.services import password_recovery
from taskmaster.services.scheduler import purge_stale_verification_codes


@pytest.fixture
def codes(monkeypatch):
    """Make generated codes predictable: CODE22, CODE33, ..."""
    issued = iter(["CODE22", "CODE33", "CODE44", "CODE55"])
    monkeypatch.setattr(password_recovery, "generate_verification_code", lambda length=6: next(issued))


def reset(client, code, password="newpass1", confirm=None, email="alice@example.com"):
    return client.post("/auth/reset-password", json={
        "email": email,
        "code": code,
        "password": password,
        "confirm_password": confirm or password,
    })


def run(client, coro_fn):
    """Run a coroutine on the app's event loop."""
    return client.portal.call(coro_fn)


async def _email_logs():
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(EmailLog))
        return [(log.to_email, log.category, log.text_body) for log in result.scalars().all()]


async def _code_rows():
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(VerificationCode.code, VerificationCode.used))
        return sorted(tuple(row) for row in result.all())


def test_forgot_password_same_response_for_unknown_email(client: TestClient, test_user, codes):
    known = client.post("/auth/forgot-password", json={"email": "alice@example.com"})
    unknown = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()


def test_forgot_password_queues_email(client: TestClient, test_user, codes):
    client.post("/auth/forgot-password", json={"email": "  Alice@Example.com "})
    logs = run(client, _email_logs)
    assert len(logs) == 1
    to_email, category, body = logs[0]
    assert to_email == "alice@example.com"
    assert category == "password_reset"
    assert "CODE22" in body


def test_reset_password_with_valid_code(client: TestClient, test_user, codes):
    client.post("/auth/forgot-password", json={"email": "alice@example.com"})

    response = reset(client, "code22")
    assert response.status_code == 200
    assert client.post("/auth/login", json={"email": "alice@example.com", "password": "newpass1"}).status_code == 200
    assert client.post("/auth/login", json={"email": "alice@example.com", "password": "secret123"}).status_code == 401


def test_code_is_single_use(client: TestClient, test_user, codes):
    client.post("/auth/forgot-password", json={"email": "alice@example.com"})
    assert reset(client, "CODE22").status_code == 200
    assert reset(client, "CODE22", password="another1").status_code == 401


async def _redeem_concurrently(code, *passwords):
    async def attempt(password):
        async with AsyncSessionLocal() as db:
            try:
                await password_recovery.reset_password(db, "alice@example.com", code, password)
            except UnauthorizedError:
                return "rejected"
            return "ok"

    return await asyncio.gather(*(attempt(p) for p in passwords))


def test_concurrent_resets_redeem_code_once(client: TestClient, test_user, codes):
    client.post("/auth/forgot-password", json={"email": "alice@example.com"})

    outcomes = client.portal.call(_redeem_concurrently, "CODE22", "first111", "second22")
    assert sorted(outcomes) == ["ok", "rejected"]
    assert run(client, _code_rows) == [("CODE22", True)]


def test_new_request_supersedes_old_code(client: TestClient, test_user, codes):
    client.post("/auth/forgot-password", json={"email": "alice@example.com"})
    client.post("/auth/forgot-password", json={"email": "alice@example.com"})

    assert run(client, _code_rows) == [("CODE33", False)]
    assert reset(client, "CODE22").status_code == 401
    assert reset(client, "CODE33").status_code == 200


def test_expired_code_rejected(client: TestClient, test_user, codes):
    expired = get_settings().model_copy(update={"VERIFICATION_CODE_EXPIRE_MINUTES": -1})
    app.dependency_overrides[get_settings] = lambda: expired
    client.post("/auth/forgot-password", json={"email": "alice@example.com"})
    del app.dependency_overrides[get_settings]

    assert reset(client, "CODE22").status_code == 401


def test_unknown_code_rejected(client: TestClient, test_user):
    assert reset(client, "ZZZZZZ").status_code == 401


def test_unknown_email_on_reset(client: TestClient, test_user):
    assert reset(client, "CODE22", email="ghost@example.com").status_code == 404


def test_password_mismatch(client: TestClient, test_user, codes):
    client.post("/auth/forgot-password", json={"email": "alice@example.com"})
    response = reset(client, "CODE22", password="newpass1", confirm="different1")
    assert response.status_code == 400
    # The code survives a rejected request
    assert reset(client, "CODE22").status_code == 200


def test_purge_removes_used_and_expired_codes(client: TestClient, test_user, make_user, codes):
    make_user("bob")
    expired = get_settings().model_copy(update={"VERIFICATION_CODE_EXPIRE_MINUTES": -1})
    app.dependency_overrides[get_settings] = lambda: expired
    client.post("/auth/forgot-password", json={"email": "bob@example.com"})  # CODE22, expired
    del app.dependency_overrides[get_settings]

    client.post("/auth/forgot-password", json={"email": "alice@example.com"})  # CODE33
    reset(client, "CODE33")  # used

    make_user("carol")
    client.post("/auth/forgot-password", json={"email": "carol@example.com"})  # CODE44, live

    assert run(client, purge_stale_verification_codes) == 2
    assert run(client, _code_rows) == [("CODE44", False)]
