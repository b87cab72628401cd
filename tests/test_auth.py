"""Tests for login, sessions and password flows."""

from urllib.parse import parse_qs, urlparse

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from quadriparlanti.db.models import ApiKey, UserStatus


def _token_from(link: str) -> str:
    return parse_qs(urlparse(link).query)["token_hash"][0]


@pytest.mark.asyncio
async def test_login_issues_access_key(client: AsyncClient, teacher_user):
    response = await client.post(
        "/v1/auth/login", json={"email": "Rossi@Scuola.test", "password": "password123"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["access_key"].startswith("qpk_")
    assert data["access_key"].startswith(data["key_prefix"])
    assert data["expires_at"] is not None
    assert data["user"]["id"] == teacher_user.id
    assert data["user"]["role"] == "docente"

    me = await client.get(
        "/v1/auth/me", headers={"Authorization": f"Bearer {data['access_key']}"}
    )
    assert me.status_code == 200
    assert me.json()["email"] == "rossi@scuola.test"


@pytest.mark.asyncio
async def test_key_usage_is_persisted(
    client: AsyncClient, db_session, teacher_user, teacher_headers: dict
):
    response = await client.get("/v1/auth/me", headers=teacher_headers)
    assert response.status_code == 200

    # A rollback would discard the timestamp if the request had not committed it
    await db_session.rollback()
    key = (
        await db_session.execute(select(ApiKey).where(ApiKey.user_id == teacher_user.id))
    ).scalar_one()
    await db_session.refresh(key)
    assert key.last_used_at is not None


@pytest.mark.asyncio
async def test_login_with_wrong_password(client: AsyncClient, teacher_user):
    response = await client.post(
        "/v1/auth/login", json={"email": "rossi@scuola.test", "password": "sbagliata"}
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"

    response = await client.post(
        "/v1/auth/login", json={"email": "nessuno@scuola.test", "password": "password123"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_suspended_user_cannot_log_in(client: AsyncClient, db_session, teacher_user):
    teacher_user.status = UserStatus.SUSPENDED
    await db_session.commit()

    response = await client.post(
        "/v1/auth/login", json={"email": "rossi@scuola.test", "password": "password123"}
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Account is not active"


@pytest.mark.asyncio
async def test_logout_revokes_key(client: AsyncClient, teacher_headers: dict):
    response = await client.delete("/v1/auth/session", headers=teacher_headers)
    assert response.status_code == 204

    me = await client.get("/v1/auth/me", headers=teacher_headers)
    assert me.status_code == 401


@pytest.mark.asyncio
async def test_change_password(client: AsyncClient, teacher_headers: dict):
    wrong = await client.post(
        "/v1/auth/change-password",
        headers=teacher_headers,
        json={"current_password": "nope", "new_password": "nuovapassword"},
    )
    assert wrong.status_code == 400

    response = await client.post(
        "/v1/auth/change-password",
        headers=teacher_headers,
        json={"current_password": "password123", "new_password": "nuovapassword"},
    )
    assert response.status_code == 200

    login = await client.post(
        "/v1/auth/login", json={"email": "rossi@scuola.test", "password": "nuovapassword"}
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_password_reset_answers_generically(
    client: AsyncClient, teacher_user, dispatched: list
):
    unknown = await client.post("/v1/auth/password-reset", json={"email": "nessuno@scuola.test"})
    known = await client.post("/v1/auth/password-reset", json={"email": "rossi@scuola.test"})

    assert unknown.status_code == known.status_code == 200
    assert unknown.json() == known.json()

    assert len(dispatched) == 1
    name, (email, kind, link) = dispatched[0]
    assert name == "send_account_email"
    assert email == "rossi@scuola.test"
    assert kind == "recovery"
    assert link.startswith("https://api.scuola.test/auth/callback?token_hash=qpt_")
    assert link.endswith("&type=recovery")


@pytest.mark.asyncio
async def test_reset_then_set_password(client: AsyncClient, teacher_user, dispatched: list):
    await client.post("/v1/auth/password-reset", json={"email": "rossi@scuola.test"})
    token = _token_from(dispatched[0][1][2])

    response = await client.post(
        "/v1/auth/set-password", json={"token": token, "password": "ricominciamo"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "active"

    login = await client.post(
        "/v1/auth/login", json={"email": "rossi@scuola.test", "password": "ricominciamo"}
    )
    assert login.status_code == 200

    reused = await client.post(
        "/v1/auth/set-password", json={"token": token, "password": "unaltravolta"}
    )
    assert reused.status_code == 400
    assert reused.json()["detail"] == "Invalid or expired token"


@pytest.mark.asyncio
async def test_set_password_with_bad_token(client: AsyncClient):
    response = await client.post(
        "/v1/auth/set-password", json={"token": "qpt_nonesiste", "password": "password123"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_callback_forwards_valid_link(client: AsyncClient, teacher_user, dispatched: list):
    await client.post("/v1/auth/password-reset", json={"email": "rossi@scuola.test"})
    token = _token_from(dispatched[0][1][2])

    response = await client.get(
        "/auth/callback", params={"token_hash": token, "type": "recovery", "locale": "en"}
    )
    assert response.status_code == 307
    assert response.headers["location"] == (
        f"https://scuola.test/en/set-password?token={token}&type=recovery"
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "params",
    [
        {},
        {"token_hash": "qpt_nonesiste", "type": "recovery"},
        {"token_hash": "qpt_nonesiste", "type": "magic"},
    ],
)
async def test_callback_errors_go_to_login(client: AsyncClient, params: dict):
    response = await client.get("/auth/callback", params=params)
    assert response.status_code == 307
    assert response.headers["location"] == "https://scuola.test/it/login?error=auth_error"
