"""Tests for teacher account management."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from quadriparlanti.db.models import ApiKey, User, UserStatus, WorkStatus


@pytest.mark.asyncio
async def test_create_invited_teacher(client: AsyncClient, admin_headers: dict, dispatched: list):
    response = await client.post(
        "/v1/admin/teachers",
        headers=admin_headers,
        json={"email": "Verdi@Scuola.test", "name": "Giulia Verdi"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["teacher"]["email"] == "verdi@scuola.test"
    assert data["teacher"]["status"] == "invited"
    assert data["teacher"]["role"] == "docente"
    assert data["invite_url"].startswith("https://api.scuola.test/auth/callback?token_hash=qpt_")
    assert data["invite_url"].endswith("&type=invite")

    assert dispatched == [("send_account_email", ("verdi@scuola.test", "invite", data["invite_url"]))]


@pytest.mark.asyncio
async def test_invited_teacher_accepts(client: AsyncClient, admin_headers: dict):
    created = await client.post(
        "/v1/admin/teachers",
        headers=admin_headers,
        json={"email": "verdi@scuola.test", "name": "Giulia Verdi"},
    )
    token = created.json()["invite_url"].split("token_hash=")[1].split("&")[0]

    login = await client.post(
        "/v1/auth/login", json={"email": "verdi@scuola.test", "password": "benvenuta"}
    )
    assert login.status_code == 401

    response = await client.post(
        "/v1/auth/set-password", json={"token": token, "password": "benvenuta"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "active"

    login = await client.post(
        "/v1/auth/login", json={"email": "verdi@scuola.test", "password": "benvenuta"}
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_create_active_teacher_with_password(
    client: AsyncClient, admin_headers: dict, dispatched: list
):
    response = await client.post(
        "/v1/admin/teachers",
        headers=admin_headers,
        json={
            "email": "neri@scuola.test",
            "name": "Marco Neri",
            "send_invitation": False,
            "password": "password456",
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["teacher"]["status"] == "active"
    assert data["invite_url"] is None
    assert dispatched == []


@pytest.mark.asyncio
async def test_password_required_without_invitation(client: AsyncClient, admin_headers: dict):
    response = await client.post(
        "/v1/admin/teachers",
        headers=admin_headers,
        json={"email": "neri@scuola.test", "name": "Marco Neri", "send_invitation": False},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_email(client: AsyncClient, admin_headers: dict, teacher_user):
    response = await client.post(
        "/v1/admin/teachers",
        headers=admin_headers,
        json={"email": "ROSSI@scuola.test", "name": "Altro Rossi"},
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_teacher_cannot_manage_teachers(client: AsyncClient, teacher_headers: dict):
    response = await client.get("/v1/admin/teachers", headers=teacher_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_search_and_works_count(
    client: AsyncClient, admin_headers: dict, teacher_user, other_teacher, make_work
):
    await make_work(teacher_user)
    await make_work(teacher_user, WorkStatus.PUBLISHED)

    response = await client.get("/v1/admin/teachers", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {t["email"] for t in data["teachers"]} == {"rossi@scuola.test", "bianchi@scuola.test"}

    response = await client.get("/v1/admin/teachers", headers=admin_headers, params={"search": "ross"})
    data = response.json()
    assert data["total"] == 1
    assert data["teachers"][0]["works_count"] == 2

    detail = await client.get(f"/v1/admin/teachers/{teacher_user.id}", headers=admin_headers)
    assert detail.json()["works_count"] == 2


@pytest.mark.asyncio
async def test_stats(client: AsyncClient, db_session, admin_headers: dict, teacher_user, other_teacher):
    other_teacher.status = UserStatus.SUSPENDED
    await db_session.commit()

    response = await client.get("/v1/admin/teachers/stats", headers=admin_headers)
    assert response.json() == {"total": 2, "active": 1, "invited": 0, "suspended": 1}


@pytest.mark.asyncio
async def test_admin_is_not_a_teacher(client: AsyncClient, admin_user, admin_headers: dict):
    response = await client.get(f"/v1/admin/teachers/{admin_user.id}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_teacher(client: AsyncClient, admin_headers: dict, teacher_user):
    response = await client.patch(
        f"/v1/admin/teachers/{teacher_user.id}",
        headers=admin_headers,
        json={"name": "Mario Rossi", "bio": "Insegna storia."},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Mario Rossi"
    assert data["bio"] == "Insegna storia."
    assert data["status"] == "active"


@pytest.mark.asyncio
async def test_suspend_revokes_access(
    client: AsyncClient, db_session, admin_headers: dict, teacher_user, teacher_headers: dict
):
    response = await client.delete(f"/v1/admin/teachers/{teacher_user.id}", headers=admin_headers)
    assert response.status_code == 204

    keys = (
        await db_session.execute(select(ApiKey).where(ApiKey.user_id == teacher_user.id))
    ).scalars().all()
    assert keys and not any(k.is_active for k in keys)

    me = await client.get("/v1/auth/me", headers=teacher_headers)
    assert me.status_code == 401


@pytest.mark.asyncio
async def test_hard_delete(
    client: AsyncClient, db_session, admin_headers: dict, teacher_user, other_teacher, make_work
):
    await make_work(teacher_user)

    refused = await client.delete(
        f"/v1/admin/teachers/{teacher_user.id}", headers=admin_headers, params={"hard": True}
    )
    assert refused.status_code == 409

    response = await client.delete(
        f"/v1/admin/teachers/{other_teacher.id}", headers=admin_headers, params={"hard": True}
    )
    assert response.status_code == 204
    assert (
        await db_session.execute(select(User).where(User.email == "bianchi@scuola.test"))
    ).scalar_one_or_none() is None


@pytest.mark.asyncio
async def test_resend_invitation(client: AsyncClient, admin_headers: dict, teacher_user, dispatched: list):
    created = await client.post(
        "/v1/admin/teachers",
        headers=admin_headers,
        json={"email": "verdi@scuola.test", "name": "Giulia Verdi"},
    )
    teacher_id = created.json()["teacher"]["id"]
    first_link = created.json()["invite_url"]

    response = await client.post(
        f"/v1/admin/teachers/{teacher_id}/resend-invitation", headers=admin_headers
    )
    assert response.status_code == 200
    name, (email, kind, link) = dispatched[-1]
    assert (name, email, kind) == ("send_account_email", "verdi@scuola.test", "invite")
    assert link != first_link

    # The earlier link stops working once a new one is issued
    old_token = first_link.split("token_hash=")[1].split("&")[0]
    stale = await client.post("/v1/auth/set-password", json={"token": old_token, "password": "benvenuta"})
    assert stale.status_code == 400

    accepted = await client.post(
        f"/v1/admin/teachers/{teacher_user.id}/resend-invitation", headers=admin_headers
    )
    assert accepted.status_code == 409


@pytest.mark.asyncio
async def test_invite_link_without_email(client: AsyncClient, admin_headers: dict, dispatched: list):
    created = await client.post(
        "/v1/admin/teachers",
        headers=admin_headers,
        json={"email": "verdi@scuola.test", "name": "Giulia Verdi"},
    )
    teacher_id = created.json()["teacher"]["id"]
    dispatched.clear()

    response = await client.post(f"/v1/admin/teachers/{teacher_id}/invite-link", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["invite_url"].endswith("&type=invite")
    assert data["expires_at"] is not None
    assert dispatched == []


@pytest.mark.asyncio
async def test_admin_password_reset(
    client: AsyncClient, admin_headers: dict, teacher_user, dispatched: list
):
    response = await client.post(
        f"/v1/admin/teachers/{teacher_user.id}/reset-password", headers=admin_headers
    )
    assert response.status_code == 200
    name, (email, kind, link) = dispatched[0]
    assert (name, email, kind) == ("send_account_email", "rossi@scuola.test", "recovery")
    assert link.endswith("&type=recovery")
