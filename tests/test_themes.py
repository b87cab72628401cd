"""Tests for theme management and public browsing."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from quadriparlanti.db.models import ThemeStatus, WorkStatus

THEME = {
    "title_it": "Città d'arte",
    "title_en": "Art cities",
    "description_it": "Lavori dedicati alle città d'arte italiane, ai loro monumenti e alla loro storia.",
    "status": "published",
}


@pytest.mark.asyncio
async def test_create_theme_derives_slug(client: AsyncClient, admin_headers: dict):
    response = await client.post("/v1/admin/themes", headers=admin_headers, json=THEME)
    assert response.status_code == 201
    data = response.json()
    assert data["slug"] == "citta-d-arte"
    assert data["works_count"] == 0


@pytest.mark.asyncio
async def test_duplicate_slug_conflicts(client: AsyncClient, admin_headers: dict):
    await client.post("/v1/admin/themes", headers=admin_headers, json=THEME)
    response = await client.post("/v1/admin/themes", headers=admin_headers, json=THEME)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_theme_validation(client: AsyncClient, admin_headers: dict):
    response = await client.post(
        "/v1/admin/themes", headers=admin_headers, json={**THEME, "description_it": "Troppo corta"}
    )
    assert response.status_code == 422

    response = await client.post(
        "/v1/admin/themes", headers=admin_headers, json={**THEME, "slug": "Not A Slug"}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_teacher_cannot_manage_themes(client: AsyncClient, teacher_headers: dict):
    response = await client.post("/v1/admin/themes", headers=teacher_headers, json=THEME)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_reorder_and_list(client: AsyncClient, admin_headers: dict, make_theme):
    a = await make_theme(display_order=0)
    b = await make_theme(display_order=1)

    response = await client.put(
        "/v1/admin/themes/reorder",
        headers=admin_headers,
        json={"items": [{"id": a.id, "display_order": 5}, {"id": b.id, "display_order": 2}]},
    )
    assert response.status_code == 200
    assert [t["id"] for t in response.json()] == [b.id, a.id]

    listing = await client.get("/v1/admin/themes", headers=admin_headers)
    assert [t["id"] for t in listing.json()] == [b.id, a.id]


@pytest.mark.asyncio
async def test_update_theme(client: AsyncClient, admin_headers: dict, make_theme):
    theme = await make_theme(status=ThemeStatus.DRAFT)
    response = await client.patch(
        f"/v1/admin/themes/{theme.id}", headers=admin_headers, json={"status": "published", "slug": None}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "published"
    assert data["slug"] == theme.slug


@pytest.mark.asyncio
async def test_delete_theme_with_works_is_refused(
    client: AsyncClient, admin_headers: dict, teacher_user, make_theme, make_work
):
    theme = await make_theme()
    await make_work(teacher_user, themes=[theme])

    response = await client.delete(f"/v1/admin/themes/{theme.id}", headers=admin_headers)
    assert response.status_code == 409

    empty = await make_theme()
    response = await client.delete(f"/v1/admin/themes/{empty.id}", headers=admin_headers)
    assert response.status_code == 204


@pytest.mark.asyncio
async def test_cover_upload_url(client: AsyncClient, admin_user, admin_headers: dict):
    response = await client.post(
        "/v1/admin/themes/cover-upload",
        headers=admin_headers,
        json={"file_name": "copertina.png", "mime_type": "image/png", "file_size_bytes": 20000},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["storage_path"].startswith(f"{admin_user.id}/themes/")
    assert "/theme-images/" in data["public_url"]


@pytest.mark.asyncio
async def test_public_themes_count_published_works_only(
    client: AsyncClient, teacher_user, make_theme, make_work
):
    visible = await make_theme(slug="natura")
    await make_theme(slug="nascosto", status=ThemeStatus.DRAFT)
    await make_work(teacher_user, WorkStatus.PUBLISHED, [visible])
    await make_work(teacher_user, WorkStatus.PENDING_REVIEW, [visible])

    response = await client.get("/v1/public/themes")
    assert response.status_code == 200
    data = response.json()
    assert [t["slug"] for t in data] == ["natura"]
    assert data[0]["works_count"] == 1


@pytest.mark.asyncio
async def test_public_theme_page(client: AsyncClient, teacher_user, make_theme, make_work):
    theme = await make_theme(slug="natura")
    published = await make_work(teacher_user, WorkStatus.PUBLISHED, [theme], title_it="Il bosco")
    await make_work(teacher_user, WorkStatus.DRAFT, [theme], title_it="Bozza")

    response = await client.get("/v1/public/themes/natura")
    assert response.status_code == 200
    data = response.json()
    assert data["theme"]["slug"] == "natura"
    assert [w["id"] for w in data["works"]] == [published.id]

    missing = await client.get("/v1/public/themes/inesistente")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_public_work_detail_counts_view(
    client: AsyncClient, teacher_user, make_work, dispatched: list
):
    published = await make_work(teacher_user, WorkStatus.PUBLISHED)
    draft = await make_work(teacher_user)

    response = await client.get(f"/v1/public/works/{published.id}")
    assert response.status_code == 200
    assert dispatched == [("increment_view_count", (published.id,))]

    response = await client.get(f"/v1/public/works/{draft.id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_public_work_search(client: AsyncClient, teacher_user, make_work):
    await make_work(teacher_user, WorkStatus.PUBLISHED, title_it="Vulcani d'Italia", class_name="5A")
    await make_work(teacher_user, WorkStatus.PUBLISHED, title_it="Poesie d'autunno", class_name="2B")

    response = await client.get("/v1/public/works", params={"search": "vulcani"})
    data = response.json()
    assert data["total"] == 1
    assert data["works"][0]["title_it"] == "Vulcani d'Italia"

    response = await client.get("/v1/public/works", params={"class_name": "2B"})
    assert response.json()["total"] == 1


@pytest.mark.asyncio
async def test_recent_works_newest_first(client: AsyncClient, teacher_user, make_work):
    now = datetime.now(timezone.utc)
    await make_work(
        teacher_user, WorkStatus.PUBLISHED, title_it="Vecchio", published_at=now - timedelta(days=3)
    )
    await make_work(teacher_user, WorkStatus.PUBLISHED, title_it="Nuovo", published_at=now)
    await make_work(teacher_user, WorkStatus.PENDING_REVIEW, title_it="In attesa")

    response = await client.get("/v1/public/works/recent", params={"limit": 5})
    assert response.status_code == 200
    assert [w["title_it"] for w in response.json()] == ["Nuovo", "Vecchio"]
