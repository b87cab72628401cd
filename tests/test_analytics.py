"""Tests for scan and view analytics."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from quadriparlanti.db.models import (
    Config,
    DeviceType,
    QRCode,
    QRScan,
    ReferrerType,
    WorkStatus,
    WorkView,
)
from quadriparlanti.services.analytics_service import (
    DAILY_SALT_KEY,
    analytics_service,
    detect_device_type,
)
from quadriparlanti.utils.hashing import hash_ip


@pytest.mark.parametrize(
    "user_agent,expected",
    [
        (None, DeviceType.UNKNOWN),
        ("Mozilla/5.0 (iPad; CPU OS 16_0 like Mac OS X)", DeviceType.TABLET),
        ("Mozilla/5.0 (Linux; Android 13; SM-X200) AppleWebKit/537.36", DeviceType.TABLET),
        ("Mozilla/5.0 (Linux; Android 13; Pixel 7) Mobile Safari/537.36", DeviceType.MOBILE),
        ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)", DeviceType.MOBILE),
        ("Googlebot/2.1 (+http://www.google.com/bot.html)", DeviceType.UNKNOWN),
        ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) Firefox/126.0", DeviceType.DESKTOP),
    ],
)
def test_detect_device_type(user_agent, expected):
    assert detect_device_type(user_agent) == expected


@pytest.mark.asyncio
async def test_daily_salt_is_created_and_reused(db_session):
    salt = await analytics_service.get_daily_salt(db_session)
    assert salt
    assert await analytics_service.get_daily_salt(db_session) == salt


@pytest.mark.asyncio
async def test_stale_salt_is_rotated(db_session):
    db_session.add(
        Config(
            key=DAILY_SALT_KEY,
            value="yesterday",
            updated_at=datetime.now(timezone.utc) - timedelta(days=1),
        )
    )
    await db_session.flush()

    salt = await analytics_service.get_daily_salt(db_session)
    assert salt != "yesterday"


@pytest.mark.asyncio
async def test_store_qr_scan(db_session, make_theme):
    theme = await make_theme()
    qr_code = QRCode(theme_id=theme.id, short_code="Scan01")
    db_session.add(qr_code)
    await db_session.commit()

    scanned_at = datetime.now(timezone.utc)
    event = {
        "qr_code_id": qr_code.id,
        "theme_id": theme.id,
        "ip": "203.0.113.7",
        "user_agent": "Mozilla/5.0 (iPhone)",
        "device_type": "mobile",
        "referer": None,
        "scanned_at": scanned_at.isoformat(),
    }
    scan = await analytics_service.store_qr_scan(db_session, event)
    await db_session.commit()

    salt = await analytics_service.get_daily_salt(db_session)
    assert scan.hashed_ip == hash_ip("203.0.113.7", salt)
    assert scan.device_type == DeviceType.MOBILE
    assert "203.0.113.7" not in scan.hashed_ip

    await db_session.refresh(qr_code)
    assert qr_code.scan_count == 1
    assert qr_code.last_scanned_at is not None


@pytest.mark.asyncio
async def test_scan_for_unknown_code_is_dropped(db_session):
    event = {
        "qr_code_id": "00000000-0000-0000-0000-000000000000",
        "scanned_at": datetime.now(timezone.utc).isoformat(),
    }
    assert await analytics_service.store_qr_scan(db_session, event) is None
    assert (await db_session.execute(select(QRScan))).first() is None


@pytest.mark.asyncio
async def test_store_work_view(db_session, teacher_user, make_work):
    work = await make_work(teacher_user, WorkStatus.PUBLISHED)
    event = {
        "work_id": work.id,
        "ip": "198.51.100.1",
        "user_agent": None,
        "referrer": "search",
        "session_id": "sess-1",
        "viewed_at": datetime.now(timezone.utc).isoformat(),
    }
    view = await analytics_service.store_work_view(db_session, event)
    await db_session.commit()

    assert view.referrer == ReferrerType.SEARCH
    assert view.session_id == "sess-1"
    assert len(view.hashed_ip) == 64
    assert len((await db_session.execute(select(WorkView))).scalars().all()) == 1


@pytest.mark.asyncio
async def test_increment_view_count_only_for_published(db_session, teacher_user, make_work):
    published = await make_work(teacher_user, WorkStatus.PUBLISHED)
    draft = await make_work(teacher_user)

    assert await analytics_service.increment_view_count(db_session, published.id) is True
    assert await analytics_service.increment_view_count(db_session, draft.id) is False
    await db_session.commit()

    await db_session.refresh(published)
    await db_session.refresh(draft)
    assert published.view_count == 1
    assert draft.view_count == 0


@pytest.mark.asyncio
async def test_log_work_view_endpoint(
    client: AsyncClient, teacher_user, make_work, dispatched: list
):
    work = await make_work(teacher_user, WorkStatus.PUBLISHED)

    response = await client.post(
        "/api/analytics",
        json={"work_id": work.id, "referrer": "theme_page", "session_id": "abc"},
        headers={"x-real-ip": "192.0.2.10"},
    )
    assert response.status_code == 202
    assert response.json() == {"message": "accepted"}

    name, (event,) = dispatched[0]
    assert name == "record_work_view"
    assert event["work_id"] == work.id
    assert event["ip"] == "192.0.2.10"
    assert event["referrer"] == "theme_page"
    assert event["session_id"] == "abc"


@pytest.mark.asyncio
async def test_log_view_of_unpublished_work(
    client: AsyncClient, teacher_user, make_work, dispatched: list
):
    work = await make_work(teacher_user, WorkStatus.PENDING_REVIEW)
    response = await client.post("/api/analytics", json={"work_id": work.id})
    assert response.status_code == 404
    assert dispatched == []


@pytest.mark.asyncio
async def test_dashboard(
    client: AsyncClient,
    db_session,
    teacher_user,
    admin_headers: dict,
    teacher_headers: dict,
    make_theme,
    make_work,
):
    theme = await make_theme(slug="natura")
    await make_work(teacher_user, WorkStatus.PUBLISHED, [theme], title_it="Letto", view_count=7)
    await make_work(teacher_user, WorkStatus.PENDING_REVIEW, [theme])
    await make_work(teacher_user)
    db_session.add(QRCode(theme_id=theme.id, short_code="Dash01", scan_count=4))
    await db_session.commit()

    forbidden = await client.get("/api/analytics", headers=teacher_headers)
    assert forbidden.status_code == 403

    response = await client.get("/api/analytics", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()

    summary = data["summary"]
    assert summary["total_works"] == 3
    assert summary["published_works"] == 1
    assert summary["pending_works"] == 1
    assert summary["draft_works"] == 1
    assert summary["total_views"] == 7
    assert summary["active_teachers"] == 1

    assert len(data["scan_trend"]) == 30
    assert data["popular_works"][0]["title_it"] == "Letto"
    assert data["theme_stats"][0]["slug"] == "natura"
    assert data["theme_stats"][0]["works_count"] == 1
    assert data["theme_stats"][0]["scan_count"] == 4
    assert data["teacher_stats"][0]["email"] == "rossi@scuola.test"
    assert data["teacher_stats"][0]["works_count"] == 3
    assert data["teacher_stats"][0]["published_count"] == 1
