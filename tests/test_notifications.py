"""Tests for background dispatch and notification stubs."""

from unittest.mock import MagicMock

import pytest

from quadriparlanti.db.models import UserStatus
from quadriparlanti.services import notifications
from quadriparlanti.worker import dispatch_task


def test_dispatch_publishes_once_without_retries():
    task = MagicMock()
    assert dispatch_task(task, "work-1", "approved") is True
    task.apply_async.assert_called_once_with(args=["work-1", "approved"], retry=False)


def test_dispatch_failure_is_dropped():
    task = MagicMock()
    task.name = "quadriparlanti.worker.record_qr_scan"
    task.apply_async.side_effect = ConnectionRefusedError("broker unreachable")
    assert dispatch_task(task, {"qr_code_id": "x"}) is False


@pytest.mark.asyncio
async def test_work_notifications(db_session, admin_user, teacher_user, make_work, caplog):
    work = await make_work(teacher_user)

    with caplog.at_level("INFO", logger="quadriparlanti.services.notifications"):
        assert await notifications.send_work_notification(db_session, work.id, "approved") is True
        assert await notifications.send_work_notification(
            db_session, work.id, "rejected", "Mancano le fonti"
        ) is True
        assert await notifications.send_work_notification(db_session, work.id, "submitted") is True

    messages = [r.getMessage() for r in caplog.records]
    assert any("Work approved: to=rossi@scuola.test" in m for m in messages)
    assert any("feedback='Mancano le fonti'" in m for m in messages)
    assert any("Work submitted: to=['admin@scuola.test']" in m for m in messages)


@pytest.mark.asyncio
async def test_work_notification_edge_cases(db_session, admin_user, teacher_user, make_work):
    work = await make_work(teacher_user)

    assert await notifications.send_work_notification(db_session, work.id, "deleted") is False
    assert await notifications.send_work_notification(
        db_session, "00000000-0000-0000-0000-000000000000", "approved"
    ) is False

    admin_user.status = UserStatus.SUSPENDED
    await db_session.commit()
    assert await notifications.send_work_notification(db_session, work.id, "submitted") is False


def test_account_email_is_logged(caplog):
    with caplog.at_level("INFO", logger="quadriparlanti.services.notifications"):
        assert notifications.send_account_email("a@scuola.test", "invite", "https://x") is True
    assert "Account invite: to=a@scuola.test" in caplog.text
