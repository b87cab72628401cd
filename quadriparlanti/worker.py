"""Celery worker configuration and tasks."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from celery import Celery, Task
from celery.schedules import crontab
from fastapi import BackgroundTasks

from quadriparlanti.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Create Celery app
celery_app = Celery(
    "quadriparlanti_worker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Analytics and notifications are delivered at most once: acknowledged on
# receipt, never retried, dropped when publishing fails.
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    task_time_limit=60,
    task_soft_time_limit=50,
    worker_prefetch_multiplier=1,
    task_acks_late=False,
    task_reject_on_worker_lost=False,
    # Fail fast when publishing against an unreachable broker
    broker_connection_timeout=settings.broker_connect_timeout,
    broker_transport_options={
        "socket_connect_timeout": settings.broker_connect_timeout,
        "socket_timeout": settings.broker_connect_timeout,
    },
    task_default_queue="default",
    task_queues={
        "default": {"exchange": "default", "routing_key": "default"},
        "analytics": {"exchange": "analytics", "routing_key": "analytics"},
        "notifications": {"exchange": "notifications", "routing_key": "notifications"},
    },
    task_routes={
        "quadriparlanti.worker.record_qr_scan": {"queue": "analytics"},
        "quadriparlanti.worker.record_work_view": {"queue": "analytics"},
        "quadriparlanti.worker.increment_view_count": {"queue": "analytics"},
        "quadriparlanti.worker.send_work_notification": {"queue": "notifications"},
        "quadriparlanti.worker.send_account_email": {"queue": "notifications"},
    },
    beat_schedule={
        "rotate-daily-salt": {
            "task": "quadriparlanti.worker.rotate_daily_salt",
            "schedule": crontab(hour=0, minute=0),
        },
        "purge-expired-tokens": {
            "task": "quadriparlanti.worker.purge_expired_tokens",
            "schedule": 3600.0,  # Every hour
        },
    },
)


class AtMostOnceTask(Task):
    """Base task that is never retried."""

    acks_late = False
    max_retries = 0
    autoretry_for = ()


def _run_in_session(handler, *args):
    """Run ``handler(db, *args)`` in a fresh session and commit."""
    from quadriparlanti.db.session import async_session_maker, engine

    async def runner():
        try:
            async with async_session_maker() as db:
                result = await handler(db, *args)
                await db.commit()
                return result
        finally:
            # Pooled connections are bound to this task's event loop
            await engine.dispose()

    return asyncio.run(runner())


@celery_app.task(base=AtMostOnceTask, name="quadriparlanti.worker.record_qr_scan")
def record_qr_scan(event: dict):
    """Store a QR scan event."""
    from quadriparlanti.services.analytics_service import analytics_service

    scan = _run_in_session(analytics_service.store_qr_scan, event)
    if scan is not None:
        logger.debug(f"Recorded scan for QR code {event['qr_code_id']}")


@celery_app.task(base=AtMostOnceTask, name="quadriparlanti.worker.record_work_view")
def record_work_view(event: dict):
    """Store a work view event."""
    from quadriparlanti.services.analytics_service import analytics_service

    _run_in_session(analytics_service.store_work_view, event)


@celery_app.task(base=AtMostOnceTask, name="quadriparlanti.worker.increment_view_count")
def increment_view_count(work_id: str):
    """Bump the public view counter of a work."""
    from quadriparlanti.services.analytics_service import analytics_service

    _run_in_session(analytics_service.increment_view_count, work_id)


@celery_app.task(base=AtMostOnceTask, name="quadriparlanti.worker.send_work_notification")
def send_work_notification(work_id: str, event: str, comments: Optional[str] = None):
    """Notify about an approval, rejection or submission."""
    from quadriparlanti.services import notifications

    _run_in_session(notifications.send_work_notification, work_id, event, comments)


@celery_app.task(base=AtMostOnceTask, name="quadriparlanti.worker.send_account_email")
def send_account_email(email: str, kind: str, link: Optional[str] = None):
    """Send an invitation or recovery message."""
    from quadriparlanti.services import notifications

    notifications.send_account_email(email, kind, link)


@celery_app.task(base=AtMostOnceTask, name="quadriparlanti.worker.rotate_daily_salt")
def rotate_daily_salt():
    """Periodic task rotating the IP hashing salt."""
    from quadriparlanti.services.analytics_service import analytics_service

    _run_in_session(analytics_service.rotate_daily_salt)


@celery_app.task(base=AtMostOnceTask, name="quadriparlanti.worker.purge_expired_tokens")
def purge_expired_tokens():
    """Periodic task deleting used or expired one-time tokens and access keys."""
    from sqlalchemy import delete, or_

    from quadriparlanti.db.models import ApiKey, AuthToken

    async def purge(db):
        now = datetime.now(timezone.utc)
        tokens = await db.execute(
            delete(AuthToken).where(or_(AuthToken.expires_at < now, AuthToken.used_at.is_not(None)))
        )
        keys = await db.execute(
            delete(ApiKey).where(or_(ApiKey.expires_at < now, ApiKey.is_active == False))  # noqa: E712
        )
        logger.info(f"Purged {tokens.rowcount} one-time tokens and {keys.rowcount} access keys")

    _run_in_session(purge)


def dispatch_task(task: Task, *args) -> bool:
    """
    Publish ``task`` once, without broker retries.

    Blocks on the broker connection, so routes never call it directly; they
    go through ``schedule_task``. A publishing failure is logged and the
    event dropped.
    """
    try:
        task.apply_async(args=list(args), retry=False)
        return True
    except Exception as e:
        logger.warning(f"Dropped {task.name}: {e}")
        return False


def schedule_task(background: BackgroundTasks, task: Task, *args):
    """Publish ``task`` from the threadpool after the response has been sent."""
    background.add_task(dispatch_task, task, *args)


def enqueue_qr_scan(background: BackgroundTasks, event: dict):
    schedule_task(background, record_qr_scan, event)


def enqueue_work_view(background: BackgroundTasks, event: dict):
    schedule_task(background, record_work_view, event)


def enqueue_view_increment(background: BackgroundTasks, work_id: str):
    schedule_task(background, increment_view_count, work_id)


def enqueue_work_notification(
    background: BackgroundTasks, work_id: str, event: str, comments: Optional[str] = None
):
    schedule_task(background, send_work_notification, work_id, event, comments)


def enqueue_account_email(
    background: BackgroundTasks, email: str, kind: str, link: Optional[str] = None
):
    schedule_task(background, send_account_email, email, kind, link)
