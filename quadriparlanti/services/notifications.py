"""
E-mail notifications.

Delivery is not implemented: messages are written to the log so an
operator (or a future mail backend) can pick them up.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from quadriparlanti.config import get_settings
from quadriparlanti.db.models import User, UserRole, UserStatus, Work

settings = get_settings()
logger = logging.getLogger(__name__)

WORK_EVENTS = ("approved", "rejected", "submitted")


async def send_work_notification(
    db: AsyncSession,
    work_id: str,
    event: str,
    comments: Optional[str] = None,
) -> bool:
    """Log the notification for a review event. Returns False when nothing was sent."""
    if event not in WORK_EVENTS:
        logger.error(f"Unknown work notification event: {event}")
        return False

    result = await db.execute(
        select(Work).where(Work.id == work_id).options(selectinload(Work.creator))
    )
    work = result.scalar_one_or_none()
    if work is None or work.creator is None:
        logger.error(f"Work {work_id} not found for {event} notification")
        return False

    site = settings.site_url.rstrip("/")
    locale = settings.default_locale

    if event == "approved":
        logger.info(
            f"[EMAIL] Work approved: to={work.creator.email} teacher={work.creator.name} "
            f"title={work.title_it!r} url={site}/{locale}/works/{work.id}"
        )
    elif event == "rejected":
        logger.info(
            f"[EMAIL] Work rejected: to={work.creator.email} teacher={work.creator.name} "
            f"title={work.title_it!r} feedback={comments!r} "
            f"edit_url={site}/{locale}/teacher/works/{work.id}"
        )
    else:
        admins = await db.execute(
            select(User.email).where(User.role == UserRole.ADMIN, User.status == UserStatus.ACTIVE)
        )
        recipients = list(admins.scalars().all())
        if not recipients:
            logger.warning("No active admins to notify about a submitted work")
            return False
        logger.info(
            f"[EMAIL] Work submitted: to={recipients} teacher={work.creator.name} "
            f"title={work.title_it!r} review_url={site}/{locale}/admin/works/pending"
        )
    return True


def send_account_email(email: str, kind: str, link: Optional[str] = None) -> bool:
    """Log an invitation or password-recovery message."""
    logger.info(f"[EMAIL] Account {kind}: to={email} link={link}")
    return True
