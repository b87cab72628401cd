"""Analytics: scan and view events, daily IP salt, admin dashboard."""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.db.models import (
    AuditLog,
    Config,
    DeviceType,
    QRCode,
    QRScan,
    ReferrerType,
    Theme,
    ThemeStatus,
    User,
    UserRole,
    UserStatus,
    Work,
    WorkStatus,
    WorkTheme,
    WorkView,
    as_utc,
)
from quadriparlanti.schemas.schemas import (
    AnalyticsResponse,
    AnalyticsSummary,
    DailyCount,
    PopularWork,
    RecentActivity,
    TeacherStat,
    ThemeStat,
)
from quadriparlanti.utils.hashing import generate_salt, hash_ip

logger = logging.getLogger(__name__)

DAILY_SALT_KEY = "daily_salt"
SCAN_TREND_DAYS = 30

TABLET_RE = re.compile(r"(tablet|ipad|playbook|silk)|(android(?!.*mobi))", re.IGNORECASE)
MOBILE_RE = re.compile(r"mobile|iphone|ipod|android|blackberry|opera mini|iemobile|wpdesktop")
BOT_RE = re.compile(r"bot|crawler|spider|crawling")


def detect_device_type(user_agent: Optional[str]) -> DeviceType:
    """Coarse device class from user-agent substrings."""
    if not user_agent:
        return DeviceType.UNKNOWN
    ua = user_agent.lower()
    if TABLET_RE.search(ua):
        return DeviceType.TABLET
    if MOBILE_RE.search(ua):
        return DeviceType.MOBILE
    if BOT_RE.search(ua):
        return DeviceType.UNKNOWN
    return DeviceType.DESKTOP


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


class AnalyticsService:
    """Service for analytics events and reporting."""

    async def get_daily_salt(self, db: AsyncSession) -> str:
        """
        Current IP salt, rotated when missing or set before today (UTC).
        """
        entry = await db.get(Config, DAILY_SALT_KEY)
        today = datetime.now(timezone.utc).date()
        if entry is not None and entry.updated_at and as_utc(entry.updated_at).date() >= today:
            return entry.value
        return await self.rotate_daily_salt(db)

    async def rotate_daily_salt(self, db: AsyncSession) -> str:
        """Replace the daily salt. The caller commits."""
        salt = generate_salt()
        now = datetime.now(timezone.utc)
        entry = await db.get(Config, DAILY_SALT_KEY)
        if entry is None:
            db.add(
                Config(
                    key=DAILY_SALT_KEY,
                    value=salt,
                    description="Salt for hashing client IPs, rotated daily",
                    updated_at=now,
                )
            )
        else:
            entry.value = salt
            entry.updated_at = now
        await db.flush()
        logger.info("Rotated daily IP salt")
        return salt

    def build_scan_event(self, request: Request, qr_code_id: str, theme_id: str) -> dict:
        """Payload for the scan task, taken from the redirect request."""
        user_agent = request.headers.get("user-agent")
        return {
            "qr_code_id": qr_code_id,
            "theme_id": theme_id,
            "ip": client_ip(request),
            "user_agent": user_agent[:500] if user_agent else None,
            "device_type": detect_device_type(user_agent).value,
            "referer": request.headers.get("referer"),
            "scanned_at": datetime.now(timezone.utc).isoformat(),
        }

    def build_view_event(
        self,
        request: Request,
        work_id: str,
        referrer: ReferrerType,
        session_id: Optional[str] = None,
    ) -> dict:
        user_agent = request.headers.get("user-agent")
        return {
            "work_id": work_id,
            "ip": client_ip(request),
            "user_agent": user_agent[:500] if user_agent else None,
            "referrer": referrer.value,
            "session_id": session_id,
            "viewed_at": datetime.now(timezone.utc).isoformat(),
        }

    async def store_qr_scan(self, db: AsyncSession, event: dict) -> Optional[QRScan]:
        """Insert a scan row and bump the code's counters. Unknown codes are dropped."""
        qr_code = await db.get(QRCode, event["qr_code_id"])
        if qr_code is None:
            logger.warning(f"Dropping scan for unknown QR code {event['qr_code_id']}")
            return None

        salt = await self.get_daily_salt(db)
        scanned_at = datetime.fromisoformat(event["scanned_at"])
        scan = QRScan(
            qr_code_id=qr_code.id,
            theme_id=event.get("theme_id") or qr_code.theme_id,
            scanned_at=scanned_at,
            hashed_ip=hash_ip(event.get("ip") or "unknown", salt),
            user_agent=event.get("user_agent"),
            device_type=DeviceType(event.get("device_type") or DeviceType.UNKNOWN.value),
            referer=event.get("referer"),
        )
        db.add(scan)
        await db.execute(
            update(QRCode)
            .where(QRCode.id == qr_code.id)
            .values(scan_count=QRCode.scan_count + 1, last_scanned_at=scanned_at)
        )
        await db.flush()
        return scan

    async def store_work_view(self, db: AsyncSession, event: dict) -> Optional[WorkView]:
        """Insert a view row for an existing work."""
        work = await db.get(Work, event["work_id"])
        if work is None:
            logger.warning(f"Dropping view for unknown work {event['work_id']}")
            return None

        salt = await self.get_daily_salt(db)
        view = WorkView(
            work_id=work.id,
            viewed_at=datetime.fromisoformat(event["viewed_at"]),
            hashed_ip=hash_ip(event.get("ip") or "unknown", salt),
            referrer=ReferrerType(event.get("referrer") or ReferrerType.DIRECT.value),
            user_agent=event.get("user_agent"),
            session_id=event.get("session_id"),
        )
        db.add(view)
        await db.flush()
        return view

    async def increment_view_count(self, db: AsyncSession, work_id: str) -> bool:
        """Atomically bump view_count of a published work."""
        result = await db.execute(
            update(Work)
            .where(Work.id == work_id, Work.status == WorkStatus.PUBLISHED)
            .values(view_count=Work.view_count + 1)
        )
        return result.rowcount > 0

    async def get_dashboard(self, db: AsyncSession) -> AnalyticsResponse:
        """Admin analytics overview."""
        work_counts = dict(
            (await db.execute(select(Work.status, func.count()).group_by(Work.status))).all()
        )
        theme_counts = dict(
            (await db.execute(select(Theme.status, func.count()).group_by(Theme.status))).all()
        )
        teacher_counts = dict(
            (
                await db.execute(
                    select(User.status, func.count())
                    .where(User.role == UserRole.DOCENTE)
                    .group_by(User.status)
                )
            ).all()
        )
        total_scans = (await db.execute(select(func.count()).select_from(QRScan))).scalar() or 0
        total_views = (await db.execute(select(func.coalesce(func.sum(Work.view_count), 0)))).scalar() or 0

        summary = AnalyticsSummary(
            total_works=sum(work_counts.values()),
            published_works=work_counts.get(WorkStatus.PUBLISHED, 0),
            pending_works=work_counts.get(WorkStatus.PENDING_REVIEW, 0),
            draft_works=work_counts.get(WorkStatus.DRAFT, 0),
            needs_revision_works=work_counts.get(WorkStatus.NEEDS_REVISION, 0),
            archived_works=work_counts.get(WorkStatus.ARCHIVED, 0),
            total_themes=sum(theme_counts.values()),
            published_themes=theme_counts.get(ThemeStatus.PUBLISHED, 0),
            total_teachers=sum(teacher_counts.values()),
            active_teachers=teacher_counts.get(UserStatus.ACTIVE, 0),
            total_qr_scans=total_scans,
            total_views=int(total_views),
        )

        return AnalyticsResponse(
            summary=summary,
            scan_trend=await self._scan_trend(db),
            popular_works=await self._popular_works(db),
            theme_stats=await self._theme_stats(db),
            teacher_stats=await self._teacher_stats(db),
            recent_activity=await self._recent_activity(db),
        )

    async def _scan_trend(self, db: AsyncSession) -> list[DailyCount]:
        """Scans per day over the trailing window, zero-filled."""
        today = datetime.now(timezone.utc).date()
        start = today - timedelta(days=SCAN_TREND_DAYS - 1)
        since = datetime(start.year, start.month, start.day, tzinfo=timezone.utc)

        result = await db.execute(select(QRScan.scanned_at).where(QRScan.scanned_at >= since))
        counts: dict[str, int] = {}
        for (scanned_at,) in result.all():
            day = as_utc(scanned_at).date().isoformat()
            counts[day] = counts.get(day, 0) + 1

        days = [(start + timedelta(days=i)).isoformat() for i in range(SCAN_TREND_DAYS)]
        return [DailyCount(date=day, count=counts.get(day, 0)) for day in days]

    async def _popular_works(self, db: AsyncSession, limit: int = 10) -> list[PopularWork]:
        result = await db.execute(
            select(Work)
            .where(Work.status == WorkStatus.PUBLISHED)
            .order_by(Work.view_count.desc(), Work.published_at.desc())
            .limit(limit)
        )
        return [
            PopularWork(id=w.id, title_it=w.title_it, view_count=w.view_count, published_at=w.published_at)
            for w in result.scalars().all()
        ]

    async def _theme_stats(self, db: AsyncSession) -> list[ThemeStat]:
        works_sub = (
            select(WorkTheme.theme_id, func.count().label("works_count"))
            .join(Work, Work.id == WorkTheme.work_id)
            .where(Work.status == WorkStatus.PUBLISHED)
            .group_by(WorkTheme.theme_id)
            .subquery()
        )
        scans_sub = (
            select(QRCode.theme_id, func.sum(QRCode.scan_count).label("scan_count"))
            .group_by(QRCode.theme_id)
            .subquery()
        )
        result = await db.execute(
            select(
                Theme,
                func.coalesce(works_sub.c.works_count, 0),
                func.coalesce(scans_sub.c.scan_count, 0),
            )
            .outerjoin(works_sub, works_sub.c.theme_id == Theme.id)
            .outerjoin(scans_sub, scans_sub.c.theme_id == Theme.id)
            .order_by(Theme.display_order)
        )
        return [
            ThemeStat(
                id=theme.id,
                title_it=theme.title_it,
                slug=theme.slug,
                works_count=int(works_count),
                scan_count=int(scan_count),
            )
            for theme, works_count, scan_count in result.all()
        ]

    async def _teacher_stats(self, db: AsyncSession) -> list[TeacherStat]:
        result = await db.execute(
            select(
                User,
                func.count(Work.id),
                func.count(Work.id).filter(Work.status == WorkStatus.PUBLISHED),
            )
            .outerjoin(Work, Work.created_by == User.id)
            .where(User.role == UserRole.DOCENTE)
            .group_by(User.id)
            .order_by(func.count(Work.id).desc())
        )
        return [
            TeacherStat(
                id=user.id,
                name=user.name,
                email=user.email,
                works_count=works_count,
                published_count=published_count,
            )
            for user, works_count, published_count in result.all()
        ]

    async def _recent_activity(self, db: AsyncSession, limit: int = 20) -> list[RecentActivity]:
        result = await db.execute(
            select(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit)
        )
        return [
            RecentActivity(
                action=entry.action,
                resource_type=entry.resource_type,
                resource_id=entry.resource_id,
                user_id=entry.user_id,
                created_at=entry.created_at,
            )
            for entry in result.scalars().all()
        ]


# Singleton instance
analytics_service = AnalyticsService()
