"""Theme management service."""

import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.config import get_settings
from quadriparlanti.db.models import (
    QRCode,
    Theme,
    ThemeStatus,
    User,
    Work,
    WorkStatus,
    WorkTheme,
)
from quadriparlanti.schemas.schemas import (
    ThemeCreate,
    ThemeReorderItem,
    ThemeResponse,
    ThemeUpdate,
)
from quadriparlanti.services.audit import audit_service
from quadriparlanti.services.storage import storage_service
from quadriparlanti.utils.text import is_valid_slug, slugify

settings = get_settings()
logger = logging.getLogger(__name__)


def _works_count_query(published_only: bool):
    query = select(WorkTheme.theme_id, func.count().label("works_count"))
    if published_only:
        query = query.join(Work, Work.id == WorkTheme.work_id).where(
            Work.status == WorkStatus.PUBLISHED
        )
    return query.group_by(WorkTheme.theme_id).subquery()


class ThemeService:
    """Service for managing themes."""

    async def _ensure_unique_slug(
        self, db: AsyncSession, slug: str, exclude_id: Optional[str] = None
    ):
        query = select(Theme.id).where(Theme.slug == slug)
        if exclude_id:
            query = query.where(Theme.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A theme with slug '{slug}' already exists",
            )

    async def get_theme(self, db: AsyncSession, theme_id: str) -> Theme:
        theme = await db.get(Theme, theme_id)
        if theme is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Theme not found")
        return theme

    async def create_theme(self, db: AsyncSession, data: ThemeCreate, user: User) -> Theme:
        slug = data.slug or slugify(data.title_it)
        if not is_valid_slug(slug):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Could not derive a valid slug from the title",
            )
        await self._ensure_unique_slug(db, slug)

        theme = Theme(
            title_it=data.title_it,
            title_en=data.title_en,
            description_it=data.description_it,
            description_en=data.description_en,
            slug=slug,
            featured_image_url=data.featured_image_url,
            display_order=data.display_order,
            status=data.status,
            created_by=user.id,
        )
        db.add(theme)
        await db.flush()
        await audit_service.log_action(
            db, action="theme.create", resource_type="theme", resource_id=theme.id, user=user
        )
        logger.info(f"Theme {theme.slug} created by {user.id}")
        return theme

    async def update_theme(
        self, db: AsyncSession, theme_id: str, data: ThemeUpdate, user: User
    ) -> Theme:
        theme = await self.get_theme(db, theme_id)
        fields = data.model_dump(exclude_unset=True)
        if fields.get("slug"):
            await self._ensure_unique_slug(db, fields["slug"], exclude_id=theme.id)

        for name, value in fields.items():
            if value is None and name in ("title_it", "description_it", "slug", "display_order", "status"):
                continue
            setattr(theme, name, value)
        await db.flush()
        await audit_service.log_action(
            db,
            action="theme.update",
            resource_type="theme",
            resource_id=theme.id,
            user=user,
            details={"fields": sorted(fields.keys())},
        )
        return theme

    async def delete_theme(self, db: AsyncSession, theme_id: str, user: User):
        """Delete a theme that no work references."""
        theme = await self.get_theme(db, theme_id)
        count = (
            await db.execute(
                select(func.count()).select_from(WorkTheme).where(WorkTheme.theme_id == theme.id)
            )
        ).scalar() or 0
        if count:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Theme has {count} associated works and cannot be deleted",
            )
        codes = (
            await db.execute(select(QRCode.short_code).where(QRCode.theme_id == theme.id))
        ).scalars().all()

        await db.delete(theme)
        await audit_service.log_action(
            db, action="theme.delete", resource_type="theme", resource_id=theme_id, user=user
        )
        await db.flush()

        try:
            storage_service.delete_objects(settings.qr_codes_bucket, [f"{c}.png" for c in codes])
        except Exception as e:
            logger.error(f"Failed to delete QR images of theme {theme_id}: {e}")

    async def reorder_themes(
        self, db: AsyncSession, items: list[ThemeReorderItem], user: User
    ) -> list[Theme]:
        ids = [item.id for item in items]
        result = await db.execute(select(Theme).where(Theme.id.in_(ids)))
        themes = {t.id: t for t in result.scalars().all()}
        missing = [tid for tid in ids if tid not in themes]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Themes not found: {', '.join(missing)}",
            )
        for item in items:
            themes[item.id].display_order = item.display_order
        await db.flush()
        await audit_service.log_action(
            db,
            action="theme.reorder",
            resource_type="theme",
            user=user,
            details={item.id: item.display_order for item in items},
        )
        return sorted(themes.values(), key=lambda t: t.display_order)

    async def list_themes(
        self,
        db: AsyncSession,
        status_filter: Optional[ThemeStatus] = None,
        published_works_only: bool = False,
    ) -> list[tuple[Theme, int]]:
        """Themes ordered by display order, each with its works count."""
        counts = _works_count_query(published_works_only)
        query = (
            select(Theme, func.coalesce(counts.c.works_count, 0))
            .outerjoin(counts, counts.c.theme_id == Theme.id)
            .order_by(Theme.display_order.asc(), Theme.title_it.asc())
        )
        if status_filter:
            query = query.where(Theme.status == status_filter)
        result = await db.execute(query)
        return [(theme, int(count)) for theme, count in result.all()]

    async def get_published_by_slug(self, db: AsyncSession, slug: str) -> Optional[Theme]:
        result = await db.execute(
            select(Theme).where(Theme.slug == slug, Theme.status == ThemeStatus.PUBLISHED)
        )
        return result.scalar_one_or_none()

    def theme_to_response(self, theme: Theme, works_count: int = 0) -> ThemeResponse:
        response = ThemeResponse.model_validate(theme)
        response.works_count = works_count
        return response


# Singleton instance
theme_service = ThemeService()
