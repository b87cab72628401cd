"""Work management service."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from quadriparlanti.auth.security import actor_for
from quadriparlanti.config import get_settings
from quadriparlanti.db.models import (
    ReviewAction,
    Theme,
    User,
    Work,
    WorkAttachment,
    WorkLink,
    WorkReview,
    WorkStatus,
    WorkTheme,
    as_utc,
)
from quadriparlanti.domain.work_lifecycle import (
    TransitionResult,
    WorkAction,
    allowed_actions,
    can_delete,
    can_edit,
    can_view,
    check_submission_ready,
    transition,
)
from quadriparlanti.schemas.schemas import (
    AttachmentInput,
    AttachmentResponse,
    LinkInput,
    LinkResponse,
    PublicWorkResponse,
    ReviewQueueItem,
    SubmitterInfo,
    ThemeSummary,
    WorkCreate,
    WorkResponse,
    WorkUpdate,
)
from quadriparlanti.services.audit import audit_service
from quadriparlanti.services.storage import storage_service
from quadriparlanti.utils.links import extract_youtube_id, get_embed_url
from quadriparlanti.utils.text import is_blank

settings = get_settings()
logger = logging.getLogger(__name__)

# Columns that cannot be cleared through an update
REQUIRED_FIELDS = {"title_it", "description_it", "class_name", "teacher_name", "license", "tags"}
RELATION_FIELDS = {"theme_ids", "attachments", "links"}


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Work not found")


class WorkService:
    """Service for managing works through their lifecycle."""

    async def get_work_with_relations(
        self,
        db: AsyncSession,
        work_id: str,
        published_only: bool = False,
    ) -> Optional[Work]:
        """Load a work with themes, attachments, links and creator."""
        query = (
            select(Work)
            .where(Work.id == work_id)
            .options(
                selectinload(Work.themes),
                selectinload(Work.attachments),
                selectinload(Work.links),
                selectinload(Work.creator),
            )
            .execution_options(populate_existing=True)
        )
        if published_only:
            query = query.where(Work.status == WorkStatus.PUBLISHED)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def _resolve_theme_ids(self, db: AsyncSession, theme_ids: list[str]) -> list[str]:
        """Deduplicate and check that every theme exists."""
        unique_ids = list(dict.fromkeys(theme_ids))
        if not unique_ids:
            return []
        result = await db.execute(select(Theme.id).where(Theme.id.in_(unique_ids)))
        found = set(result.scalars().all())
        missing = [tid for tid in unique_ids if tid not in found]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown theme ids: {', '.join(missing)}",
            )
        return unique_ids

    def _build_attachment(self, item: AttachmentInput, user: User) -> WorkAttachment:
        return WorkAttachment(
            file_name=item.file_name,
            file_size_bytes=item.file_size_bytes,
            file_type=item.file_type,
            mime_type=item.mime_type,
            storage_path=item.storage_path,
            thumbnail_path=item.thumbnail_path,
            uploaded_by=user.id,
        )

    def _build_link(self, item: LinkInput) -> WorkLink:
        video_id = extract_youtube_id(item.url)
        return WorkLink(
            url=item.url,
            link_type=item.link_type,
            custom_label=item.custom_label,
            preview_thumbnail_url=(
                f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg" if video_id else None
            ),
        )

    async def _replace_themes(self, db: AsyncSession, work_id: str, theme_ids: list[str]):
        result = await db.execute(select(WorkTheme).where(WorkTheme.work_id == work_id))
        for row in result.scalars().all():
            await db.delete(row)
        await db.flush()
        for theme_id in theme_ids:
            db.add(WorkTheme(work_id=work_id, theme_id=theme_id))

    def _apply(self, work: Work, result: TransitionResult):
        """Apply a transition result or raise the matching HTTP error."""
        if not result.ok:
            code = (
                status.HTTP_403_FORBIDDEN
                if result.code == "forbidden"
                else status.HTTP_409_CONFLICT
            )
            raise HTTPException(status_code=code, detail=result.error)
        work.status = result.to_state

    def _ensure_ready(self, title_it: str, description_it: str, theme_count: int):
        report = check_submission_ready(title_it, description_it, theme_count)
        if not report.ready:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Work is not ready for review: {'; '.join(report.errors)}",
            )

    async def create_work(self, db: AsyncSession, data: WorkCreate, user: User) -> Work:
        """
        Create a work with its themes, attachments and links in one transaction.

        With ``submit_for_review`` the readiness check runs before anything is
        written and the work leaves this call as ``pending_review``.
        """
        actor = actor_for(user)
        theme_ids = await self._resolve_theme_ids(db, data.theme_ids)
        if data.submit_for_review:
            self._ensure_ready(data.title_it, data.description_it, len(theme_ids))

        try:
            work = Work(
                title_it=data.title_it.strip(),
                title_en=data.title_en,
                description_it=data.description_it,
                description_en=data.description_en,
                class_name=data.class_name,
                teacher_name=data.teacher_name,
                school_year=data.school_year,
                license=data.license,
                tags=data.tags,
                status=WorkStatus.DRAFT,
                created_by=user.id,
                attachments=[self._build_attachment(a, user) for a in data.attachments],
                links=[self._build_link(link) for link in data.links],
            )
            db.add(work)
            await db.flush()

            for theme_id in theme_ids:
                db.add(WorkTheme(work_id=work.id, theme_id=theme_id))

            if data.submit_for_review:
                self._apply(work, transition(work.status, WorkAction.SUBMIT, actor, user.id))
                work.submitted_at = datetime.now(timezone.utc)

            await audit_service.log_action(
                db,
                action="work.create",
                resource_type="work",
                resource_id=work.id,
                user=user,
                details={"status": work.status.value, "themes": len(theme_ids)},
            )
        except Exception:
            await db.rollback()
            raise

        logger.info(f"Work {work.id} created by {user.id} as {work.status.value}")
        return await self.get_work_with_relations(db, work.id)

    async def update_work(
        self, db: AsyncSession, work_id: str, data: WorkUpdate, user: User
    ) -> Work:
        """
        Update fields and replace relations that are supplied.

        The status never changes here; it only moves through transitions.
        """
        work = await self.get_work_with_relations(db, work_id)
        actor = actor_for(user)
        if work is None or not can_view(actor, work.created_by):
            raise _not_found()
        if not can_edit(work.status, actor, work.created_by):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Work cannot be edited in status '{work.status.value}'",
            )

        theme_ids = None
        if data.theme_ids is not None:
            theme_ids = await self._resolve_theme_ids(db, data.theme_ids)

        try:
            fields = data.model_dump(exclude_unset=True, exclude=RELATION_FIELDS)
            for name, value in fields.items():
                if value is None and name in REQUIRED_FIELDS:
                    continue
                setattr(work, name, value)

            if theme_ids is not None:
                await self._replace_themes(db, work.id, theme_ids)
            if data.attachments is not None:
                work.attachments.clear()
                work.attachments.extend(self._build_attachment(a, user) for a in data.attachments)
            if data.links is not None:
                work.links.clear()
                work.links.extend(self._build_link(link) for link in data.links)

            work.edit_count = (work.edit_count or 0) + 1
            await db.flush()

            await audit_service.log_action(
                db,
                action="work.update",
                resource_type="work",
                resource_id=work.id,
                user=user,
                details={"fields": sorted(data.model_dump(exclude_unset=True).keys())},
            )
        except Exception:
            await db.rollback()
            raise

        return await self.get_work_with_relations(db, work.id)

    async def delete_work(self, db: AsyncSession, work_id: str, user: User):
        """Delete a work; storage objects are removed best-effort afterwards."""
        work = await self.get_work_with_relations(db, work_id)
        actor = actor_for(user)
        if work is None or not can_view(actor, work.created_by):
            raise _not_found()
        if not can_delete(work.status, actor, work.created_by):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only draft works can be deleted",
            )

        paths = [a.storage_path for a in work.attachments]
        await db.delete(work)
        await audit_service.log_action(
            db, action="work.delete", resource_type="work", resource_id=work_id, user=user
        )
        await db.flush()

        try:
            storage_service.delete_objects(settings.attachments_bucket, paths)
        except Exception as e:
            logger.error(f"Failed to delete attachments of work {work_id}: {e}")

    async def submit_for_review(self, db: AsyncSession, work_id: str, user: User) -> Work:
        """Move a draft or needs_revision work to pending_review."""
        work = await self.get_work_with_relations(db, work_id)
        actor = actor_for(user)
        if work is None or not can_view(actor, work.created_by):
            raise _not_found()

        result = transition(work.status, WorkAction.SUBMIT, actor, work.created_by)
        if result.ok:
            self._ensure_ready(work.title_it, work.description_it, len(work.themes))
        self._apply(work, result)
        work.submitted_at = datetime.now(timezone.utc)

        await audit_service.log_action(
            db, action="work.submit", resource_type="work", resource_id=work.id, user=user
        )
        logger.info(f"Work {work.id} submitted for review by {user.id}")
        return work

    async def approve_work(
        self, db: AsyncSession, work_id: str, reviewer: User, comments: Optional[str] = None
    ) -> Work:
        """Publish a pending work and append an ``approved`` review."""
        work = await self.get_work_with_relations(db, work_id)
        if work is None:
            raise _not_found()

        result = transition(work.status, WorkAction.APPROVE, actor_for(reviewer), work.created_by)
        try:
            self._apply(work, result)
            work.published_at = datetime.now(timezone.utc)
            db.add(
                WorkReview(
                    work_id=work.id,
                    reviewer_id=reviewer.id,
                    action=ReviewAction.APPROVED,
                    comments=None if is_blank(comments) else comments.strip(),
                )
            )
            await audit_service.log_action(
                db, action="work.approve", resource_type="work", resource_id=work.id, user=reviewer
            )
        except HTTPException:
            raise
        except Exception:
            await db.rollback()
            raise

        logger.info(f"Work {work.id} approved by {reviewer.id}")
        return work

    async def reject_work(
        self, db: AsyncSession, work_id: str, reviewer: User, comments: Optional[str]
    ) -> Work:
        """Send a pending work back for revision. Comments are mandatory."""
        if is_blank(comments):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Comments are required when rejecting a work",
            )

        work = await self.get_work_with_relations(db, work_id)
        if work is None:
            raise _not_found()

        result = transition(work.status, WorkAction.REJECT, actor_for(reviewer), work.created_by)
        try:
            self._apply(work, result)
            db.add(
                WorkReview(
                    work_id=work.id,
                    reviewer_id=reviewer.id,
                    action=ReviewAction.REJECTED,
                    comments=comments.strip(),
                )
            )
            await audit_service.log_action(
                db, action="work.reject", resource_type="work", resource_id=work.id, user=reviewer
            )
        except HTTPException:
            raise
        except Exception:
            await db.rollback()
            raise

        logger.info(f"Work {work.id} rejected by {reviewer.id}")
        return work

    async def archive_work(self, db: AsyncSession, work_id: str, user: User) -> Work:
        work = await self.get_work_with_relations(db, work_id)
        actor = actor_for(user)
        if work is None or not can_view(actor, work.created_by):
            raise _not_found()

        self._apply(work, transition(work.status, WorkAction.ARCHIVE, actor, work.created_by))
        await audit_service.log_action(
            db, action="work.archive", resource_type="work", resource_id=work.id, user=user
        )
        return work

    async def get_work(self, db: AsyncSession, work_id: str, user: User) -> Work:
        """Any status, for the owner or an admin."""
        work = await self.get_work_with_relations(db, work_id)
        if work is None or not can_view(actor_for(user), work.created_by):
            raise _not_found()
        return work

    async def list_my_works(
        self,
        db: AsyncSession,
        user: User,
        status_filter: Optional[WorkStatus] = None,
        school_year: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Work], int]:
        """
        List the caller's works, most recently updated first.

        Returns:
            Tuple of (works, total_count)
        """
        query = select(Work).where(Work.created_by == user.id)
        if status_filter:
            query = query.where(Work.status == status_filter)
        if school_year:
            query = query.where(Work.school_year == school_year)
        return await self._paginate(
            db, query, Work.created_at.desc(), limit=limit, offset=offset
        )

    async def list_works(
        self,
        db: AsyncSession,
        status_filter: Optional[WorkStatus] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Work], int]:
        """Admin listing across all teachers."""
        query = select(Work)
        if status_filter:
            query = query.where(Work.status == status_filter)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    Work.title_it.ilike(pattern),
                    Work.title_en.ilike(pattern),
                    Work.class_name.ilike(pattern),
                    Work.teacher_name.ilike(pattern),
                )
            )
        return await self._paginate(
            db, query, Work.created_at.desc(), limit=limit, offset=offset
        )

    async def _paginate(self, db: AsyncSession, query, order_by, limit: int, offset: int):
        count_query = select(func.count()).select_from(query.subquery())
        total = (await db.execute(count_query)).scalar() or 0

        query = (
            query.options(
                selectinload(Work.themes),
                selectinload(Work.attachments),
                selectinload(Work.links),
            )
            .order_by(order_by)
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def get_reviews(self, db: AsyncSession, work_id: str, user: User) -> list[WorkReview]:
        """Review history, newest first."""
        work = await db.get(Work, work_id)
        if work is None or not can_view(actor_for(user), work.created_by):
            raise _not_found()
        result = await db.execute(
            select(WorkReview)
            .where(WorkReview.work_id == work_id)
            .order_by(WorkReview.reviewed_at.desc())
        )
        return list(result.scalars().all())

    async def get_review_queue(self, db: AsyncSession) -> list[ReviewQueueItem]:
        """Works waiting for review, oldest first. Not paginated."""
        result = await db.execute(
            select(Work)
            .where(Work.status == WorkStatus.PENDING_REVIEW)
            .options(
                selectinload(Work.themes),
                selectinload(Work.attachments),
                selectinload(Work.links),
                selectinload(Work.creator),
            )
            .order_by(Work.created_at.asc())
            .execution_options(populate_existing=True)
        )
        now = datetime.now(timezone.utc)
        items = []
        for work in result.scalars().all():
            since = as_utc(work.submitted_at or work.created_at)
            items.append(
                ReviewQueueItem(
                    id=work.id,
                    title_it=work.title_it,
                    title_en=work.title_en,
                    description_it=work.description_it,
                    class_name=work.class_name,
                    teacher_name=work.teacher_name,
                    school_year=work.school_year,
                    created_at=work.created_at,
                    submitted_at=work.submitted_at,
                    edit_count=work.edit_count,
                    hours_pending=round((now - since).total_seconds() / 3600, 1),
                    attachment_count=len(work.attachments),
                    link_count=len(work.links),
                    themes=[ThemeSummary.model_validate(t) for t in work.themes],
                    attachments=[self.attachment_to_response(a) for a in work.attachments],
                    links=[self.link_to_response(link) for link in work.links],
                    submitter=(
                        SubmitterInfo(id=work.creator.id, name=work.creator.name, email=work.creator.email)
                        if work.creator
                        else None
                    ),
                )
            )
        return items

    # ---- public reads ----

    async def list_published(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 12,
        class_name: Optional[str] = None,
        school_year: Optional[str] = None,
        search: Optional[str] = None,
        theme_id: Optional[str] = None,
    ) -> tuple[list[Work], int]:
        """Published works, newest publication first."""
        query = select(Work).where(Work.status == WorkStatus.PUBLISHED)
        if class_name:
            query = query.where(Work.class_name == class_name)
        if school_year:
            query = query.where(Work.school_year == school_year)
        if theme_id:
            query = query.where(
                Work.id.in_(select(WorkTheme.work_id).where(WorkTheme.theme_id == theme_id))
            )
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    Work.title_it.ilike(pattern),
                    Work.title_en.ilike(pattern),
                    Work.description_it.ilike(pattern),
                    Work.description_en.ilike(pattern),
                )
            )
        return await self._paginate(
            db, query, Work.published_at.desc(), limit=limit, offset=(page - 1) * limit
        )

    async def get_published(self, db: AsyncSession, work_id: str) -> Optional[Work]:
        return await self.get_work_with_relations(db, work_id, published_only=True)

    # ---- response mapping ----

    def attachment_to_response(self, attachment: WorkAttachment) -> AttachmentResponse:
        return AttachmentResponse(
            id=attachment.id,
            file_name=attachment.file_name,
            file_size_bytes=attachment.file_size_bytes,
            file_type=attachment.file_type,
            mime_type=attachment.mime_type,
            storage_path=attachment.storage_path,
            thumbnail_path=attachment.thumbnail_path,
            public_url=storage_service.public_url(settings.attachments_bucket, attachment.storage_path),
            uploaded_at=attachment.uploaded_at,
        )

    def link_to_response(self, link: WorkLink) -> LinkResponse:
        return LinkResponse(
            id=link.id,
            url=link.url,
            link_type=link.link_type,
            custom_label=link.custom_label,
            preview_title=link.preview_title,
            embed_url=get_embed_url(link.url, link.link_type),
            created_at=link.created_at,
        )

    def work_to_response(self, work: Work, user: Optional[User] = None) -> WorkResponse:
        """Convert Work model to response schema."""
        actions = []
        if user is not None:
            actions = [a.value for a in allowed_actions(work.status, actor_for(user), work.created_by)]
        return WorkResponse(
            id=work.id,
            title_it=work.title_it,
            title_en=work.title_en,
            description_it=work.description_it,
            description_en=work.description_en,
            class_name=work.class_name,
            teacher_name=work.teacher_name,
            school_year=work.school_year,
            status=work.status,
            license=work.license,
            tags=work.tags or [],
            view_count=work.view_count,
            edit_count=work.edit_count,
            created_by=work.created_by,
            created_at=work.created_at,
            updated_at=work.updated_at,
            submitted_at=work.submitted_at,
            published_at=work.published_at,
            themes=[ThemeSummary.model_validate(t) for t in work.themes],
            attachments=[self.attachment_to_response(a) for a in work.attachments],
            links=[self.link_to_response(link) for link in work.links],
            allowed_actions=actions,
        )

    def work_to_public_response(self, work: Work) -> PublicWorkResponse:
        return PublicWorkResponse(
            id=work.id,
            title_it=work.title_it,
            title_en=work.title_en,
            description_it=work.description_it,
            description_en=work.description_en,
            class_name=work.class_name,
            teacher_name=work.teacher_name,
            school_year=work.school_year,
            license=work.license,
            tags=work.tags or [],
            view_count=work.view_count,
            published_at=work.published_at,
            themes=[ThemeSummary.model_validate(t) for t in work.themes],
            attachments=[self.attachment_to_response(a) for a in work.attachments],
            links=[self.link_to_response(link) for link in work.links],
        )


# Singleton instance
work_service = WorkService()
