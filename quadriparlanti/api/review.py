"""Review queue and moderation routes (admin)."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.auth.security import require_admin
from quadriparlanti.db.models import User, WorkStatus
from quadriparlanti.db.session import get_db
from quadriparlanti.schemas.schemas import (
    ReviewDecisionRequest,
    ReviewQueueResponse,
    WorkListResponse,
    WorkResponse,
)
from quadriparlanti.services.work_service import work_service
from quadriparlanti.worker import enqueue_work_notification

router = APIRouter(prefix="/v1/admin", tags=["Admin - Review"])


@router.get(
    "/review-queue",
    response_model=ReviewQueueResponse,
    summary="Pending works",
    description="Works waiting for review, oldest first.",
)
async def get_review_queue(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    items = await work_service.get_review_queue(db)
    return ReviewQueueResponse(items=items, total=len(items))


@router.get(
    "/works",
    response_model=WorkListResponse,
    summary="List all works",
)
async def list_works(
    status_filter: Optional[WorkStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    works, total = await work_service.list_works(db, status_filter, search, limit, offset)
    return WorkListResponse(
        works=[work_service.work_to_response(w, admin) for w in works],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post(
    "/works/{work_id}/approve",
    response_model=WorkResponse,
    summary="Approve and publish a work",
    description="Comments are optional; blank comments are stored as null.",
)
async def approve_work(
    work_id: str,
    background: BackgroundTasks,
    data: Optional[ReviewDecisionRequest] = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    comments = data.comments if data else None
    work = await work_service.approve_work(db, work_id, admin, comments)
    await db.commit()
    enqueue_work_notification(background, work.id, "approved")
    return work_service.work_to_response(work, admin)


@router.post(
    "/works/{work_id}/reject",
    response_model=WorkResponse,
    summary="Request changes on a work",
    description="Comments explaining the requested changes are required.",
)
async def reject_work(
    work_id: str,
    data: ReviewDecisionRequest,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    work = await work_service.reject_work(db, work_id, admin, data.comments)
    await db.commit()
    enqueue_work_notification(background, work.id, "rejected", data.comments)
    return work_service.work_to_response(work, admin)
