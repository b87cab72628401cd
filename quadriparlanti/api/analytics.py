"""Analytics ingestion (public) and dashboard (admin)."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.auth.security import require_admin
from quadriparlanti.db.models import User
from quadriparlanti.db.session import get_db
from quadriparlanti.middleware.rate_limit import rate_limit_public
from quadriparlanti.schemas.schemas import AnalyticsResponse, MessageResponse, WorkViewEvent
from quadriparlanti.services.analytics_service import analytics_service
from quadriparlanti.services.work_service import work_service
from quadriparlanti.worker import enqueue_work_view

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Log a work view",
    description="The view is recorded asynchronously with a salted hash of the client IP.",
)
@rate_limit_public()
async def log_work_view(
    request: Request,
    event: WorkViewEvent,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    work = await work_service.get_published(db, event.work_id)
    if work is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Work not found")

    enqueue_work_view(
        background,
        analytics_service.build_view_event(request, work.id, event.referrer, event.session_id)
    )
    return MessageResponse(message="accepted")


@router.get(
    "",
    response_model=AnalyticsResponse,
    summary="Analytics dashboard",
    description="Work counts, 30-day scan trend, popular works, theme and teacher statistics.",
)
async def get_analytics(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    return await analytics_service.get_dashboard(db)
