"""Public browsing routes. Only published content is exposed."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.db.models import ThemeStatus
from quadriparlanti.db.session import get_db
from quadriparlanti.schemas.schemas import (
    PublicThemeDetail,
    PublicWorkListResponse,
    PublicWorkResponse,
    ThemeResponse,
)
from quadriparlanti.services.theme_service import theme_service
from quadriparlanti.services.work_service import work_service
from quadriparlanti.worker import enqueue_view_increment

router = APIRouter(prefix="/v1/public", tags=["Public"])


@router.get(
    "/themes",
    response_model=list[ThemeResponse],
    summary="Published themes",
    description="Published themes in display order with their number of published works.",
)
async def list_public_themes(db: AsyncSession = Depends(get_db)):
    rows = await theme_service.list_themes(
        db, status_filter=ThemeStatus.PUBLISHED, published_works_only=True
    )
    return [theme_service.theme_to_response(t, count) for t, count in rows]


@router.get(
    "/themes/{slug}",
    response_model=PublicThemeDetail,
    summary="Theme page",
    description="A published theme and its published works, newest first.",
)
async def get_public_theme(
    slug: str,
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    theme = await theme_service.get_published_by_slug(db, slug)
    if theme is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Theme not found")

    works, total = await work_service.list_published(db, page=1, limit=limit, theme_id=theme.id)
    return PublicThemeDetail(
        theme=theme_service.theme_to_response(theme, total),
        works=[work_service.work_to_public_response(w) for w in works],
    )


@router.get(
    "/works",
    response_model=PublicWorkListResponse,
    summary="Browse published works",
)
async def list_public_works(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    class_name: Optional[str] = Query(None, max_length=50),
    school_year: Optional[str] = Query(None, max_length=7),
    search: Optional[str] = Query(None, max_length=100),
    theme_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    works, total = await work_service.list_published(
        db, page, limit, class_name, school_year, search, theme_id
    )
    return PublicWorkListResponse(
        works=[work_service.work_to_public_response(w) for w in works],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
    )


@router.get(
    "/works/recent",
    response_model=list[PublicWorkResponse],
    summary="Recently published works",
)
async def list_recent_works(
    limit: int = Query(6, ge=1, le=20),
    db: AsyncSession = Depends(get_db),
):
    works, _ = await work_service.list_published(db, page=1, limit=limit)
    return [work_service.work_to_public_response(w) for w in works]


@router.get(
    "/works/{work_id}",
    response_model=PublicWorkResponse,
    summary="Published work detail",
    description="Counts a view; the counter is updated asynchronously.",
)
async def get_public_work(
    work_id: str,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    work = await work_service.get_published(db, work_id)
    if work is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Work not found")

    enqueue_view_increment(background, work.id)
    return work_service.work_to_public_response(work)
