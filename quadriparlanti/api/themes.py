"""Theme management routes (admin)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.auth.security import require_admin
from quadriparlanti.config import get_settings
from quadriparlanti.db.models import ThemeStatus, User
from quadriparlanti.db.session import get_db
from quadriparlanti.schemas.schemas import (
    ImageUploadRequest,
    ThemeCreate,
    ThemeReorderRequest,
    ThemeResponse,
    ThemeUpdate,
    UploadUrlResponse,
)
from quadriparlanti.services.storage import storage_service
from quadriparlanti.services.theme_service import theme_service

router = APIRouter(prefix="/v1/admin/themes", tags=["Admin - Themes"])

settings = get_settings()


@router.post(
    "",
    response_model=ThemeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a theme",
)
async def create_theme(
    data: ThemeCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    theme = await theme_service.create_theme(db, data, admin)
    await db.commit()
    return theme_service.theme_to_response(theme)


@router.get(
    "",
    response_model=list[ThemeResponse],
    summary="List themes",
    description="All themes in display order, with the number of associated works.",
)
async def list_themes(
    status_filter: Optional[ThemeStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    rows = await theme_service.list_themes(db, status_filter)
    return [theme_service.theme_to_response(t, count) for t, count in rows]


@router.put(
    "/reorder",
    response_model=list[ThemeResponse],
    summary="Reorder themes",
)
async def reorder_themes(
    data: ThemeReorderRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    themes = await theme_service.reorder_themes(db, data.items, admin)
    await db.commit()
    return [theme_service.theme_to_response(t) for t in themes]


@router.post(
    "/cover-upload",
    response_model=UploadUrlResponse,
    summary="Get a cover image upload URL",
)
async def create_cover_upload(
    data: ImageUploadRequest,
    admin: User = Depends(require_admin),
):
    path = storage_service.generate_storage_path(admin.id, data.file_name, "themes")
    upload = storage_service.generate_upload_url(settings.theme_images_bucket, path, data.mime_type)
    return UploadUrlResponse(**upload)


@router.get(
    "/{theme_id}",
    response_model=ThemeResponse,
    summary="Get a theme",
)
async def get_theme(
    theme_id: str,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    theme = await theme_service.get_theme(db, theme_id)
    return theme_service.theme_to_response(theme)


@router.patch(
    "/{theme_id}",
    response_model=ThemeResponse,
    summary="Update a theme",
)
async def update_theme(
    theme_id: str,
    data: ThemeUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    theme = await theme_service.update_theme(db, theme_id, data, admin)
    await db.commit()
    return theme_service.theme_to_response(theme)


@router.delete(
    "/{theme_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a theme",
    description="Refused while works are associated with the theme.",
)
async def delete_theme(
    theme_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    await theme_service.delete_theme(db, theme_id, admin)
    await db.commit()
