"""QR code management (admin) and the public short-link redirect."""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.auth.security import require_admin
from quadriparlanti.config import get_settings
from quadriparlanti.db.models import User
from quadriparlanti.db.session import get_db
from quadriparlanti.middleware.rate_limit import rate_limit_public
from quadriparlanti.schemas.schemas import QRCodeCreate, QRCodeResponse, QRCodeToggle
from quadriparlanti.services.analytics_service import analytics_service
from quadriparlanti.services.qr_service import qr_service, render_qr_png, short_link
from quadriparlanti.worker import enqueue_qr_scan

router = APIRouter(prefix="/v1/admin/qr-codes", tags=["Admin - QR Codes"])
redirect_router = APIRouter(tags=["QR Redirect"])

settings = get_settings()
logger = logging.getLogger(__name__)


@router.post(
    "",
    response_model=QRCodeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a QR code",
    description="Generate a unique short code for a theme and upload its PNG image.",
)
async def create_qr_code(
    data: QRCodeCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    qr_code = await qr_service.create_qr_code(db, data.theme_id, admin)
    await db.commit()
    return qr_service.qr_to_response(qr_code)


@router.get(
    "",
    response_model=list[QRCodeResponse],
    summary="List QR codes",
)
async def list_qr_codes(
    theme_id: Optional[str] = Query(None, description="Only codes of this theme"),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    codes = await qr_service.list_qr_codes(db, theme_id)
    return [qr_service.qr_to_response(c) for c in codes]


@router.get(
    "/{qr_id}",
    response_model=QRCodeResponse,
    summary="Get a QR code",
)
async def get_qr_code(
    qr_id: str,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    return qr_service.qr_to_response(await qr_service.get_qr_code(db, qr_id))


@router.get(
    "/{qr_id}/image",
    summary="QR code image",
    description="PNG rendered on demand.",
    response_class=Response,
)
async def get_qr_image(
    qr_id: str,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    qr_code = await qr_service.get_qr_code(db, qr_id)
    return Response(
        content=render_qr_png(short_link(qr_code.short_code)),
        media_type="image/png",
        headers={"Content-Disposition": f'inline; filename="{qr_code.short_code}.png"'},
    )


@router.patch(
    "/{qr_id}",
    response_model=QRCodeResponse,
    summary="Activate or deactivate a QR code",
)
async def toggle_qr_code(
    qr_id: str,
    data: QRCodeToggle,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    qr_code = await qr_service.toggle_qr_code(db, qr_id, data.is_active, admin)
    await db.commit()
    return qr_service.qr_to_response(qr_code)


@router.delete(
    "/{qr_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a QR code",
)
async def delete_qr_code(
    qr_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    await qr_service.delete_qr_code(db, qr_id, admin)
    await db.commit()


async def _redirect_for_code(
    request: Request,
    background: BackgroundTasks,
    code: str,
    locale: Optional[str],
    db: AsyncSession,
):
    site = settings.site_url.rstrip("/")
    try:
        qr_code = await qr_service.resolve(db, code)
    except Exception as e:
        logger.error(f"QR lookup failed for {code!r}: {e}")
        qr_code = None

    if qr_code is None:
        return RedirectResponse(f"{site}/", status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    event = analytics_service.build_scan_event(request, qr_code.id, qr_code.theme_id)
    enqueue_qr_scan(background, event)

    loc = settings.resolve_locale(locale)
    return RedirectResponse(
        f"{site}/{loc}/themes/{qr_code.theme.slug}",
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        background=background,
    )


@redirect_router.get(
    "/q/{code}",
    summary="Follow a QR short link",
    response_class=RedirectResponse,
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
)
@rate_limit_public()
async def follow_short_link(
    request: Request,
    background: BackgroundTasks,
    code: str,
    locale: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Redirect to the theme page; unknown or inactive codes go to the site root."""
    return await _redirect_for_code(request, background, code, locale, db)


@redirect_router.get(
    "/api/qr/{code}",
    summary="Follow a QR short link (legacy path)",
    response_class=RedirectResponse,
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
)
@rate_limit_public()
async def follow_legacy_short_link(
    request: Request,
    background: BackgroundTasks,
    code: str,
    locale: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await _redirect_for_code(request, background, code, locale, db)
