"""QR code generation, management and short-code resolution."""

import logging
from io import BytesIO
from typing import Optional

import qrcode
from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from quadriparlanti.config import get_settings
from quadriparlanti.db.models import QRCode, Theme, User
from quadriparlanti.schemas.schemas import QRCodeResponse
from quadriparlanti.services.audit import audit_service
from quadriparlanti.services.storage import storage_service
from quadriparlanti.utils.hashing import generate_short_code, is_valid_short_code

settings = get_settings()
logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 10


def short_link(code: str) -> str:
    """Public URL encoded in the QR image."""
    return f"{settings.site_url.rstrip('/')}/q/{code}"


def render_qr_png(data: str) -> bytes:
    """Render ``data`` as a PNG QR image."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


class QRService:
    """Service for QR short codes."""

    async def _code_exists(self, db: AsyncSession, code: str) -> bool:
        result = await db.execute(select(QRCode.id).where(QRCode.short_code == code))
        return result.first() is not None

    async def generate_unique_code(self, db: AsyncSession) -> str:
        """
        Draw codes until one is unused.

        Gives up with a 409 after MAX_CODE_ATTEMPTS collisions.
        """
        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            code = generate_short_code()
            if not await self._code_exists(db, code):
                return code
            logger.warning(f"Short code collision on attempt {attempt}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Unable to generate a unique short code",
        )

    async def create_qr_code(self, db: AsyncSession, theme_id: str, user: User) -> QRCode:
        """Create a code for a theme and upload its image."""
        theme = await db.get(Theme, theme_id)
        if theme is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Theme not found")

        code = await self.generate_unique_code(db)
        qr_code = QRCode(theme_id=theme.id, short_code=code, is_active=True)
        db.add(qr_code)
        await db.flush()

        try:
            storage_service.upload_bytes(
                settings.qr_codes_bucket, f"{code}.png", render_qr_png(short_link(code)), "image/png"
            )
        except Exception as e:
            # The image can be regenerated from the code at any time
            logger.error(f"Failed to upload QR image for {code}: {e}")

        await audit_service.log_action(
            db,
            action="qr.create",
            resource_type="qr_code",
            resource_id=qr_code.id,
            user=user,
            details={"theme_id": theme.id, "short_code": code},
        )
        logger.info(f"QR code {code} created for theme {theme.slug}")
        return await self.get_qr_code(db, qr_code.id)

    async def get_qr_code(self, db: AsyncSession, qr_id: str) -> QRCode:
        result = await db.execute(
            select(QRCode)
            .where(QRCode.id == qr_id)
            .options(selectinload(QRCode.theme))
            .execution_options(populate_existing=True)
        )
        qr_code = result.scalar_one_or_none()
        if qr_code is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="QR code not found")
        return qr_code

    async def list_qr_codes(self, db: AsyncSession, theme_id: Optional[str] = None) -> list[QRCode]:
        query = (
            select(QRCode)
            .options(selectinload(QRCode.theme))
            .order_by(QRCode.created_at.desc())
            .execution_options(populate_existing=True)
        )
        if theme_id:
            query = query.where(QRCode.theme_id == theme_id)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def toggle_qr_code(
        self, db: AsyncSession, qr_id: str, is_active: bool, user: User
    ) -> QRCode:
        qr_code = await self.get_qr_code(db, qr_id)
        qr_code.is_active = is_active
        await audit_service.log_action(
            db,
            action="qr.toggle",
            resource_type="qr_code",
            resource_id=qr_code.id,
            user=user,
            details={"is_active": is_active},
        )
        return qr_code

    async def delete_qr_code(self, db: AsyncSession, qr_id: str, user: User):
        """Remove the image, then the row."""
        qr_code = await self.get_qr_code(db, qr_id)
        try:
            storage_service.delete_objects(settings.qr_codes_bucket, [f"{qr_code.short_code}.png"])
        except Exception as e:
            logger.error(f"Failed to delete QR image {qr_code.short_code}: {e}")

        await db.delete(qr_code)
        await audit_service.log_action(
            db, action="qr.delete", resource_type="qr_code", resource_id=qr_id, user=user
        )
        await db.flush()

    async def resolve(self, db: AsyncSession, code: str) -> Optional[QRCode]:
        """
        Active code with a theme slug, or None.

        Malformed codes are rejected without touching the database.
        """
        if not is_valid_short_code(code):
            return None
        result = await db.execute(
            select(QRCode)
            .where(QRCode.short_code == code)
            .options(selectinload(QRCode.theme))
        )
        qr_code = result.scalar_one_or_none()
        if qr_code is None or not qr_code.is_active:
            return None
        if qr_code.theme is None or not qr_code.theme.slug:
            return None
        return qr_code

    def qr_to_response(self, qr_code: QRCode) -> QRCodeResponse:
        return QRCodeResponse(
            id=qr_code.id,
            theme_id=qr_code.theme_id,
            theme_slug=qr_code.theme.slug if qr_code.theme else None,
            short_code=qr_code.short_code,
            is_active=qr_code.is_active,
            scan_count=qr_code.scan_count,
            created_at=qr_code.created_at,
            last_scanned_at=qr_code.last_scanned_at,
            qr_url=short_link(qr_code.short_code),
            image_url=storage_service.public_url(settings.qr_codes_bucket, f"{qr_code.short_code}.png"),
        )


# Singleton instance
qr_service = QRService()
