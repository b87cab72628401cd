"""Runtime configuration routes (admin)."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.auth.security import require_admin
from quadriparlanti.db.models import Config, User, utcnow
from quadriparlanti.db.session import get_db
from quadriparlanti.schemas.schemas import ConfigEntry, ConfigUpdate
from quadriparlanti.services.analytics_service import DAILY_SALT_KEY
from quadriparlanti.services.audit import audit_service

router = APIRouter(prefix="/v1/admin/config", tags=["Admin - Config"])

# Managed by the worker; never listed or written through the API.
RESERVED_KEYS = {DAILY_SALT_KEY}


def _check_key(key: str) -> None:
    if key in RESERVED_KEYS:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Configuration key '{key}' is managed by the system",
        )


@router.get(
    "",
    response_model=list[ConfigEntry],
    summary="List configuration entries",
)
async def list_config(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    result = await db.execute(
        select(Config).where(Config.key.notin_(RESERVED_KEYS)).order_by(Config.key)
    )
    return result.scalars().all()


@router.get(
    "/{key}",
    response_model=ConfigEntry,
    summary="Get a configuration entry",
)
async def get_config(
    key: str,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    _check_key(key)
    entry = await db.get(Config, key)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Configuration key not found")
    return entry


@router.put(
    "/{key}",
    response_model=ConfigEntry,
    summary="Set a configuration entry",
    description="Creates the entry if it does not exist.",
)
async def set_config(
    key: str,
    data: ConfigUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    _check_key(key)
    entry = await db.get(Config, key)
    if entry is None:
        entry = Config(key=key, value=data.value, description=data.description, updated_by=admin.id)
        db.add(entry)
    else:
        entry.value = data.value
        if data.description is not None:
            entry.description = data.description
        entry.updated_by = admin.id
        entry.updated_at = utcnow()

    await audit_service.log_action(
        db, action="config.update", resource_type="config", resource_id=key, user=admin
    )
    await db.commit()
    await db.refresh(entry)
    return entry
