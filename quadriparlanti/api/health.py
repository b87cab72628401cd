"""Health check and system info routes."""

import logging

import redis
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.config import get_settings
from quadriparlanti.db.models import WorkStatus
from quadriparlanti.db.session import get_db
from quadriparlanti.schemas.schemas import HealthResponse
from quadriparlanti.services.storage import storage_service

router = APIRouter(tags=["System"])

settings = get_settings()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health status of the service and its dependencies.",
)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns the status of:
    - Database connection
    - Redis connection
    - Object storage connection
    """
    # Check Redis
    redis_status = "ok"
    try:
        r = redis.from_url(settings.redis_url, socket_connect_timeout=1)
        r.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        redis_status = "error"

    # Check storage
    storage_status = "ok" if storage_service.health_check() else "error"

    # Check database
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        db_status = "error"

    overall_status = "healthy"
    if any(s == "error" for s in [redis_status, storage_status, db_status]):
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=VERSION,
        database=db_status,
        redis=redis_status,
        storage=storage_status,
    )


@router.get(
    "/v1/info",
    summary="Service information",
    description="Get general information about the service.",
)
async def service_info():
    """Get service information."""
    return {
        "name": settings.app_name,
        "version": VERSION,
        "environment": settings.app_env,
        "site_url": settings.site_url,
        "default_locale": settings.default_locale,
        "supported_locales": [
            {"code": code, "name": settings.language_names.get(code, code)}
            for code in settings.supported_locales
        ],
        "work_statuses": [s.value for s in WorkStatus],
        "max_upload_size_bytes": settings.max_upload_size_bytes,
        "documentation": "/docs",
        "redoc": "/redoc",
    }
