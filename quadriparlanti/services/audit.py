"""Audit trail of administrative and lifecycle actions."""

import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.db.models import AuditLog, User
from quadriparlanti.middleware.request_context import get_client_ip, get_user_agent

logger = logging.getLogger(__name__)


class AuditService:
    async def log_action(
        self,
        db: AsyncSession,
        *,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        user: Optional[User] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Add an audit row to the current unit of work."""
        try:
            db.add(
                AuditLog(
                    user_id=user.id if user else None,
                    action=action,
                    resource_type=resource_type,
                    resource_id=str(resource_id) if resource_id is not None else None,
                    details=details or None,
                    ip_address=get_client_ip() or None,
                    user_agent=get_user_agent() or None,
                )
            )
            await db.flush()
        except SQLAlchemyError as e:
            logger.warning(f"Audit log failed for {action} on {resource_type}: {e}")
            raise


audit_service = AuditService()
