"""Accounts: login, passwords, invitations and teacher management."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.auth.security import (
    create_api_key,
    create_one_time_token,
    hash_password,
    verify_one_time_token,
    verify_password,
)
from quadriparlanti.config import get_settings
from quadriparlanti.db.models import (
    ApiKey,
    AuthToken,
    TokenPurpose,
    User,
    UserRole,
    UserStatus,
    Work,
)
from quadriparlanti.schemas.schemas import (
    TeacherCreate,
    TeacherResponse,
    TeacherStats,
    TeacherUpdate,
)
from quadriparlanti.services.audit import audit_service

settings = get_settings()
logger = logging.getLogger(__name__)


def callback_link(token: str, purpose: TokenPurpose) -> str:
    """Link sent by e-mail; the callback endpoint forwards it to the front end."""
    return f"{settings.api_url.rstrip('/')}/auth/callback?token_hash={token}&type={purpose.value}"


def _teacher_not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")


class UserService:
    """Service for accounts and teacher management."""

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(func.lower(User.email) == email.lower().strip()))
        return result.scalar_one_or_none()

    # ---- authentication ----

    async def login(self, db: AsyncSession, email: str, password: str) -> tuple[User, ApiKey, str]:
        """
        Check credentials and issue a session access key.

        Only active accounts may log in.
        """
        user = await self.get_by_email(db, email)
        if user is None or not verify_password(password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
            )
        if user.status != UserStatus.ACTIVE:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is not active",
            )

        api_key, full_key = await create_api_key(
            db, user, name="session", expires_in_days=settings.session_key_days
        )
        user.last_login_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info(f"User {user.id} logged in")
        return user, api_key, full_key

    async def logout(self, db: AsyncSession, api_key: ApiKey):
        api_key.is_active = False
        await db.flush()

    async def change_password(
        self, db: AsyncSession, user: User, current_password: str, new_password: str
    ):
        if not verify_password(current_password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect",
            )
        user.password_hash = hash_password(new_password)
        await db.flush()

    async def request_password_reset(self, db: AsyncSession, email: str) -> Optional[tuple[User, str]]:
        """
        Issue a recovery token for an existing, non-suspended account.

        Returns None otherwise; callers answer the same way in both cases.
        """
        user = await self.get_by_email(db, email)
        if user is None or user.status == UserStatus.SUSPENDED:
            return None
        _, token = await create_one_time_token(db, user, TokenPurpose.RECOVERY)
        return user, callback_link(token, TokenPurpose.RECOVERY)

    async def check_token(self, db: AsyncSession, token: str, purpose: Optional[TokenPurpose]) -> Optional[AuthToken]:
        return await verify_one_time_token(db, token, purpose)

    async def set_password(self, db: AsyncSession, token: str, password: str) -> User:
        """Consume an invitation or recovery token; invited accounts become active."""
        auth_token = await verify_one_time_token(db, token)
        if auth_token is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid or expired token",
            )
        user = await db.get(User, auth_token.user_id)
        if user is None or user.status == UserStatus.SUSPENDED:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is not active",
            )

        user.password_hash = hash_password(password)
        if user.status == UserStatus.INVITED:
            user.status = UserStatus.ACTIVE
        auth_token.used_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info(f"Password set for user {user.id} via {auth_token.purpose.value} token")
        return user

    # ---- teacher management ----

    async def _works_count(self, db: AsyncSession, user_id: str) -> int:
        return (
            await db.execute(select(func.count()).select_from(Work).where(Work.created_by == user_id))
        ).scalar() or 0

    async def _get_teacher(self, db: AsyncSession, teacher_id: str) -> User:
        user = await db.get(User, teacher_id)
        if user is None or user.role != UserRole.DOCENTE:
            raise _teacher_not_found()
        return user

    async def create_teacher(
        self, db: AsyncSession, data: TeacherCreate, admin: User
    ) -> tuple[User, Optional[str]]:
        """
        Create a teacher, either invited (returns the invitation link) or
        active with the given password.
        """
        if await self.get_by_email(db, data.email) is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A user with this email already exists",
            )

        user = User(
            email=data.email.lower(),
            name=data.name,
            bio=data.bio,
            role=UserRole.DOCENTE,
            status=UserStatus.INVITED if data.send_invitation else UserStatus.ACTIVE,
            password_hash=None if data.send_invitation else hash_password(data.password),
        )
        db.add(user)
        await db.flush()

        invite_url = None
        if data.send_invitation:
            _, token = await create_one_time_token(db, user, TokenPurpose.INVITE)
            invite_url = callback_link(token, TokenPurpose.INVITE)

        await audit_service.log_action(
            db,
            action="teacher.create",
            resource_type="user",
            resource_id=user.id,
            user=admin,
            details={"invited": data.send_invitation},
        )
        logger.info(f"Teacher {user.id} created by {admin.id}")
        return user, invite_url

    async def list_teachers(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        status_filter: Optional[UserStatus] = None,
    ) -> tuple[list[tuple[User, int]], int]:
        """
        Teachers, newest first, with their works count.

        Returns:
            Tuple of ([(user, works_count)], total_count)
        """
        query = select(User).where(User.role == UserRole.DOCENTE)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
        if status_filter:
            query = query.where(User.status == status_filter)

        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

        works = (
            select(Work.created_by, func.count().label("works_count"))
            .group_by(Work.created_by)
            .subquery()
        )
        result = await db.execute(
            query.add_columns(func.coalesce(works.c.works_count, 0))
            .outerjoin(works, works.c.created_by == User.id)
            .order_by(User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return [(user, int(count)) for user, count in result.all()], total

    async def get_teacher(self, db: AsyncSession, teacher_id: str) -> tuple[User, int]:
        user = await self._get_teacher(db, teacher_id)
        return user, await self._works_count(db, user.id)

    async def update_teacher(
        self, db: AsyncSession, teacher_id: str, data: TeacherUpdate, admin: User
    ) -> User:
        user = await self._get_teacher(db, teacher_id)
        fields = data.model_dump(exclude_unset=True)
        for name, value in fields.items():
            if value is None and name in ("name", "status"):
                continue
            setattr(user, name, value)

        if user.status == UserStatus.SUSPENDED:
            await self._revoke_keys(db, user.id)

        await db.flush()
        await audit_service.log_action(
            db,
            action="teacher.update",
            resource_type="user",
            resource_id=user.id,
            user=admin,
            details={"fields": sorted(fields.keys())},
        )
        return user

    async def _revoke_keys(self, db: AsyncSession, user_id: str):
        await db.execute(
            update(ApiKey).where(ApiKey.user_id == user_id).values(is_active=False)
        )

    async def delete_teacher(
        self, db: AsyncSession, teacher_id: str, admin: User, hard: bool = False
    ):
        """
        Suspend a teacher, or remove the account when ``hard`` is set.

        Hard deletion is refused while the teacher owns works.
        """
        user = await self._get_teacher(db, teacher_id)
        if hard:
            count = await self._works_count(db, user.id)
            if count:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Teacher owns {count} works and cannot be deleted; suspend instead",
                )
            await db.delete(user)
        else:
            user.status = UserStatus.SUSPENDED
            await self._revoke_keys(db, user.id)

        await audit_service.log_action(
            db,
            action="teacher.delete" if hard else "teacher.suspend",
            resource_type="user",
            resource_id=teacher_id,
            user=admin,
        )
        await db.flush()

    async def create_invitation(self, db: AsyncSession, teacher_id: str) -> tuple[User, AuthToken, str]:
        """New invitation link for a teacher who has not accepted yet."""
        user = await self._get_teacher(db, teacher_id)
        if user.status != UserStatus.INVITED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Teacher has already accepted the invitation",
            )
        token, full_token = await create_one_time_token(db, user, TokenPurpose.INVITE)
        return user, token, callback_link(full_token, TokenPurpose.INVITE)

    async def create_password_reset(self, db: AsyncSession, teacher_id: str, admin: User) -> tuple[User, str]:
        """Admin-initiated recovery link."""
        user = await self._get_teacher(db, teacher_id)
        if user.status == UserStatus.SUSPENDED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Teacher is suspended",
            )
        _, token = await create_one_time_token(db, user, TokenPurpose.RECOVERY)
        await audit_service.log_action(
            db, action="teacher.reset_password", resource_type="user", resource_id=user.id, user=admin
        )
        return user, callback_link(token, TokenPurpose.RECOVERY)

    async def get_teacher_stats(self, db: AsyncSession) -> TeacherStats:
        result = await db.execute(
            select(User.status, func.count())
            .where(User.role == UserRole.DOCENTE)
            .group_by(User.status)
        )
        counts = dict(result.all())
        return TeacherStats(
            total=sum(counts.values()),
            active=counts.get(UserStatus.ACTIVE, 0),
            invited=counts.get(UserStatus.INVITED, 0),
            suspended=counts.get(UserStatus.SUSPENDED, 0),
        )

    def teacher_to_response(self, user: User, works_count: int = 0) -> TeacherResponse:
        response = TeacherResponse.model_validate(user)
        response.works_count = works_count
        return response


# Singleton instance
user_service = UserService()
