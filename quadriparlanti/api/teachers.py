"""Teacher account management routes (admin)."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.auth.security import require_admin
from quadriparlanti.db.models import User, UserStatus
from quadriparlanti.db.session import get_db
from quadriparlanti.schemas.schemas import (
    InviteLinkResponse,
    MessageResponse,
    TeacherCreate,
    TeacherCreateResponse,
    TeacherListResponse,
    TeacherResponse,
    TeacherStats,
    TeacherUpdate,
)
from quadriparlanti.services.user_service import user_service
from quadriparlanti.worker import enqueue_account_email

router = APIRouter(prefix="/v1/admin/teachers", tags=["Admin - Teachers"])


@router.post(
    "",
    response_model=TeacherCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a teacher",
    description="Create a teacher account, sending an invitation unless a password is given.",
)
async def create_teacher(
    data: TeacherCreate,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user, invite_url = await user_service.create_teacher(db, data, admin)
    await db.commit()

    if invite_url:
        enqueue_account_email(background, user.email, "invite", invite_url)

    return TeacherCreateResponse(
        teacher=user_service.teacher_to_response(user),
        invite_url=invite_url,
    )


@router.get(
    "",
    response_model=TeacherListResponse,
    summary="List teachers",
    description="Paginated teachers, newest first, with search over name and email.",
)
async def list_teachers(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    search: Optional[str] = Query(None, max_length=100),
    status_filter: Optional[UserStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    rows, total = await user_service.list_teachers(db, page, limit, search, status_filter)
    return TeacherListResponse(
        teachers=[user_service.teacher_to_response(u, count) for u, count in rows],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
    )


@router.get(
    "/stats",
    response_model=TeacherStats,
    summary="Teacher counts per status",
)
async def teacher_stats(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    return await user_service.get_teacher_stats(db)


@router.get(
    "/{teacher_id}",
    response_model=TeacherResponse,
    summary="Get a teacher",
)
async def get_teacher(
    teacher_id: str,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    user, works_count = await user_service.get_teacher(db, teacher_id)
    return user_service.teacher_to_response(user, works_count)


@router.patch(
    "/{teacher_id}",
    response_model=TeacherResponse,
    summary="Update a teacher",
    description="Update name, bio, profile image or status. Suspension revokes access keys.",
)
async def update_teacher(
    teacher_id: str,
    data: TeacherUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = await user_service.update_teacher(db, teacher_id, data, admin)
    await db.commit()
    user, works_count = await user_service.get_teacher(db, teacher_id)
    return user_service.teacher_to_response(user, works_count)


@router.delete(
    "/{teacher_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a teacher",
    description="Suspends the account; `hard=true` removes it when the teacher owns no works.",
)
async def delete_teacher(
    teacher_id: str,
    hard: bool = Query(False, description="Remove the account instead of suspending it"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    await user_service.delete_teacher(db, teacher_id, admin, hard=hard)
    await db.commit()


@router.post(
    "/{teacher_id}/resend-invitation",
    response_model=MessageResponse,
    summary="Resend the invitation e-mail",
)
async def resend_invitation(
    teacher_id: str,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    user, _token, link = await user_service.create_invitation(db, teacher_id)
    await db.commit()
    enqueue_account_email(background, user.email, "invite", link)
    return MessageResponse(message=f"Invitation sent to {user.email}")


@router.post(
    "/{teacher_id}/invite-link",
    response_model=InviteLinkResponse,
    summary="Generate an invitation link",
    description="Create an invitation link to share manually; no e-mail is sent.",
)
async def generate_invite_link(
    teacher_id: str,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_admin),
):
    _user, token, link = await user_service.create_invitation(db, teacher_id)
    await db.commit()
    return InviteLinkResponse(invite_url=link, expires_at=token.expires_at)


@router.post(
    "/{teacher_id}/reset-password",
    response_model=MessageResponse,
    summary="Send a password reset link to a teacher",
)
async def reset_teacher_password(
    teacher_id: str,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user, link = await user_service.create_password_reset(db, teacher_id, admin)
    await db.commit()
    enqueue_account_email(background, user.email, "recovery", link)
    return MessageResponse(message=f"Password reset link sent to {user.email}")
