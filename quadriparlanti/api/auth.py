"""Authentication routes: sessions, passwords and the e-mail link callback."""

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.auth.security import require_user
from quadriparlanti.config import get_settings
from quadriparlanti.db.models import TokenPurpose, User
from quadriparlanti.db.session import get_db
from quadriparlanti.middleware.rate_limit import rate_limit_auth
from quadriparlanti.schemas.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetRequest,
    SetPasswordRequest,
    UserResponse,
)
from quadriparlanti.services.user_service import user_service
from quadriparlanti.worker import enqueue_account_email

router = APIRouter(prefix="/v1/auth", tags=["Auth"])
callback_router = APIRouter(tags=["Auth"])

settings = get_settings()

RESET_MESSAGE = "If the address belongs to an account, a reset link has been sent"


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Log in",
    description="Exchange email and password for a personal access key.",
)
@rate_limit_auth()
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Log in with email and password.

    **Important**: The access key is only shown once in this response.
    Send it as `Authorization: Bearer <key>` on later requests.
    """
    user, api_key, full_key = await user_service.login(db, credentials.email, credentials.password)
    await db.commit()

    return LoginResponse(
        access_key=full_key,  # Only time this is shown
        key_prefix=api_key.key_prefix,
        expires_at=api_key.expires_at,
        user=UserResponse.model_validate(user),
    )


@router.delete(
    "/session",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Log out",
    description="Revoke the access key used for this request.",
)
async def logout(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    await user_service.logout(db, request.state.api_key)
    await db.commit()


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Current user",
)
async def get_current_user(user: User = Depends(require_user)):
    return UserResponse.model_validate(user)


@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change password",
)
async def change_password(
    data: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    await user_service.change_password(db, user, data.current_password, data.new_password)
    await db.commit()
    return MessageResponse(message="Password updated")


@router.post(
    "/password-reset",
    response_model=MessageResponse,
    summary="Request a password reset",
    description="Always answers the same way, whether or not the account exists.",
)
@rate_limit_auth()
async def request_password_reset(
    request: Request,
    data: PasswordResetRequest,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    issued = await user_service.request_password_reset(db, data.email)
    await db.commit()

    if issued:
        user, link = issued
        enqueue_account_email(background, user.email, "recovery", link)
    return MessageResponse(message=RESET_MESSAGE)


@router.post(
    "/set-password",
    response_model=UserResponse,
    summary="Set password with a token",
    description="Complete an invitation or a password recovery.",
)
async def set_password(
    data: SetPasswordRequest,
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.set_password(db, data.token, data.password)
    await db.commit()
    return UserResponse.model_validate(user)


@callback_router.get(
    "/auth/callback",
    summary="E-mail link callback",
    description="Validate an invitation or recovery link and forward it to the set-password page.",
    response_class=RedirectResponse,
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
)
async def auth_callback(
    token_hash: Optional[str] = Query(None),
    token_type: Optional[str] = Query(None, alias="type"),
    locale: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    site = settings.site_url.rstrip("/")
    loc = settings.resolve_locale(locale)
    error_url = f"{site}/{loc}/login?error=auth_error"

    try:
        purpose = TokenPurpose(token_type) if token_type else None
    except ValueError:
        return RedirectResponse(error_url)

    if not token_hash or purpose is None:
        return RedirectResponse(error_url)

    token = await user_service.check_token(db, token_hash, purpose)
    if token is None:
        return RedirectResponse(error_url)

    return RedirectResponse(
        f"{site}/{loc}/set-password?token={quote(token_hash)}&type={purpose.value}"
    )
