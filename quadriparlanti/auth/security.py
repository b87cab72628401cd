"""Authentication and authorization utilities."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.config import get_settings
from quadriparlanti.db.models import (
    ApiKey,
    AuthToken,
    TokenPurpose,
    User,
    UserRole,
    UserStatus,
    as_utc,
)
from quadriparlanti.db.session import get_db
from quadriparlanti.domain.work_lifecycle import Actor

settings = get_settings()

# Hashing context for passwords, access keys and one-time tokens
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

ACCESS_KEY_PREFIX = "qpk_"
ONE_TIME_TOKEN_PREFIX = "qpt_"
SECRET_LENGTH = 36


def _generate_secret(prefix: str) -> tuple[str, str]:
    """
    Generate a prefixed secret.
    Returns: (full_secret, lookup_prefix)
    Format: qpk_XXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX (32 random hex chars after prefix)
    """
    full = f"{prefix}{secrets.token_hex(16)}"
    return full, full[:12]


def generate_api_key() -> tuple[str, str]:
    return _generate_secret(ACCESS_KEY_PREFIX)


def generate_one_time_token() -> tuple[str, str]:
    return _generate_secret(ONE_TIME_TOKEN_PREFIX)


def hash_secret(value: str) -> str:
    """Hash a password, access key or token for storage."""
    return pwd_context.hash(value)


def verify_secret(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


hash_password = hash_secret
verify_password = verify_secret


def _has_format(value: str, prefix: str) -> bool:
    return value.startswith(prefix) and len(value) == SECRET_LENGTH


async def get_api_key_from_db(
    db: AsyncSession, key_prefix: str, full_key: str
) -> Optional[ApiKey]:
    """Look up an access key by prefix and verify the full key."""
    result = await db.execute(
        select(ApiKey).where(
            ApiKey.key_prefix == key_prefix,
            ApiKey.is_active == True,  # noqa: E712
        )
    )
    now = datetime.now(timezone.utc)
    for api_key in result.scalars().all():
        if api_key.expires_at and as_utc(api_key.expires_at) < now:
            continue
        if verify_secret(full_key, api_key.key_hash):
            return api_key
    return None


class AuthenticatedUser:
    """Dependency resolving the calling user from an access key."""

    def __init__(self, required_roles: Optional[list[UserRole]] = None):
        self.required_roles = required_roles or []

    async def __call__(
        self,
        request: Request,
        authorization: Optional[str] = Header(None),
        x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        """Extract and validate the access key, then check the user's role."""
        # Try Authorization header first, then X-API-Key
        key_str = None

        if authorization:
            if authorization.startswith("Bearer "):
                key_str = authorization[7:].strip()
            else:
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Not authenticated",
                )
        elif x_api_key:
            key_str = x_api_key.strip()

        if not key_str or not _has_format(key_str, ACCESS_KEY_PREFIX):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
            )

        api_key = await get_api_key_from_db(db, key_str[:12], key_str)
        if api_key is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
            )

        user = await db.get(User, api_key.user_id)
        if user is None or user.status != UserStatus.ACTIVE:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is not active",
            )

        if self.required_roles and user.role not in self.required_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

        api_key.last_used_at = datetime.now(timezone.utc)
        # Read-only routes never commit, so persist the touch here
        await db.commit()

        # Store in request state for the rate limiter and audit logging
        request.state.api_key = api_key
        request.state.user = user
        return user


# Convenience dependency instances
require_user = AuthenticatedUser()
require_admin = AuthenticatedUser(required_roles=[UserRole.ADMIN])


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role)


async def create_api_key(
    db: AsyncSession,
    user: User,
    name: str = "session",
    expires_in_days: Optional[int] = None,
) -> tuple[ApiKey, str]:
    """
    Create a new access key for ``user``.
    Returns: (ApiKey model, full_key_string)
    """
    full_key, prefix = generate_api_key()

    expires_at = None
    if expires_in_days:
        expires_at = datetime.now(timezone.utc) + timedelta(days=expires_in_days)

    api_key = ApiKey(
        user_id=user.id,
        key_hash=hash_secret(full_key),
        key_prefix=prefix,
        name=name,
        expires_at=expires_at,
    )

    db.add(api_key)
    await db.flush()

    return api_key, full_key


async def create_one_time_token(
    db: AsyncSession,
    user: User,
    purpose: TokenPurpose,
) -> tuple[AuthToken, str]:
    """
    Issue an invitation or recovery token, invalidating earlier unused ones
    for the same purpose.
    """
    result = await db.execute(
        select(AuthToken).where(
            AuthToken.user_id == user.id,
            AuthToken.purpose == purpose,
            AuthToken.used_at.is_(None),
        )
    )
    now = datetime.now(timezone.utc)
    for previous in result.scalars().all():
        previous.used_at = now

    hours = (
        settings.invite_token_hours
        if purpose == TokenPurpose.INVITE
        else settings.recovery_token_hours
    )
    full_token, prefix = generate_one_time_token()
    token = AuthToken(
        user_id=user.id,
        purpose=purpose,
        token_hash=hash_secret(full_token),
        token_prefix=prefix,
        expires_at=now + timedelta(hours=hours),
    )
    db.add(token)
    await db.flush()
    return token, full_token


async def verify_one_time_token(
    db: AsyncSession,
    full_token: str,
    purpose: Optional[TokenPurpose] = None,
) -> Optional[AuthToken]:
    """Return the matching unused, unexpired token, or None."""
    if not _has_format(full_token, ONE_TIME_TOKEN_PREFIX):
        return None

    query = select(AuthToken).where(
        AuthToken.token_prefix == full_token[:12],
        AuthToken.used_at.is_(None),
    )
    if purpose is not None:
        query = query.where(AuthToken.purpose == purpose)

    result = await db.execute(query)
    now = datetime.now(timezone.utc)
    for token in result.scalars().all():
        if as_utc(token.expires_at) < now:
            continue
        if verify_secret(full_token, token.token_hash):
            return token
    return None
