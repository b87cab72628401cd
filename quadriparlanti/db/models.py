"""Database models for the Quadriparlanti archive."""

import enum
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quadriparlanti.db.session import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _values(enum_cls):
    return [member.value for member in enum_cls]


def _enum(enum_cls, name: str) -> Enum:
    """Enum column storing the member values, not the names."""
    return Enum(enum_cls, name=name, values_callable=_values, validate_strings=True)


class UserRole(str, enum.Enum):
    """Roles governing permission checks."""

    DOCENTE = "docente"
    ADMIN = "admin"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INVITED = "invited"
    SUSPENDED = "suspended"


class ThemeStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class WorkStatus(str, enum.Enum):
    """Lifecycle states of a work (see domain.work_lifecycle)."""

    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    NEEDS_REVISION = "needs_revision"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class LicenseType(str, enum.Enum):
    NONE = "none"
    CC_BY = "CC BY"
    CC_BY_SA = "CC BY-SA"
    CC_BY_NC = "CC BY-NC"
    CC_BY_NC_SA = "CC BY-NC-SA"


class LinkType(str, enum.Enum):
    YOUTUBE = "youtube"
    VIMEO = "vimeo"
    DRIVE = "drive"
    OTHER = "other"


class FileType(str, enum.Enum):
    PDF = "pdf"
    IMAGE = "image"


class DeviceType(str, enum.Enum):
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"
    UNKNOWN = "unknown"


class ReferrerType(str, enum.Enum):
    THEME_PAGE = "theme_page"
    SEARCH = "search"
    DIRECT = "direct"
    EXTERNAL = "external"


class ReviewAction(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class TokenPurpose(str, enum.Enum):
    """Purpose of a one-time token sent by e-mail."""

    INVITE = "invite"
    RECOVERY = "recovery"


class User(Base):
    """A teacher or administrator account."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    role: Mapped[UserRole] = mapped_column(_enum(UserRole, "user_role"), default=UserRole.DOCENTE)
    status: Mapped[UserStatus] = mapped_column(
        _enum(UserStatus, "user_status"), default=UserStatus.INVITED
    )
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    profile_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=utcnow
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    api_keys: Mapped[list["ApiKey"]] = relationship(
        "ApiKey", back_populates="user", cascade="all, delete-orphan"
    )
    works: Mapped[list["Work"]] = relationship("Work", back_populates="creator")


class ApiKey(Base):
    """Personal access keys for authentication."""

    __tablename__ = "api_keys"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    key_hash: Mapped[str] = mapped_column(String(255), unique=True)
    key_prefix: Mapped[str] = mapped_column(String(12), index=True)  # First 12 chars for lookup
    name: Mapped[str] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="api_keys")


class AuthToken(Base):
    """One-time invitation and password recovery tokens."""

    __tablename__ = "auth_tokens"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    purpose: Mapped[TokenPurpose] = mapped_column(_enum(TokenPurpose, "token_purpose"))
    token_hash: Mapped[str] = mapped_column(String(255))
    token_prefix: Mapped[str] = mapped_column(String(12), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped["User"] = relationship("User")


class Theme(Base):
    """A bilingual category grouping works."""

    __tablename__ = "themes"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    title_it: Mapped[str] = mapped_column(String(100))
    title_en: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description_it: Mapped[str] = mapped_column(Text)
    description_en: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    slug: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    featured_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[ThemeStatus] = mapped_column(
        _enum(ThemeStatus, "theme_status"), default=ThemeStatus.DRAFT
    )
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    created_by: Mapped[Optional[str]] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=utcnow
    )

    # Relationships
    qr_codes: Mapped[list["QRCode"]] = relationship(
        "QRCode", back_populates="theme", cascade="all, delete-orphan"
    )


class Work(Base):
    """A student-project submission."""

    __tablename__ = "works"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    title_it: Mapped[str] = mapped_column(String(200))
    title_en: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    description_it: Mapped[str] = mapped_column(Text, default="")
    description_en: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    class_name: Mapped[str] = mapped_column(String(50), default="")
    teacher_name: Mapped[str] = mapped_column(String(100), default="")
    school_year: Mapped[Optional[str]] = mapped_column(String(7), nullable=True, index=True)
    status: Mapped[WorkStatus] = mapped_column(
        _enum(WorkStatus, "work_status"), default=WorkStatus.DRAFT, index=True
    )
    license: Mapped[LicenseType] = mapped_column(
        _enum(LicenseType, "license_type"), default=LicenseType.NONE
    )
    tags: Mapped[list] = mapped_column(JSON, default=list)
    view_count: Mapped[int] = mapped_column(Integer, default=0)
    edit_count: Mapped[int] = mapped_column(Integer, default=0)
    created_by: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("users.id"), index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=utcnow
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    creator: Mapped["User"] = relationship("User", back_populates="works")
    themes: Mapped[list["Theme"]] = relationship(
        "Theme", secondary="work_themes", viewonly=True, order_by="Theme.display_order"
    )
    attachments: Mapped[list["WorkAttachment"]] = relationship(
        "WorkAttachment", back_populates="work", cascade="all, delete-orphan"
    )
    links: Mapped[list["WorkLink"]] = relationship(
        "WorkLink", back_populates="work", cascade="all, delete-orphan"
    )
    reviews: Mapped[list["WorkReview"]] = relationship(
        "WorkReview", back_populates="work", cascade="all, delete-orphan"
    )


class WorkTheme(Base):
    """Join table between works and themes."""

    __tablename__ = "work_themes"

    work_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("works.id", ondelete="CASCADE"), primary_key=True
    )
    theme_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("themes.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class WorkAttachment(Base):
    """A file stored in object storage and owned by a work."""

    __tablename__ = "work_attachments"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    work_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("works.id", ondelete="CASCADE"), index=True
    )
    file_name: Mapped[str] = mapped_column(String(255))
    file_size_bytes: Mapped[int] = mapped_column(Integer)
    file_type: Mapped[FileType] = mapped_column(_enum(FileType, "file_type"))
    mime_type: Mapped[str] = mapped_column(String(100), default="application/octet-stream")
    storage_path: Mapped[str] = mapped_column(Text)
    thumbnail_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uploaded_by: Mapped[Optional[str]] = mapped_column(Uuid(as_uuid=False), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    work: Mapped["Work"] = relationship("Work", back_populates="attachments")


class WorkLink(Base):
    """An external URL (video or document) owned by a work."""

    __tablename__ = "work_links"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    work_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("works.id", ondelete="CASCADE"), index=True
    )
    url: Mapped[str] = mapped_column(Text)
    link_type: Mapped[LinkType] = mapped_column(_enum(LinkType, "link_type"))
    custom_label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    preview_title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    preview_thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    work: Mapped["Work"] = relationship("Work", back_populates="links")


class WorkReview(Base):
    """Append-only record of an admin decision on a work."""

    __tablename__ = "work_reviews"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    work_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("works.id", ondelete="CASCADE"), index=True
    )
    reviewer_id: Mapped[Optional[str]] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    action: Mapped[ReviewAction] = mapped_column(_enum(ReviewAction, "review_action"))
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    work: Mapped["Work"] = relationship("Work", back_populates="reviews")
    reviewer: Mapped[Optional["User"]] = relationship("User")


class QRCode(Base):
    """A short code bound to a theme."""

    __tablename__ = "qr_codes"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    theme_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("themes.id", ondelete="CASCADE"), index=True
    )
    short_code: Mapped[str] = mapped_column(String(6), unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    scan_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    last_scanned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    theme: Mapped["Theme"] = relationship("Theme", back_populates="qr_codes")


class QRScan(Base):
    """Append-only scan event."""

    __tablename__ = "qr_scans"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    qr_code_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("qr_codes.id", ondelete="CASCADE"), index=True
    )
    theme_id: Mapped[Optional[str]] = mapped_column(Uuid(as_uuid=False), nullable=True, index=True)
    scanned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    hashed_ip: Mapped[str] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    device_type: Mapped[DeviceType] = mapped_column(
        _enum(DeviceType, "device_type"), default=DeviceType.UNKNOWN
    )
    referer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class WorkView(Base):
    """Append-only work view event."""

    __tablename__ = "work_views"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    work_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("works.id", ondelete="CASCADE"), index=True
    )
    viewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    hashed_ip: Mapped[str] = mapped_column(String(64))
    referrer: Mapped[ReferrerType] = mapped_column(
        _enum(ReferrerType, "referrer_type"), default=ReferrerType.DIRECT
    )
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)


class Config(Base):
    """Key/value runtime configuration (e.g. the daily IP salt)."""

    __tablename__ = "config"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )
    updated_by: Mapped[Optional[str]] = mapped_column(Uuid(as_uuid=False), nullable=True)


class AuditLog(Base):
    """Audit log for tracking changes made through the API."""

    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        Uuid(as_uuid=False), nullable=True, index=True
    )
    action: Mapped[str] = mapped_column(String(50), index=True)  # e.g., "work.approve", "theme.create"
    resource_type: Mapped[str] = mapped_column(String(50))  # "work", "theme", "qr_code", "user"
    resource_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
