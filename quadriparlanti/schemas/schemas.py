"""Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from quadriparlanti.db.models import (
    FileType,
    LicenseType,
    LinkType,
    ReferrerType,
    ThemeStatus,
    UserRole,
    UserStatus,
    WorkStatus,
)
from quadriparlanti.domain.work_lifecycle import MIN_DESCRIPTION_LENGTH, MIN_TITLE_LENGTH
from quadriparlanti.utils.links import detect_link_type, is_valid_url
from quadriparlanti.utils.text import SLUG_PATTERN, is_valid_school_year

MAX_TAGS = 10
MAX_TAG_LENGTH = 30
MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024

IMAGE_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
PDF_MIME_TYPES = {"application/pdf"}


def normalize_file_type(value: Optional[str], mime_type: Optional[str] = None) -> FileType:
    """
    Map a declared file type or MIME type onto ``pdf`` / ``image``.

    Raises ValueError for anything else.
    """
    for candidate in (value, mime_type):
        if not candidate:
            continue
        candidate = candidate.lower().strip()
        if candidate == "image" or candidate.startswith("image/"):
            return FileType.IMAGE
        if candidate in ("pdf", "application/pdf"):
            return FileType.PDF
        raise ValueError(f"Unsupported file type: {candidate}")
    raise ValueError("File type is required")


def _check_school_year(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    if not is_valid_school_year(v):
        raise ValueError("School year must look like 2024-25")
    return v


def _check_tags(v: list[str]) -> list[str]:
    tags = [t.strip() for t in v]
    if len(tags) > MAX_TAGS:
        raise ValueError(f"At most {MAX_TAGS} tags are allowed")
    for tag in tags:
        if not 1 <= len(tag) <= MAX_TAG_LENGTH:
            raise ValueError(f"Each tag must be between 1 and {MAX_TAG_LENGTH} characters")
    return tags


# ============== Auth Schemas ==============


class LoginRequest(BaseModel):
    """Credentials exchanged for a personal access key."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    """Public view of an account."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: Optional[str] = None
    role: UserRole
    status: UserStatus
    bio: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: datetime
    last_login_at: Optional[datetime] = None


class LoginResponse(BaseModel):
    """Response after login (only time the full key is shown)."""

    access_key: str
    key_prefix: str
    expires_at: Optional[datetime] = None
    user: UserResponse


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)


class PasswordResetRequest(BaseModel):
    email: EmailStr


class SetPasswordRequest(BaseModel):
    """Password set through an invitation or recovery token."""

    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=128)


class MessageResponse(BaseModel):
    message: str


# ============== Teacher Schemas ==============


class TeacherCreate(BaseModel):
    """Request to create a teacher account."""

    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    bio: Optional[str] = Field(None, max_length=1000)
    send_invitation: bool = Field(True, description="Send an invitation instead of setting a password")
    password: Optional[str] = Field(None, min_length=8, max_length=128)

    @model_validator(mode="after")
    def password_required_without_invitation(self) -> "TeacherCreate":
        if not self.send_invitation and not self.password:
            raise ValueError("Password is required when no invitation is sent")
        return self


class TeacherUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    bio: Optional[str] = Field(None, max_length=1000)
    profile_image_url: Optional[str] = Field(None, max_length=2000)
    status: Optional[UserStatus] = None


class TeacherResponse(UserResponse):
    works_count: int = 0


class TeacherListResponse(BaseModel):
    """Paginated list of teachers."""

    teachers: list[TeacherResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class TeacherStats(BaseModel):
    total: int
    active: int
    invited: int
    suspended: int


class TeacherCreateResponse(BaseModel):
    teacher: TeacherResponse
    invite_url: Optional[str] = None


class InviteLinkResponse(BaseModel):
    invite_url: str
    expires_at: datetime


# ============== Theme Schemas ==============


class ThemeCreate(BaseModel):
    """Request to create a theme. The slug is derived from title_it when omitted."""

    title_it: str = Field(..., min_length=5, max_length=100)
    title_en: Optional[str] = Field(None, max_length=100)
    description_it: str = Field(..., min_length=50, max_length=500)
    description_en: Optional[str] = Field(None, max_length=500)
    slug: Optional[str] = Field(None, min_length=1, max_length=120, pattern=SLUG_PATTERN)
    featured_image_url: Optional[str] = Field(None, max_length=2000)
    display_order: int = Field(0, ge=0)
    status: ThemeStatus = ThemeStatus.DRAFT


class ThemeUpdate(BaseModel):
    title_it: Optional[str] = Field(None, min_length=5, max_length=100)
    title_en: Optional[str] = Field(None, max_length=100)
    description_it: Optional[str] = Field(None, min_length=50, max_length=500)
    description_en: Optional[str] = Field(None, max_length=500)
    slug: Optional[str] = Field(None, min_length=1, max_length=120, pattern=SLUG_PATTERN)
    featured_image_url: Optional[str] = Field(None, max_length=2000)
    display_order: Optional[int] = Field(None, ge=0)
    status: Optional[ThemeStatus] = None


class ThemeSummary(BaseModel):
    """Compact theme reference embedded in work responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title_it: str
    title_en: Optional[str] = None
    slug: str


class ThemeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title_it: str
    title_en: Optional[str] = None
    description_it: str
    description_en: Optional[str] = None
    slug: str
    featured_image_url: Optional[str] = None
    status: ThemeStatus
    display_order: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    works_count: int = 0


class ThemeReorderItem(BaseModel):
    id: str
    display_order: int = Field(..., ge=0)


class ThemeReorderRequest(BaseModel):
    items: list[ThemeReorderItem] = Field(..., min_length=1)


class ImageUploadRequest(BaseModel):
    """Request for a presigned theme cover upload."""

    file_name: str = Field(..., min_length=1, max_length=255)
    mime_type: str
    file_size_bytes: int = Field(..., gt=0, le=MAX_ATTACHMENT_BYTES)

    @field_validator("mime_type")
    @classmethod
    def image_only(cls, v: str) -> str:
        if v.lower() not in IMAGE_MIME_TYPES:
            raise ValueError("Only JPEG, PNG and WEBP images are allowed")
        return v.lower()


# ============== Work Schemas ==============


class AttachmentInput(BaseModel):
    """Metadata of a file already uploaded to storage."""

    file_name: str = Field(..., min_length=1, max_length=255)
    file_size_bytes: int = Field(..., gt=0, le=MAX_ATTACHMENT_BYTES)
    file_type: Optional[FileType] = None
    mime_type: str = Field(..., min_length=1, max_length=100)
    storage_path: str = Field(..., min_length=1)
    thumbnail_path: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_type(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            data["file_type"] = normalize_file_type(data.get("file_type"), data.get("mime_type"))
        return data


class LinkInput(BaseModel):
    """External link; the type is detected from the URL when omitted."""

    url: str = Field(..., min_length=1, max_length=2000)
    link_type: Optional[LinkType] = None
    custom_label: Optional[str] = Field(None, max_length=100)

    @field_validator("url")
    @classmethod
    def valid_url(cls, v: str) -> str:
        v = v.strip()
        if not is_valid_url(v):
            raise ValueError("Invalid URL")
        return v

    @model_validator(mode="after")
    def fill_link_type(self) -> "LinkInput":
        if self.link_type is None:
            self.link_type = detect_link_type(self.url)
        return self


class WizardBasicInfo(BaseModel):
    """Step 1 of the submission wizard."""

    title_it: str = Field(..., max_length=200)
    title_en: Optional[str] = Field(None, max_length=200)
    description_it: str = Field(..., max_length=2000)
    description_en: Optional[str] = Field(None, max_length=2000)
    class_name: str = Field(..., min_length=2, max_length=50)
    teacher_name: str = Field(..., min_length=2, max_length=100)
    school_year: str

    license: LicenseType = LicenseType.NONE
    tags: list[str] = Field(default_factory=list)

    # Same thresholds as the submit-time readiness check, after trimming
    @field_validator("title_it")
    @classmethod
    def title_long_enough(cls, v: str) -> str:
        if len(v.strip()) < MIN_TITLE_LENGTH:
            raise ValueError(f"title_it must be at least {MIN_TITLE_LENGTH} characters")
        return v

    @field_validator("description_it")
    @classmethod
    def description_long_enough(cls, v: str) -> str:
        if len(v.strip()) < MIN_DESCRIPTION_LENGTH:
            raise ValueError(
                f"description_it must be at least {MIN_DESCRIPTION_LENGTH} characters"
            )
        return v

    @field_validator("school_year")
    @classmethod
    def valid_school_year(cls, v: str) -> str:
        if not is_valid_school_year(v):
            raise ValueError("School year must look like 2024-25")
        return v

    @field_validator("tags")
    @classmethod
    def valid_tags(cls, v: list[str]) -> list[str]:
        return _check_tags(v)


class WizardContent(BaseModel):
    """Step 2: attachments and links."""

    attachments: list[AttachmentInput] = Field(default_factory=list)
    links: list[LinkInput] = Field(default_factory=list)


class WizardThemes(BaseModel):
    """Step 3: at least one theme."""

    theme_ids: list[str] = Field(..., min_length=1)


class WorkCreate(BaseModel):
    """
    Aggregate write of a work.

    Saved as a draft; only ``title_it`` is required. With
    ``submit_for_review`` the work is submitted in the same request and must
    pass the readiness check.
    """

    title_it: str = Field(..., min_length=1, max_length=200)
    title_en: Optional[str] = Field(None, max_length=200)
    description_it: str = Field("", max_length=2000)
    description_en: Optional[str] = Field(None, max_length=2000)
    class_name: str = Field("", max_length=50)
    teacher_name: str = Field("", max_length=100)
    school_year: Optional[str] = None
    license: LicenseType = LicenseType.NONE
    tags: list[str] = Field(default_factory=list)
    theme_ids: list[str] = Field(default_factory=list)
    attachments: list[AttachmentInput] = Field(default_factory=list)
    links: list[LinkInput] = Field(default_factory=list)
    submit_for_review: bool = False

    @field_validator("school_year")
    @classmethod
    def valid_school_year(cls, v: Optional[str]) -> Optional[str]:
        return _check_school_year(v)

    @field_validator("tags")
    @classmethod
    def valid_tags(cls, v: list[str]) -> list[str]:
        return _check_tags(v)


class WorkUpdate(BaseModel):
    """Partial update; relation lists replace the stored ones when supplied."""

    title_it: Optional[str] = Field(None, min_length=1, max_length=200)
    title_en: Optional[str] = Field(None, max_length=200)
    description_it: Optional[str] = Field(None, max_length=2000)
    description_en: Optional[str] = Field(None, max_length=2000)
    class_name: Optional[str] = Field(None, max_length=50)
    teacher_name: Optional[str] = Field(None, max_length=100)
    school_year: Optional[str] = None
    license: Optional[LicenseType] = None
    tags: Optional[list[str]] = None
    theme_ids: Optional[list[str]] = None
    attachments: Optional[list[AttachmentInput]] = None
    links: Optional[list[LinkInput]] = None

    @field_validator("school_year")
    @classmethod
    def valid_school_year(cls, v: Optional[str]) -> Optional[str]:
        return _check_school_year(v)

    @field_validator("tags")
    @classmethod
    def valid_tags(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return None if v is None else _check_tags(v)


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    file_name: str
    file_size_bytes: int
    file_type: FileType
    mime_type: str
    storage_path: str
    thumbnail_path: Optional[str] = None
    public_url: Optional[str] = None
    uploaded_at: datetime


class LinkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    url: str
    link_type: LinkType
    custom_label: Optional[str] = None
    preview_title: Optional[str] = None
    embed_url: Optional[str] = None
    created_at: datetime


class WorkResponse(BaseModel):
    """Full view of a work for its owner or an admin."""

    id: str
    title_it: str
    title_en: Optional[str] = None
    description_it: str
    description_en: Optional[str] = None
    class_name: str
    teacher_name: str
    school_year: Optional[str] = None
    status: WorkStatus
    license: LicenseType
    tags: list[str] = []
    view_count: int
    edit_count: int
    created_by: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    themes: list[ThemeSummary] = []
    attachments: list[AttachmentResponse] = []
    links: list[LinkResponse] = []
    allowed_actions: list[str] = []


class WorkListResponse(BaseModel):
    works: list[WorkResponse]
    total: int
    limit: int
    offset: int


class AttachmentUploadRequest(BaseModel):
    """Request for a presigned attachment upload."""

    file_name: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., min_length=1, max_length=100)
    file_size_bytes: int = Field(..., gt=0)
    work_id: Optional[str] = None


class UploadUrlResponse(BaseModel):
    upload_url: str
    storage_path: str
    file_type: Optional[FileType] = None
    public_url: str
    content_type: str
    expires_in: int


# ============== Review Schemas ==============


class ReviewDecisionRequest(BaseModel):
    """Comments are optional on approval and required on rejection."""

    comments: Optional[str] = Field(None, max_length=2000)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    work_id: str
    reviewer_id: Optional[str] = None
    action: str
    comments: Optional[str] = None
    reviewed_at: datetime


class SubmitterInfo(BaseModel):
    id: str
    name: Optional[str] = None
    email: str


class ReviewQueueItem(BaseModel):
    """A work waiting for review."""

    id: str
    title_it: str
    title_en: Optional[str] = None
    description_it: str
    class_name: str
    teacher_name: str
    school_year: Optional[str] = None
    created_at: datetime
    submitted_at: Optional[datetime] = None
    edit_count: int
    hours_pending: float
    attachment_count: int
    link_count: int
    themes: list[ThemeSummary] = []
    attachments: list[AttachmentResponse] = []
    links: list[LinkResponse] = []
    submitter: Optional[SubmitterInfo] = None


class ReviewQueueResponse(BaseModel):
    items: list[ReviewQueueItem]
    total: int


# ============== Wizard Schemas ==============


class WizardValidateRequest(BaseModel):
    step: Literal["basic_info", "content", "themes", "review"]
    data: dict = Field(default_factory=dict)


class WizardValidateResponse(BaseModel):
    step: str
    valid: bool
    errors: dict[str, str] = {}
    next_step: Optional[str] = None
    previous_step: Optional[str] = None


# ============== Public Schemas ==============


class PublicWorkResponse(BaseModel):
    """Published work as shown to visitors."""

    id: str
    title_it: str
    title_en: Optional[str] = None
    description_it: str
    description_en: Optional[str] = None
    class_name: str
    teacher_name: str
    school_year: Optional[str] = None
    license: LicenseType
    tags: list[str] = []
    view_count: int
    published_at: Optional[datetime] = None
    themes: list[ThemeSummary] = []
    attachments: list[AttachmentResponse] = []
    links: list[LinkResponse] = []


class PublicWorkListResponse(BaseModel):
    works: list[PublicWorkResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class PublicThemeDetail(BaseModel):
    theme: ThemeResponse
    works: list[PublicWorkResponse]


# ============== QR Code Schemas ==============


class QRCodeCreate(BaseModel):
    theme_id: str


class QRCodeToggle(BaseModel):
    is_active: bool


class QRCodeResponse(BaseModel):
    id: str
    theme_id: str
    theme_slug: Optional[str] = None
    short_code: str
    is_active: bool
    scan_count: int
    created_at: datetime
    last_scanned_at: Optional[datetime] = None
    qr_url: str
    image_url: str


# ============== Analytics Schemas ==============


class WorkViewEvent(BaseModel):
    """View event logged by the front end."""

    work_id: str
    referrer: ReferrerType = ReferrerType.DIRECT
    session_id: Optional[str] = Field(None, max_length=100)


class AnalyticsSummary(BaseModel):
    total_works: int
    published_works: int
    pending_works: int
    draft_works: int
    needs_revision_works: int
    archived_works: int
    total_themes: int
    published_themes: int
    total_teachers: int
    active_teachers: int
    total_qr_scans: int
    total_views: int


class DailyCount(BaseModel):
    date: str
    count: int


class PopularWork(BaseModel):
    id: str
    title_it: str
    view_count: int
    published_at: Optional[datetime] = None


class ThemeStat(BaseModel):
    id: str
    title_it: str
    slug: str
    works_count: int
    scan_count: int


class TeacherStat(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    works_count: int
    published_count: int


class RecentActivity(BaseModel):
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: datetime


class AnalyticsResponse(BaseModel):
    summary: AnalyticsSummary
    scan_trend: list[DailyCount]
    popular_works: list[PopularWork]
    theme_stats: list[ThemeStat]
    teacher_stats: list[TeacherStat]
    recent_activity: list[RecentActivity]


# ============== Config Schemas ==============


class ConfigEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    value: str
    description: Optional[str] = None
    updated_at: Optional[datetime] = None


class ConfigUpdate(BaseModel):
    value: str = Field(..., max_length=10000)
    description: Optional[str] = Field(None, max_length=500)


# ============== Health & Misc Schemas ==============


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    redis: str
    storage: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: Optional[str] = None
