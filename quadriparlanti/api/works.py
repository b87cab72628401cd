"""Work submission routes for teachers."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from quadriparlanti.auth.security import require_user
from quadriparlanti.config import get_settings
from quadriparlanti.db.models import User, WorkStatus
from quadriparlanti.db.session import get_db
from quadriparlanti.domain.submission_wizard import (
    WizardStep,
    next_step,
    previous_step,
    validate_step,
)
from quadriparlanti.middleware.rate_limit import rate_limit_general
from quadriparlanti.schemas.schemas import (
    AttachmentUploadRequest,
    ReviewResponse,
    UploadUrlResponse,
    WizardValidateRequest,
    WizardValidateResponse,
    WorkCreate,
    WorkListResponse,
    WorkResponse,
    WorkUpdate,
)
from quadriparlanti.services.storage import StorageValidationError, storage_service
from quadriparlanti.services.work_service import work_service
from quadriparlanti.worker import enqueue_work_notification

router = APIRouter(prefix="/v1/works", tags=["Works"])
uploads_router = APIRouter(prefix="/v1/uploads", tags=["Uploads"])

settings = get_settings()


@router.post(
    "",
    response_model=WorkResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a work",
    description="Save a work with its themes, attachments and links in one call.",
)
@rate_limit_general()
async def create_work(
    request: Request,
    data: WorkCreate,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    """
    Create a work.

    - **theme_ids**: themes the work belongs to
    - **attachments**: files already uploaded through `/v1/uploads/attachments`
    - **links**: external URLs (YouTube, Vimeo, Google Drive, other)
    - **submit_for_review**: submit immediately instead of saving a draft
    """
    work = await work_service.create_work(db, data, user)
    await db.commit()

    if work.status == WorkStatus.PENDING_REVIEW:
        enqueue_work_notification(background, work.id, "submitted")

    return work_service.work_to_response(work, user)


@router.get(
    "",
    response_model=WorkListResponse,
    summary="List my works",
)
async def list_my_works(
    status_filter: Optional[WorkStatus] = Query(None, alias="status"),
    school_year: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    works, total = await work_service.list_my_works(
        db, user, status_filter, school_year, limit, offset
    )
    return WorkListResponse(
        works=[work_service.work_to_response(w, user) for w in works],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post(
    "/wizard/validate",
    response_model=WizardValidateResponse,
    summary="Validate a wizard step",
    description="Field-level validation of one submission step; `review` checks every step.",
)
async def validate_wizard_step(
    data: WizardValidateRequest,
    _: User = Depends(require_user),
):
    step = WizardStep(data.step)
    errors = validate_step(step, data.data)
    following = next_step(step, data.data) if not errors else None
    preceding = previous_step(step)
    return WizardValidateResponse(
        step=step.value,
        valid=not errors,
        errors=errors,
        next_step=following.value if following else None,
        previous_step=preceding.value if preceding else None,
    )


@router.get(
    "/{work_id}",
    response_model=WorkResponse,
    summary="Get a work",
)
async def get_work(
    work_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    work = await work_service.get_work(db, work_id, user)
    return work_service.work_to_response(work, user)


@router.patch(
    "/{work_id}",
    response_model=WorkResponse,
    summary="Update a work",
    description="Owners edit while draft or needs_revision. Supplied relation lists replace the stored ones.",
)
async def update_work(
    work_id: str,
    data: WorkUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    work = await work_service.update_work(db, work_id, data, user)
    await db.commit()
    return work_service.work_to_response(work, user)


@router.delete(
    "/{work_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a work",
)
async def delete_work(
    work_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    await work_service.delete_work(db, work_id, user)
    await db.commit()


@router.post(
    "/{work_id}/submit",
    response_model=WorkResponse,
    summary="Submit for review",
)
async def submit_work(
    work_id: str,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    work = await work_service.submit_for_review(db, work_id, user)
    await db.commit()
    enqueue_work_notification(background, work.id, "submitted")
    return work_service.work_to_response(work, user)


@router.post(
    "/{work_id}/archive",
    response_model=WorkResponse,
    summary="Archive a work",
)
async def archive_work(
    work_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    work = await work_service.archive_work(db, work_id, user)
    await db.commit()
    return work_service.work_to_response(work, user)


@router.get(
    "/{work_id}/reviews",
    response_model=list[ReviewResponse],
    summary="Review history",
)
async def get_work_reviews(
    work_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    reviews = await work_service.get_reviews(db, work_id, user)
    return [
        ReviewResponse(
            id=r.id,
            work_id=r.work_id,
            reviewer_id=r.reviewer_id,
            action=r.action.value,
            comments=r.comments,
            reviewed_at=r.reviewed_at,
        )
        for r in reviews
    ]


@uploads_router.post(
    "/attachments",
    response_model=UploadUrlResponse,
    summary="Get an attachment upload URL",
    description="Validate an attachment and return a presigned URL for a direct upload to storage.",
)
@rate_limit_general()
async def create_attachment_upload(
    request: Request,
    data: AttachmentUploadRequest,
    user: User = Depends(require_user),
):
    try:
        file_type = storage_service.validate_attachment(data.mime_type, data.file_size_bytes)
    except StorageValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    path = storage_service.generate_storage_path(user.id, data.file_name, data.work_id)
    upload = storage_service.generate_upload_url(settings.attachments_bucket, path, data.mime_type.lower())
    return UploadUrlResponse(file_type=file_type, **upload)
