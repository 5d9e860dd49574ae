from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from app.core.database import get_db
from app.api.deps import get_admin, get_reviewer
from app.models.user import User
from app.schemas.application import (
    Application as ApplicationSchema,
    ApplicationListResponse,
    ApplicationSummary,
    BulkStatusResult,
    BulkStatusUpdate,
    ReviewNotesUpdate,
    SectionRecord,
    SectionVerificationUpdate,
    StatusUpdate,
)
from app.services.review_service import review_service
from app.utils.pagination import PaginationParams
import uuid

router = APIRouter()


@router.get("/", response_model=ApplicationListResponse)
async def list_applications(
    job_id: Optional[uuid.UUID] = Query(None, description="Filter by job"),
    status: Optional[str] = Query(None, description="Filter by status"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: User = Depends(get_reviewer),
    db: AsyncSession = Depends(get_db)
):
    """Submitted applications, newest submission first"""
    params = PaginationParams(page=page, limit=limit)
    applications, meta = await review_service.list_applications(
        db, params, job_id=job_id, status_filter=status
    )
    return ApplicationListResponse(
        items=[ApplicationSummary.from_application(a) for a in applications],
        meta=meta,
    )


@router.get("/{application_id}", response_model=ApplicationSchema)
async def get_application(
    application_id: uuid.UUID,
    current_user: User = Depends(get_reviewer),
    db: AsyncSession = Depends(get_db)
):
    return await review_service.get_application(db, application_id)


@router.patch("/{application_id}/sections/{section_type}/verification", response_model=SectionRecord)
async def verify_section(
    application_id: uuid.UUID,
    section_type: str,
    payload: SectionVerificationUpdate,
    current_user: User = Depends(get_reviewer),
    db: AsyncSession = Depends(get_db)
):
    """Approve, reject or reset one section. Does not change the status."""
    record = await review_service.verify_section(
        db, application_id, section_type, payload.is_verified, payload.notes, current_user
    )
    await db.commit()
    return record


@router.patch("/{application_id}/status", response_model=ApplicationSchema)
async def update_status(
    application_id: uuid.UUID,
    payload: StatusUpdate,
    current_user: User = Depends(get_reviewer),
    db: AsyncSession = Depends(get_db)
):
    application = await review_service.update_status(
        db, application_id, payload.status, payload.remarks, current_user
    )
    await db.commit()
    return application


@router.patch("/{application_id}/force-status", response_model=ApplicationSchema)
async def force_status(
    application_id: uuid.UUID,
    payload: StatusUpdate,
    current_user: User = Depends(get_admin),
    db: AsyncSession = Depends(get_db)
):
    """Admin override of the status graph. Remarks are still required."""
    application = await review_service.force_status(
        db, application_id, payload.status, payload.remarks, current_user
    )
    await db.commit()
    return application


@router.patch("/{application_id}/review-notes", response_model=ApplicationSchema)
async def add_review_notes(
    application_id: uuid.UUID,
    payload: ReviewNotesUpdate,
    current_user: User = Depends(get_reviewer),
    db: AsyncSession = Depends(get_db)
):
    application = await review_service.add_review_notes(db, application_id, payload.notes, current_user)
    await db.commit()
    return application


@router.post("/bulk-status", response_model=BulkStatusResult)
async def bulk_update_status(
    payload: BulkStatusUpdate,
    current_user: User = Depends(get_reviewer),
    db: AsyncSession = Depends(get_db)
):
    """Apply one status change to many applications; failures are reported per id"""
    result = await review_service.bulk_update_status(
        db, payload.application_ids, payload.status, payload.remarks, current_user
    )
    await db.commit()
    return result
