import asyncio
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from app.core.database import get_db
from app.core.exceptions import InvalidStateError
from app.api.deps import get_applicant
from app.models.user import User
from app.models.application import ApplicationStatus
from app.schemas.application import (
    Application as ApplicationSchema,
    ApplicationCreate,
    ApplicationSummary,
    SubmissionReadiness,
    WithdrawRequest,
)
from app.schemas.credit_points import CreditPointsBreakdown
from app.services.application_service import application_service
from app.services.receipt_service import build_receipt_snapshot, receipt_generator
import uuid

router = APIRouter()


@router.post("/", response_model=ApplicationSchema)
async def create_or_get_draft(
    payload: ApplicationCreate,
    current_user: User = Depends(get_applicant),
    db: AsyncSession = Depends(get_db)
):
    """Return the draft for a job, creating it on first use"""
    application = await application_service.get_or_create_draft(db, current_user, payload.job_id)
    await db.commit()
    return application


@router.get("/", response_model=List[ApplicationSummary])
async def list_my_applications(
    status: Optional[ApplicationStatus] = Query(None, description="Filter by status"),
    current_user: User = Depends(get_applicant),
    db: AsyncSession = Depends(get_db)
):
    """All applications of the current applicant, newest first"""
    applications = await application_service.list_applications(
        db, current_user, status.value if status else None
    )
    return [ApplicationSummary.from_application(a) for a in applications]


@router.get("/{application_id}", response_model=ApplicationSchema)
async def get_application(
    application_id: uuid.UUID,
    current_user: User = Depends(get_applicant),
    db: AsyncSession = Depends(get_db)
):
    return await application_service.get_application(db, application_id, current_user)


@router.get("/{application_id}/credit-points", response_model=CreditPointsBreakdown)
async def get_credit_points(
    application_id: uuid.UUID,
    current_user: User = Depends(get_applicant),
    db: AsyncSession = Depends(get_db)
):
    """Server-computed credit breakdown"""
    return await application_service.get_credit_points(db, application_id, current_user)


@router.get("/{application_id}/readiness", response_model=SubmissionReadiness)
async def check_readiness(
    application_id: uuid.UUID,
    current_user: User = Depends(get_applicant),
    db: AsyncSession = Depends(get_db)
):
    """Everything that would block a submit right now"""
    return await application_service.check_submission_readiness(db, application_id, current_user)


@router.post("/{application_id}/submit", response_model=ApplicationSchema)
async def submit_application(
    application_id: uuid.UUID,
    current_user: User = Depends(get_applicant),
    db: AsyncSession = Depends(get_db)
):
    # The service commits before queueing the confirmation and receipt jobs
    return await application_service.submit(db, application_id, current_user)


@router.post("/{application_id}/withdraw", response_model=ApplicationSchema)
async def withdraw_application(
    application_id: uuid.UUID,
    payload: Optional[WithdrawRequest] = None,
    current_user: User = Depends(get_applicant),
    db: AsyncSession = Depends(get_db)
):
    application = await application_service.withdraw(
        db, application_id, current_user, reason=payload.reason if payload else None
    )
    await db.commit()
    return application


@router.get("/{application_id}/receipt")
async def download_receipt(
    application_id: uuid.UUID,
    current_user: User = Depends(get_applicant),
    db: AsyncSession = Depends(get_db)
):
    """Render the submission receipt as a PDF"""
    application = await application_service.get_application(db, application_id, current_user)
    if application.status == ApplicationStatus.DRAFT.value:
        raise InvalidStateError("Receipts are available after submission")

    pdf = await asyncio.to_thread(receipt_generator.generate_receipt, build_receipt_snapshot(application))
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{application.application_number}.pdf"'},
    )
