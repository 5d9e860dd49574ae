from pydantic import BaseModel, Field
from typing import Any, Optional, List, Dict
from datetime import datetime
import uuid

from app.schemas.credit_points import CreditPointsBreakdown
from app.utils.pagination import PaginationMeta


class ApplicationCreate(BaseModel):
    """Create-or-fetch the applicant's draft for a job."""
    job_id: uuid.UUID


class SectionWrite(BaseModel):
    """Full replacement of one section's payload."""
    data: Dict[str, Any]


class WithdrawRequest(BaseModel):
    reason: Optional[str] = None


class DocumentRef(BaseModel):
    """Reference returned by document storage; the core never reads the blob."""
    storage_key: str
    url: str
    filename: str
    content_type: str
    size: int
    uploaded_at: datetime


class SectionRecord(BaseModel):
    data: Dict[str, Any] = {}
    is_verified: Optional[bool] = None
    verification_notes: Optional[str] = None
    verified_by: Optional[uuid.UUID] = None
    verified_at: Optional[datetime] = None
    document_ref: Optional[DocumentRef] = None
    saved_at: Optional[datetime] = None


class StatusChange(BaseModel):
    status: str
    remarks: str
    changed_by: Optional[uuid.UUID] = None
    changed_at: datetime


class Application(BaseModel):
    """Full application document"""
    id: uuid.UUID
    user_id: uuid.UUID
    job_id: uuid.UUID
    application_number: Optional[str] = None
    status: str
    job_snapshot: Dict[str, Any] = {}
    sections: Dict[str, SectionRecord] = {}
    credit_breakdown: Optional[CreditPointsBreakdown] = None
    status_history: List[StatusChange] = []
    review_notes: Optional[str] = None
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    receipt_ref: Optional[DocumentRef] = None
    submitted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApplicationSummary(BaseModel):
    """Row of an application listing"""
    id: uuid.UUID
    user_id: uuid.UUID
    job_id: uuid.UUID
    application_number: Optional[str] = None
    status: str
    job_title: Optional[str] = None
    grand_total: Optional[float] = None
    submitted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_application(cls, application) -> "ApplicationSummary":
        breakdown = application.credit_breakdown or {}
        return cls(
            id=application.id,
            user_id=application.user_id,
            job_id=application.job_id,
            application_number=application.application_number,
            status=application.status,
            job_title=(application.job_snapshot or {}).get("title"),
            grand_total=breakdown.get("grand_total"),
            submitted_at=application.submitted_at,
            created_at=application.created_at,
        )


class ApplicationListResponse(BaseModel):
    items: List[ApplicationSummary]
    meta: PaginationMeta


class SubmissionIssue(BaseModel):
    section: Optional[str] = None
    field: Optional[str] = None
    message: str


class SubmissionReadiness(BaseModel):
    can_submit: bool
    errors: List[SubmissionIssue] = []


# Reviewer requests

class SectionVerificationUpdate(BaseModel):
    """``is_verified`` is tri-state: null resets the decision."""
    is_verified: Optional[bool] = None
    notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str
    remarks: str


class ReviewNotesUpdate(BaseModel):
    notes: str


class BulkStatusUpdate(BaseModel):
    application_ids: List[uuid.UUID] = Field(..., min_length=1, max_length=100)
    status: str
    remarks: str


class BulkStatusFailure(BaseModel):
    application_id: uuid.UUID
    error: str
    detail: str


class BulkStatusResult(BaseModel):
    updated: List[uuid.UUID] = []
    failed: List[BulkStatusFailure] = []
