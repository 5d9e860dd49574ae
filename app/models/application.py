from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
import enum
import uuid
from app.core.database import Base


class ApplicationStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    SHORTLISTED = "shortlisted"
    REJECTED = "rejected"
    SELECTED = "selected"
    WITHDRAWN = "withdrawn"


class Application(Base):
    __tablename__ = "applications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    job_id = Column(UUID(as_uuid=True), ForeignKey("jobs.id"), nullable=False, index=True)

    # Issued once, on the first transition out of draft
    application_number = Column(String(32), unique=True, nullable=True, index=True)

    status = Column(String(20), nullable=False, default=ApplicationStatus.DRAFT.value, index=True)
    # Values: see ApplicationStatus

    job_snapshot = Column(JSONB, nullable=False, default=dict)
    # {"title", "advertisement_no", "department", "required_sections": [...]} copied at draft creation

    sections = Column(JSONB, nullable=False, default=dict)
    # {section_type: {"data", "is_verified", "verification_notes", "verified_by",
    #                 "verified_at", "document_ref", "saved_at"}}

    credit_breakdown = Column(JSONB, nullable=True)
    # Output of the credit scoring engine; never written from client input

    status_history = Column(JSONB, nullable=False, default=list)
    # Append-only: [{"status", "remarks", "changed_by", "changed_at"}]

    # Reviewer notes on the application as a whole
    review_notes = Column(Text, nullable=True)
    reviewed_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    receipt_ref = Column(JSONB, nullable=True)
    # DocumentRef of the PDF rendered after submission

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    job = relationship("Job")

    __table_args__ = (
        # At most one draft per (applicant, job); submitted/withdrawn rows do not count
        Index(
            "uq_applications_one_draft_per_job",
            "user_id",
            "job_id",
            unique=True,
            postgresql_where=text("status = 'draft'"),
            sqlite_where=text("status = 'draft'"),
        ),
        Index("ix_applications_job_status", "job_id", "status"),
    )

    def __repr__(self):
        return f"<Application(id={self.id}, user_id={self.user_id}, job_id={self.job_id}, status={self.status})>"


class ApplicationSequence(Base):
    """Per-year counter backing human-readable application numbers."""
    __tablename__ = "application_sequences"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<ApplicationSequence(year={self.year}, last_value={self.last_value})>"
