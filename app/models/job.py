from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import UUID
import uuid
from app.core.database import Base


class Job(Base):
    """
    Faculty position advertisement.

    Job CRUD is owned by the admin screens; the application core only reads
    the publishing state, the deadline and the section configuration.
    """
    __tablename__ = "jobs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    title = Column(String(255), nullable=False, index=True)
    advertisement_no = Column(String(100), index=True)
    department = Column(String(255))

    status = Column(String(20), nullable=False, default="draft", index=True)
    # Values: draft, published, closed

    application_end_date = Column(DateTime(timezone=True), nullable=True)

    required_sections = Column(JSON, nullable=False, default=list)
    # [{"section_type": "education", "is_mandatory": true, "requires_pdf": false, "min_items": 1}]

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Job(id={self.id}, title={self.title}, status={self.status})>"
