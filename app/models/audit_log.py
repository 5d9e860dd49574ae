"""
Audit trail of lifecycle and review actions.
"""
from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import UUID, JSONB
import uuid
from app.core.database import Base


class AuditAction:
    APPLICATION_CREATED = "APPLICATION_CREATED"
    APPLICATION_SUBMITTED = "APPLICATION_SUBMITTED"
    APPLICATION_WITHDRAWN = "APPLICATION_WITHDRAWN"
    APPLICATION_STATUS_CHANGED = "APPLICATION_STATUS_CHANGED"
    APPLICATION_STATUS_FORCED = "APPLICATION_STATUS_FORCED"
    APPLICATION_REVIEWED = "APPLICATION_REVIEWED"
    SECTION_VERIFIED = "SECTION_VERIFIED"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)

    action = Column(String(50), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False, default="application")
    resource_id = Column(UUID(as_uuid=True), nullable=True, index=True)

    changes = Column(JSONB, nullable=True)
    # {"before": {...}, "after": {...}, ...}

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    def __repr__(self):
        return f"<AuditLog(action={self.action}, resource_id={self.resource_id})>"
