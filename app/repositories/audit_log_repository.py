"""
Audit log repository.
"""

from __future__ import annotations
from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditLog
from .base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):

    def __init__(self):
        super().__init__(AuditLog)

    async def record(
        self,
        db: AsyncSession,
        action: str,
        resource_id: Optional[UUID],
        user_id: Optional[UUID] = None,
        changes: Optional[dict] = None,
        resource_type: str = "application"
    ) -> AuditLog:
        """
        Append one audit entry in the caller's transaction.

        Example:
            await repo.record(db, AuditAction.APPLICATION_SUBMITTED, app.id,
                              user_id=user.id, changes={"after": {"status": "submitted"}})
        """
        return await self.create(db, {
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "user_id": user_id,
            "changes": changes or {},
        })
