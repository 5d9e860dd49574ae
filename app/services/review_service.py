"""
Staff-side operations: section verification, status decisions, review notes.

Everything here works on submitted applications only; drafts belong to the
applicant. Status changes follow the graph in
``app.utils.status_transitions``, except for the admin-only
``force_status`` override, which still records remarks and history.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ApplicationError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models.application import Application, ApplicationStatus
from app.models.audit_log import AuditAction
from app.models.user import User, UserRole
from app.repositories.application_repository import ApplicationRepository
from app.repositories.audit_log_repository import AuditLogRepository
from app.utils.pagination import PaginationMeta, PaginationParams
from app.utils.status_transitions import (
    build_status_change,
    get_allowed_targets,
    is_valid_transition,
    parse_status,
)

logger = logging.getLogger(__name__)

DRAFT = ApplicationStatus.DRAFT.value


def _require_text(value: Optional[str], field: str, label: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(
            f"{label} are required",
            [{"section": None, "field": field, "message": f"{label} cannot be empty"}],
        )
    return text


def _parse_target(value: str) -> ApplicationStatus:
    try:
        return parse_status(value)
    except ValueError as e:
        raise ValidationError(str(e), [{"section": None, "field": "status", "message": str(e)}])


class ReviewService:
    """Reviewer and admin actions on submitted applications."""

    def __init__(
        self,
        application_repo: Optional[ApplicationRepository] = None,
        audit_repo: Optional[AuditLogRepository] = None
    ):
        self.application_repo = application_repo or ApplicationRepository()
        self.audit_repo = audit_repo or AuditLogRepository()

    async def _get_submitted(self, db: AsyncSession, application_id: UUID) -> Application:
        application = await self.application_repo.get(db, application_id)
        if application is None:
            raise NotFoundError("Application not found", detail={"application_id": str(application_id)})
        if application.status == DRAFT:
            raise InvalidStateError(
                "Application has not been submitted yet",
                detail={"status": application.status},
            )
        return application

    async def get_application(self, db: AsyncSession, application_id: UUID) -> Application:
        return await self._get_submitted(db, application_id)

    async def list_applications(
        self,
        db: AsyncSession,
        params: PaginationParams,
        job_id: Optional[UUID] = None,
        status_filter: Optional[str] = None
    ) -> tuple[list[Application], PaginationMeta]:
        """Paginated listing of non-draft applications."""
        if status_filter:
            status_filter = _parse_target(status_filter).value
        applications, total = await self.application_repo.get_applications_for_review(
            db,
            job_id=job_id,
            status_filter=status_filter,
            skip=params.get_offset(),
            limit=params.limit,
        )
        return applications, PaginationMeta.from_params(params, total)

    async def verify_section(
        self,
        db: AsyncSession,
        application_id: UUID,
        section_type: str,
        is_verified: Optional[bool],
        notes: Optional[str],
        reviewer: User
    ) -> dict:
        """
        Record the reviewer's decision on one section.

        ``is_verified`` is tri-state (None clears a decision). The application
        status is never touched.
        """
        application = await self._get_submitted(db, application_id)
        # Locked re-read; the sections map is rewritten whole below
        application = await self.application_repo.get_for_update(db, application.id)
        sections = application.sections or {}
        if section_type not in sections:
            raise NotFoundError(
                f"Section '{section_type}' not found",
                detail={"section": section_type},
            )

        before = sections[section_type].get("is_verified")
        record = {
            **sections[section_type],
            "is_verified": is_verified,
            "verification_notes": (notes or "").strip() or None,
            "verified_by": str(reviewer.id),
            "verified_at": datetime.now(timezone.utc).isoformat(),
        }
        await self.application_repo.update(
            db, application, {"sections": {**sections, section_type: record}}
        )
        await self.audit_repo.record(
            db, AuditAction.SECTION_VERIFIED, application.id,
            user_id=reviewer.id,
            changes={
                "section": section_type,
                "before": {"is_verified": before},
                "after": {"is_verified": is_verified},
            },
        )
        logger.info(
            f"Section {section_type} of application {application.id} "
            f"marked {is_verified} by {reviewer.id}"
        )
        return application.sections[section_type]

    async def _apply_status(
        self,
        db: AsyncSession,
        application: Application,
        target: ApplicationStatus,
        remarks: str,
        actor: User,
        action: str
    ) -> Application:
        current = application.status
        now = datetime.now(timezone.utc)
        history = [
            *(application.status_history or []),
            build_status_change(target.value, remarks, actor.id, now),
        ]
        updated = await self.application_repo.update_if_status(db, application, current, {
            "status": target.value,
            "status_history": history,
        })
        if not updated:
            raise InvalidStateError(
                f"Application status changed concurrently, now {application.status}",
                detail={"status": application.status},
            )
        await self.audit_repo.record(
            db, action, application.id,
            user_id=actor.id,
            changes={
                "before": {"status": current},
                "after": {"status": target.value},
                "remarks": remarks,
            },
        )
        logger.info(f"Application {application.id} moved {current} -> {target.value} by {actor.id}")
        return application

    async def update_status(
        self,
        db: AsyncSession,
        application_id: UUID,
        new_status: str,
        remarks: Optional[str],
        reviewer: User
    ) -> Application:
        """
        Move the application along one edge of the status graph.

        Raises:
            ValidationError: Empty remarks or unknown status
            InvalidStateError: Application is still a draft
            InvalidTransitionError: Not an edge from the current status
        """
        remarks = _require_text(remarks, "remarks", "Remarks")
        target = _parse_target(new_status)
        application = await self._get_submitted(db, application_id)

        if not is_valid_transition(application.status, target.value):
            raise InvalidTransitionError(
                f"Cannot move application from {application.status} to {target.value}",
                detail={
                    "current_status": application.status,
                    "allowed": get_allowed_targets(application.status),
                },
            )
        return await self._apply_status(
            db, application, target, remarks, reviewer, AuditAction.APPLICATION_STATUS_CHANGED
        )

    async def force_status(
        self,
        db: AsyncSession,
        application_id: UUID,
        new_status: str,
        remarks: Optional[str],
        admin: User
    ) -> Application:
        """
        Admin override that skips the edge check.

        Remarks are still mandatory, history is still appended, and nothing
        can be forced back into draft.
        """
        if admin.role != UserRole.ADMIN:
            raise PermissionDeniedError("Only administrators can force a status change")
        remarks = _require_text(remarks, "remarks", "Remarks")
        target = _parse_target(new_status)
        if target == ApplicationStatus.DRAFT:
            raise InvalidTransitionError("Applications cannot be returned to draft")

        application = await self._get_submitted(db, application_id)
        if application.status == target.value:
            raise InvalidTransitionError(
                f"Application is already {target.value}",
                detail={"current_status": application.status},
            )
        logger.warning(
            f"Forcing application {application.id} from {application.status} "
            f"to {target.value} by {admin.id}"
        )
        return await self._apply_status(
            db, application, target, remarks, admin, AuditAction.APPLICATION_STATUS_FORCED
        )

    async def add_review_notes(
        self,
        db: AsyncSession,
        application_id: UUID,
        notes: Optional[str],
        reviewer: User
    ) -> Application:
        notes = _require_text(notes, "notes", "Review notes")
        application = await self._get_submitted(db, application_id)
        before = application.review_notes
        await self.application_repo.update(db, application, {
            "review_notes": notes,
            "reviewed_by": reviewer.id,
            "reviewed_at": datetime.now(timezone.utc),
        })
        await self.audit_repo.record(
            db, AuditAction.APPLICATION_REVIEWED, application.id,
            user_id=reviewer.id,
            changes={"before": {"review_notes": before}, "after": {"review_notes": notes}},
        )
        return application

    async def bulk_update_status(
        self,
        db: AsyncSession,
        application_ids: list[UUID],
        new_status: str,
        remarks: Optional[str],
        reviewer: User
    ) -> dict:
        """
        Apply ``update_status`` to each id independently.

        Request-level problems (empty remarks, unknown status) fail the whole
        call; per-application problems are collected in ``failed``.

        Returns:
            ``{"updated": [ids], "failed": [{"application_id", "error", "detail"}]}``
        """
        _require_text(remarks, "remarks", "Remarks")
        _parse_target(new_status)

        updated, failed = [], []
        for application_id in dict.fromkeys(application_ids):
            try:
                await self.update_status(db, application_id, new_status, remarks, reviewer)
                updated.append(application_id)
            except ApplicationError as e:
                failed.append({"application_id": application_id, "error": e.kind, "detail": e.message})

        logger.info(f"Bulk status {new_status}: {len(updated)} updated, {len(failed)} failed")
        return {"updated": updated, "failed": failed}


# Global instance
review_service = ReviewService()
