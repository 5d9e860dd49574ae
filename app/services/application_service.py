"""
Application lifecycle: drafts, section writes, scoring, submit and withdraw.

Services raise ``app.core.exceptions`` errors; the routers map them onto HTTP
responses. Every status-dependent write is a conditional update on the
current status, so a lost race shows up as ``InvalidStateError`` instead of
a double transition.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.arq import enqueue_best_effort
from app.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models.application import Application, ApplicationStatus
from app.models.audit_log import AuditAction
from app.models.job import Job
from app.models.user import User, UserRole
from app.repositories.application_repository import (
    ApplicationRepository,
    ApplicationSequenceRepository,
)
from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.job_repository import JobRepository
from app.schemas.application import DocumentRef
from app.schemas.credit_points import CreditPointsBreakdown
from app.schemas.sections import CREDIT_POINTS, DECLARATION
from app.services.credit_points_service import SCORED_SECTIONS, credit_points_service
from app.services.section_store import SectionStore
from app.services.section_validation import prepare_section_data, validate_document_upload
from app.services.storage_service import DocumentStorage, document_storage
from app.services.submission_validation import check_job_window, validate_for_submission
from app.utils.application_number import format_application_number
from app.utils.status_transitions import build_status_change

logger = logging.getLogger(__name__)

DRAFT = ApplicationStatus.DRAFT.value

# ARQ jobs enqueued after a successful submit
SUBMISSION_TASKS = ("send_submission_confirmation", "generate_submission_receipt")


def build_job_snapshot(job: Job) -> dict:
    """Job fields frozen onto a new draft."""
    return {
        "job_id": str(job.id),
        "title": job.title,
        "advertisement_no": job.advertisement_no,
        "department": job.department,
        "application_end_date": (
            job.application_end_date.isoformat() if job.application_end_date else None
        ),
        "required_sections": list(job.required_sections or []),
    }


class ApplicationService:
    """Applicant-side operations on the application aggregate."""

    def __init__(
        self,
        application_repo: Optional[ApplicationRepository] = None,
        job_repo: Optional[JobRepository] = None,
        sequence_repo: Optional[ApplicationSequenceRepository] = None,
        audit_repo: Optional[AuditLogRepository] = None,
        section_store: Optional[SectionStore] = None,
        storage: Optional[DocumentStorage] = None
    ):
        self.application_repo = application_repo or ApplicationRepository()
        self.job_repo = job_repo or JobRepository()
        self.sequence_repo = sequence_repo or ApplicationSequenceRepository()
        self.audit_repo = audit_repo or AuditLogRepository()
        self.section_store = section_store or SectionStore(self.application_repo)
        self.storage = storage or document_storage

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_application(
        self,
        db: AsyncSession,
        application_id: UUID,
        actor: User
    ) -> Application:
        """
        Load an application the actor may see.

        Applicants only see their own; reviewers and admins see everything.

        Raises:
            NotFoundError: Unknown application
            PermissionDeniedError: Applicant asking for someone else's application
        """
        application = await self.application_repo.get(db, application_id)
        if application is None:
            raise NotFoundError("Application not found", detail={"application_id": str(application_id)})
        if actor.role == UserRole.APPLICANT and application.user_id != actor.id:
            raise PermissionDeniedError("Not authorized to access this application")
        return application

    async def list_applications(
        self,
        db: AsyncSession,
        applicant: User,
        status_filter: Optional[str] = None
    ) -> list[Application]:
        return await self.application_repo.get_applications_for_user(db, applicant.id, status_filter)

    async def get_credit_points(
        self,
        db: AsyncSession,
        application_id: UUID,
        actor: User
    ) -> CreditPointsBreakdown:
        """Stored breakdown, or a freshly derived one if nothing was scored yet."""
        application = await self.get_application(db, application_id, actor)
        if application.credit_breakdown is not None:
            return CreditPointsBreakdown.model_validate(application.credit_breakdown)
        return credit_points_service.calculate_for_sections(application.sections)

    async def check_submission_readiness(
        self,
        db: AsyncSession,
        application_id: UUID,
        applicant: User
    ) -> dict:
        """
        Dry run of the submit checks. Changes nothing.

        Returns:
            ``{"can_submit": bool, "errors": [...]}``
        """
        application = await self.get_application(db, application_id, applicant)
        if application.status != DRAFT:
            return {
                "can_submit": False,
                "errors": [{
                    "section": None,
                    "field": "status",
                    "message": f"Application is already {application.status}",
                }],
            }
        job = await self.job_repo.get(db, application.job_id)
        errors = validate_for_submission(application, job)
        return {"can_submit": not errors, "errors": errors}

    # ------------------------------------------------------------------
    # Draft editing
    # ------------------------------------------------------------------

    async def get_or_create_draft(
        self,
        db: AsyncSession,
        applicant: User,
        job_id: UUID
    ) -> Application:
        """
        Return the applicant's draft for a job, creating it on first use.

        A new draft needs a published job with an open application window.

        Raises:
            NotFoundError: Unknown job
            ValidationError: Job closed or past its deadline
            ConflictError: Draft creation race that could not be resolved
        """
        existing = await self.application_repo.get_draft(db, applicant.id, job_id)
        if existing:
            return existing

        job = await self.job_repo.get(db, job_id)
        if job is None:
            raise NotFoundError("Job not found", detail={"job_id": str(job_id)})
        errors = check_job_window(job, datetime.now(timezone.utc))
        if errors:
            raise ValidationError(errors[0]["message"], errors)

        application, created = await self.section_store.get_or_create_draft(
            db, applicant.id, job.id, build_job_snapshot(job)
        )
        if created:
            await self.audit_repo.record(
                db, AuditAction.APPLICATION_CREATED, application.id,
                user_id=applicant.id, changes={"after": {"status": DRAFT, "job_id": str(job.id)}},
            )
        return application

    def _ensure_draft(self, application: Application, action: str) -> None:
        if application.status != DRAFT:
            raise InvalidStateError(
                f"Cannot {action}: application is {application.status}",
                detail={"status": application.status},
            )

    def _ensure_section_configured(self, application: Application, section_type: str) -> None:
        configured = {
            entry.get("section_type")
            for entry in (application.job_snapshot or {}).get("required_sections") or []
            if isinstance(entry, dict)
        }
        # The declaration is always part of an application
        configured.add(DECLARATION)
        if section_type not in configured:
            raise ValidationError(
                f"Section '{section_type}' is not part of this application",
                [{"section": section_type, "field": None, "message": "Unknown section for this job"}],
            )

    async def update_section(
        self,
        db: AsyncSession,
        application_id: UUID,
        section_type: str,
        data: dict,
        applicant: User
    ) -> dict:
        """
        Replace one section's data and rescore if it feeds the credit breakdown.

        Raises:
            InvalidStateError: Application is not a draft
            ValidationError: Unknown section for the job or invalid payload
        """
        application = await self.get_application(db, application_id, applicant)
        self._ensure_draft(application, "edit sections")
        self._ensure_section_configured(application, section_type)

        payload, errors = prepare_section_data(section_type, data)
        if errors:
            raise ValidationError(f"Invalid data for section '{section_type}'", errors)

        record = await self.section_store.put_section(db, application.id, section_type, payload)

        if section_type == CREDIT_POINTS or section_type in SCORED_SECTIONS:
            await self.recompute_credit_points(db, application)
        return record

    async def recompute_credit_points(
        self,
        db: AsyncSession,
        application: Application
    ) -> CreditPointsBreakdown:
        """
        Derive the breakdown from the stored sections and save it.

        The breakdown is always replaced as a whole, never patched.
        """
        breakdown = credit_points_service.calculate_for_sections(application.sections)
        updated = await self.application_repo.update_if_status(
            db, application, DRAFT, {"credit_breakdown": breakdown.model_dump(mode="json")}
        )
        if not updated:
            raise InvalidStateError(
                f"Cannot rescore: application is {application.status}",
                detail={"status": application.status},
            )
        logger.debug(f"Rescored application {application.id}: grand total {breakdown.grand_total}")
        return breakdown

    async def _delete_document(self, ref) -> None:
        try:
            await self.storage.delete(DocumentRef.model_validate(ref))
        except Exception as e:
            logger.error(f"Failed to delete stored document {ref!r}: {e}", exc_info=True)

    async def attach_document(
        self,
        db: AsyncSession,
        application_id: UUID,
        section_type: str,
        filename: Optional[str],
        content_type: Optional[str],
        content: bytes,
        applicant: User
    ) -> dict:
        """
        Upload a file and reference it from the section.

        A previously attached file is deleted after the new reference is
        stored; deletion failures are only logged.
        """
        application = await self.get_application(db, application_id, applicant)
        self._ensure_draft(application, "upload documents")
        self._ensure_section_configured(application, section_type)

        errors = validate_document_upload(section_type, filename, content_type, content)
        if errors:
            raise ValidationError(f"Invalid document for section '{section_type}'", errors)

        previous = ((application.sections or {}).get(section_type) or {}).get("document_ref")
        ref = await self.storage.upload(
            f"applications/{application.id}/{section_type}", filename, content, content_type
        )
        try:
            record = await self.section_store.set_document_ref(
                db, application.id, section_type, ref.model_dump(mode="json")
            )
        except Exception:
            await self._delete_document(ref)
            raise

        if previous:
            await self._delete_document(previous)
        logger.info(f"Attached document to {section_type} of application {application.id}")
        return record

    async def detach_document(
        self,
        db: AsyncSession,
        application_id: UUID,
        section_type: str,
        applicant: User
    ) -> dict:
        application = await self.get_application(db, application_id, applicant)
        self._ensure_draft(application, "remove documents")

        previous = ((application.sections or {}).get(section_type) or {}).get("document_ref")
        if not previous:
            raise NotFoundError(f"No document attached to section '{section_type}'")

        record = await self.section_store.set_document_ref(db, application.id, section_type, None)
        await self._delete_document(previous)
        return record

    # ------------------------------------------------------------------
    # Transitions out of draft
    # ------------------------------------------------------------------

    async def _issue_application_number(self, db: AsyncSession, year: int) -> str:
        try:
            sequence = await self.sequence_repo.next_value(db, year)
        except IntegrityError:
            raise ConflictError("Could not allocate an application number, please retry")
        return format_application_number(year, sequence)

    async def _leave_draft(
        self,
        db: AsyncSession,
        application: Application,
        target: ApplicationStatus,
        remarks: str,
        actor: User,
        values: Optional[dict] = None
    ) -> None:
        now = datetime.now(timezone.utc)
        application_number = await self._issue_application_number(db, now.year)
        history = [
            *(application.status_history or []),
            build_status_change(target.value, remarks, actor.id, now),
        ]
        moved = await self.application_repo.update_if_status(db, application, DRAFT, {
            **(values or {}),
            "status": target.value,
            "application_number": application_number,
            "status_history": history,
        })
        if not moved:
            raise InvalidStateError(
                f"Application is already {application.status}",
                detail={"status": application.status},
            )
        logger.info(
            f"Application {application.id} moved draft -> {target.value} "
            f"as {application_number} by {actor.id}"
        )

    async def submit(
        self,
        db: AsyncSession,
        application_id: UUID,
        applicant: User
    ) -> Application:
        """
        Validate, number and lock the application.

        The transaction is committed here so that the confirmation and
        receipt jobs see the submitted row. Those jobs are best effort: a
        queue failure is logged and the submission still succeeds.

        Raises:
            InvalidStateError: Application is not a draft (including a lost race)
            ValidationError: Incomplete application, with every offending section
        """
        application = await self.get_application(db, application_id, applicant)
        self._ensure_draft(application, "submit")

        job = await self.job_repo.get(db, application.job_id)
        errors = validate_for_submission(application, job)
        if errors:
            raise ValidationError("Application is incomplete", errors)

        breakdown = credit_points_service.calculate_for_sections(application.sections)
        await self._leave_draft(
            db, application, ApplicationStatus.SUBMITTED,
            "Application submitted by applicant", applicant,
            values={
                "submitted_at": datetime.now(timezone.utc),
                "credit_breakdown": breakdown.model_dump(mode="json"),
            },
        )
        await self.audit_repo.record(
            db, AuditAction.APPLICATION_SUBMITTED, application.id,
            user_id=applicant.id,
            changes={
                "before": {"status": DRAFT},
                "after": {
                    "status": application.status,
                    "application_number": application.application_number,
                },
            },
        )
        await db.commit()

        for task in SUBMISSION_TASKS:
            await enqueue_best_effort(task, str(application.id))
        return application

    async def withdraw(
        self,
        db: AsyncSession,
        application_id: UUID,
        applicant: User,
        reason: Optional[str] = None
    ) -> Application:
        """
        Withdraw a draft. Withdrawn is terminal.

        The application receives its number here as well, since every
        non-draft application carries one.
        """
        application = await self.get_application(db, application_id, applicant)
        self._ensure_draft(application, "withdraw")

        remarks = (reason or "").strip() or "Application withdrawn by applicant"
        await self._leave_draft(db, application, ApplicationStatus.WITHDRAWN, remarks, applicant)
        await self.audit_repo.record(
            db, AuditAction.APPLICATION_WITHDRAWN, application.id,
            user_id=applicant.id,
            changes={"before": {"status": DRAFT}, "after": {"status": application.status}},
        )
        return application


# Global instance
application_service = ApplicationService()
