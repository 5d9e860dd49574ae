"""
Per-application section storage.

Sections live in the ``applications.sections`` JSONB column as
``{section_type: SectionRecord}``. The store only persists and retrieves
records; it knows nothing about scoring or section semantics. Writes are
whole-record replacements guarded by ``status = 'draft'``. Each write re-reads
the row under ``FOR UPDATE`` before rebuilding the map, so writes to
different sections never drop each other; two concurrent writes to the same
section resolve as last writer wins.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from app.models.application import Application, ApplicationStatus
from app.repositories.application_repository import ApplicationRepository
from app.utils.status_transitions import build_status_change

logger = logging.getLogger(__name__)

DRAFT = ApplicationStatus.DRAFT.value


def empty_section_record() -> dict:
    return {
        "data": {},
        "is_verified": None,
        "verification_notes": None,
        "verified_by": None,
        "verified_at": None,
        "document_ref": None,
        "saved_at": None,
    }


class SectionStore:
    """Storage for the sections map and the draft it belongs to."""

    def __init__(self, application_repo: Optional[ApplicationRepository] = None):
        self.application_repo = application_repo or ApplicationRepository()

    async def get_or_create_draft(
        self,
        db: AsyncSession,
        user_id: UUID,
        job_id: UUID,
        job_snapshot: Optional[dict] = None
    ) -> tuple[Application, bool]:
        """
        Return the applicant's draft for the job, creating it if needed.

        Two concurrent creators both pass the lookup; the partial unique
        index lets only one insert through. The loser re-reads and returns the
        winner's draft.

        Returns:
            Tuple of (draft, whether this call created it)

        Raises:
            ConflictError: If the insert failed and no draft can be found
        """
        existing = await self.application_repo.get_draft(db, user_id, job_id)
        if existing:
            return existing, False

        now = datetime.now(timezone.utc)
        try:
            application = await self.application_repo.create(db, {
                "user_id": user_id,
                "job_id": job_id,
                "status": DRAFT,
                "job_snapshot": job_snapshot or {},
                "sections": {},
                "credit_breakdown": None,
                "status_history": [
                    build_status_change(DRAFT, "Application draft created", user_id, now),
                ],
            })
        except IntegrityError:
            existing = await self.application_repo.get_draft(db, user_id, job_id)
            if existing is None:
                raise ConflictError(
                    "Could not create the application draft, please retry",
                    detail={"job_id": str(job_id)},
                )
            logger.info(f"Draft creation race for user {user_id} and job {job_id}; returning {existing.id}")
            return existing, False

        logger.info(f"Created draft application {application.id} for user {user_id} and job {job_id}")
        return application, True

    async def _get_application(self, db: AsyncSession, application_id: UUID) -> Application:
        application = await self.application_repo.get(db, application_id)
        if application is None:
            raise NotFoundError("Application not found", detail={"application_id": str(application_id)})
        return application

    async def _lock_application(self, db: AsyncSession, application_id: UUID) -> Application:
        application = await self.application_repo.get_for_update(db, application_id)
        if application is None:
            raise NotFoundError("Application not found", detail={"application_id": str(application_id)})
        return application

    async def _write_record(
        self,
        db: AsyncSession,
        application: Application,
        section_type: str,
        record: dict
    ) -> dict:
        if application.status != DRAFT:
            raise InvalidStateError(
                f"Sections cannot be edited once the application is {application.status}"
            )
        sections = {**(application.sections or {}), section_type: record}
        updated = await self.application_repo.update_if_status(
            db, application, DRAFT, {"sections": sections}
        )
        if not updated:
            raise InvalidStateError(
                f"Sections cannot be edited once the application is {application.status}"
            )
        return application.sections[section_type]

    async def put_section(
        self,
        db: AsyncSession,
        application_id: UUID,
        section_type: str,
        data: dict
    ) -> dict:
        """
        Replace the section's ``data`` (no merge).

        The document reference and verification fields of an existing record
        are kept.

        Raises:
            NotFoundError: Unknown application
            InvalidStateError: Application is not a draft
        """
        application = await self._lock_application(db, application_id)
        record = {
            **empty_section_record(),
            **(application.sections or {}).get(section_type, {}),
            "data": data,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        return await self._write_record(db, application, section_type, record)

    async def set_document_ref(
        self,
        db: AsyncSession,
        application_id: UUID,
        section_type: str,
        document_ref: Optional[dict]
    ) -> dict:
        """Attach (or with ``None``, clear) the section's document reference."""
        application = await self._lock_application(db, application_id)
        record = {
            **empty_section_record(),
            **(application.sections or {}).get(section_type, {}),
            "document_ref": document_ref,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        return await self._write_record(db, application, section_type, record)

    async def get_section(
        self,
        db: AsyncSession,
        application_id: UUID,
        section_type: str
    ) -> Optional[dict]:
        sections = await self.get_sections(db, application_id)
        return sections.get(section_type)

    async def get_sections(self, db: AsyncSession, application_id: UUID) -> dict[str, Any]:
        """Sections map of any application, regardless of status."""
        application = await self._get_application(db, application_id)
        return dict(application.sections or {})
