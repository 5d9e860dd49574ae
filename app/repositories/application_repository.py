"""
Application repository: storage for the application aggregate.

Beyond plain CRUD this owns the queries that carry concurrency
guarantees: the draft lookup backing the one-draft-per-(applicant, job)
index, the locked re-read taken before the sections map is rewritten, and
the conditional ``UPDATE ... WHERE status = :expected`` that makes each
status change happen exactly once.
"""

from __future__ import annotations
from typing import Optional
from uuid import UUID
from sqlalchemy import select, func, desc, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.exc import SQLAlchemyError
import logging

from app.models.application import Application, ApplicationSequence, ApplicationStatus
from .base import BaseRepository

logger = logging.getLogger(__name__)


class ApplicationRepository(BaseRepository[Application]):
    """
    Repository for Application model with specialized queries.

    Provides methods for:
    - Loading an application with applicant and job
    - Draft lookup per (applicant, job)
    - Applicant and reviewer listings
    - Status-guarded updates
    """

    def __init__(self):
        super().__init__(Application)

    async def get(
        self,
        db: AsyncSession,
        id: UUID
    ) -> Optional[Application]:
        """
        Get application by ID with applicant and job relationships loaded.

        Receipts and confirmation emails need both, and lazy loading is not
        available on an async session.
        """
        try:
            stmt = (
                select(Application)
                .where(Application.id == id)
                .options(
                    selectinload(Application.user),
                    selectinload(Application.job),
                )
            )
            result = await db.execute(stmt)
            return result.scalar_one_or_none()

        except SQLAlchemyError as e:
            logger.error(f"Error fetching application {id} with relationships: {e}")
            raise

    async def get_for_update(
        self,
        db: AsyncSession,
        id: UUID
    ) -> Optional[Application]:
        """
        Re-read the application row under ``SELECT ... FOR UPDATE``.

        Used before rewriting the ``sections`` map so a concurrent write to a
        different section is read back instead of overwritten. The row stays
        locked until the caller's transaction ends; ``populate_existing``
        replaces whatever state the session already holds for the row.
        """
        try:
            stmt = (
                select(Application)
                .where(Application.id == id)
                .with_for_update()
                .options(
                    selectinload(Application.user),
                    selectinload(Application.job),
                )
                .execution_options(populate_existing=True)
            )
            result = await db.execute(stmt)
            return result.scalar_one_or_none()

        except SQLAlchemyError as e:
            logger.error(f"Error locking application {id}: {e}")
            raise

    async def get_draft(
        self,
        db: AsyncSession,
        user_id: UUID,
        job_id: UUID
    ) -> Optional[Application]:
        """Return the applicant's current draft for a job, if any."""
        try:
            stmt = (
                select(Application)
                .where(
                    Application.user_id == user_id,
                    Application.job_id == job_id,
                    Application.status == ApplicationStatus.DRAFT.value,
                )
                .options(
                    selectinload(Application.user),
                    selectinload(Application.job),
                )
            )
            result = await db.execute(stmt)
            return result.scalar_one_or_none()

        except SQLAlchemyError as e:
            logger.error(f"Error fetching draft for user {user_id} and job {job_id}: {e}")
            raise

    async def get_applications_for_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        status_filter: Optional[str] = None
    ) -> list[Application]:
        """All applications of one applicant, newest first."""
        try:
            query = (
                select(Application)
                .where(Application.user_id == user_id)
                .options(selectinload(Application.job))
                .order_by(desc(Application.created_at))
            )
            if status_filter:
                query = query.where(Application.status == status_filter)

            result = await db.execute(query)
            return list(result.scalars().all())

        except SQLAlchemyError as e:
            logger.error(f"Error fetching applications for user {user_id}: {e}")
            raise

    async def get_applications_for_review(
        self,
        db: AsyncSession,
        job_id: Optional[UUID] = None,
        status_filter: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> tuple[list[Application], int]:
        """
        Paginated reviewer listing. Drafts are never shown to staff.

        Returns:
            Tuple of (applications with applicant and job loaded, total count)
        """
        try:
            conditions = [Application.status != ApplicationStatus.DRAFT.value]
            if job_id:
                conditions.append(Application.job_id == job_id)
            if status_filter:
                conditions.append(Application.status == status_filter)

            query = (
                select(Application)
                .where(*conditions)
                .options(
                    selectinload(Application.user),
                    selectinload(Application.job),
                )
                .order_by(desc(Application.submitted_at), desc(Application.created_at))
                .offset(skip)
                .limit(limit)
            )
            result = await db.execute(query)
            applications = list(result.scalars().all())

            count_query = select(func.count()).select_from(Application).where(*conditions)
            count_result = await db.execute(count_query)
            total = count_result.scalar_one()

            return applications, total

        except SQLAlchemyError as e:
            logger.error(f"Error fetching applications for review: {e}")
            raise

    async def update_if_status(
        self,
        db: AsyncSession,
        application: Application,
        expected_status: str,
        values: dict
    ) -> bool:
        """
        Apply ``values`` only if the row still has ``expected_status``.

        The status check and the write are a single statement, so when two
        requests race only one of them sees a matched row. Every write that
        depends on the current status goes through here.

        Returns:
            True if the row was updated
        """
        try:
            stmt = (
                update(Application)
                .where(
                    Application.id == application.id,
                    Application.status == expected_status,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            result = await db.execute(stmt)
            await db.refresh(application)
            return result.rowcount == 1

        except SQLAlchemyError as e:
            logger.error(f"Error updating application {application.id} from {expected_status}: {e}")
            raise


class ApplicationSequenceRepository(BaseRepository[ApplicationSequence]):
    """Per-year counters for application numbers."""

    def __init__(self):
        super().__init__(ApplicationSequence)

    async def next_value(self, db: AsyncSession, year: int) -> int:
        """
        Increment and return the counter for ``year``.

        The increment is one ``UPDATE ... RETURNING`` statement, which takes a
        row lock on PostgreSQL. The first number of a year inserts the row; a
        concurrent first insert surfaces as ``IntegrityError``.
        """
        try:
            stmt = (
                update(ApplicationSequence)
                .where(ApplicationSequence.year == year)
                .values(last_value=ApplicationSequence.last_value + 1)
                .returning(ApplicationSequence.last_value)
                .execution_options(synchronize_session=False)
            )
            result = await db.execute(stmt)
            value = result.scalar_one_or_none()
            if value is not None:
                return value

        except SQLAlchemyError as e:
            logger.error(f"Error incrementing application sequence for {year}: {e}")
            raise

        sequence = await self.create(db, {"year": year, "last_value": 1})
        return sequence.last_value
