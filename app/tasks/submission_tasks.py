import asyncio
import logging
from uuid import UUID

from arq.worker import Retry

from app.core.database import AsyncSessionLocal
from app.repositories.application_repository import ApplicationRepository
from app.services.email_service import SmtpNotificationService
from app.services.receipt_service import build_receipt_snapshot, receipt_generator
from app.services.storage_service import document_storage

logger = logging.getLogger(__name__)

DEFAULT_MAX_TRIES = 3


def _retry_or_give_up(ctx: dict, task: str, application_id: str, error: Exception) -> None:
    """
    Re-queue with backoff (1 s, 4 s, 9 s for tries 1, 2, 3) until max_tries.

    The applicant is never told about these failures; the last attempt only
    logs.
    """
    job_try: int = ctx.get("job_try", 1)
    max_tries: int = ctx.get("max_tries", DEFAULT_MAX_TRIES)
    logger.error(
        f"{task} failed for application {application_id} (try {job_try}/{max_tries}): {error}",
        exc_info=True,
    )
    if job_try < max_tries:
        raise Retry(defer=job_try ** 2)
    logger.error(f"Giving up on {task} for application {application_id}")


async def send_submission_confirmation(ctx: dict, application_id: str) -> None:
    """
    ARQ task: email the applicant their application number.

    Uses ``ctx["notification_service"]`` when the worker provides one.
    """
    notifier = ctx.get("notification_service") or SmtpNotificationService()

    async with AsyncSessionLocal() as db:
        application = await ApplicationRepository().get(db, UUID(application_id))
    if application is None or not application.application_number:
        logger.warning(f"Skipping confirmation for unknown or unsubmitted application {application_id}")
        return
    if application.user is None or not application.user.email:
        logger.warning(f"Application {application_id} has no applicant email, confirmation skipped")
        return

    try:
        await notifier.send_application_confirmation(
            application.user.email,
            application.application_number,
            (application.job_snapshot or {}).get("title") or "",
            applicant_name=application.user.full_name,
        )
    except Exception as e:
        _retry_or_give_up(ctx, "send_submission_confirmation", application_id, e)


async def generate_submission_receipt(ctx: dict, application_id: str) -> None:
    """
    ARQ task: render the receipt PDF once and store it.

    The stored reference is written to ``applications.receipt_ref``; an
    application that already has one is left alone.
    """
    generator = ctx.get("receipt_generator") or receipt_generator
    storage = ctx.get("document_storage") or document_storage
    repo = ApplicationRepository()

    async with AsyncSessionLocal() as db:
        try:
            application = await repo.get(db, UUID(application_id))
            if application is None or not application.application_number:
                logger.warning(f"Skipping receipt for unknown or unsubmitted application {application_id}")
                return
            if application.receipt_ref:
                logger.debug(f"Receipt already stored for application {application_id}")
                return

            snapshot = build_receipt_snapshot(application)
            pdf = await asyncio.to_thread(generator.generate_receipt, snapshot)
            ref = await storage.upload(
                f"applications/{application.id}/receipt",
                f"{application.application_number}.pdf",
                pdf,
                "application/pdf",
            )
            await repo.update(db, application, {"receipt_ref": ref.model_dump(mode="json")})
            await db.commit()
            logger.info(f"Stored receipt for application {application.application_number}")
        except Exception as e:
            await db.rollback()
            _retry_or_give_up(ctx, "generate_submission_receipt", application_id, e)
