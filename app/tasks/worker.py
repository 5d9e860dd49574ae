import logging

from arq.connections import RedisSettings

from app.core.config import settings
from app.core.logging import configure_logging
from app.services.email_service import SmtpNotificationService
from app.services.receipt_service import PdfReceiptGenerator
from app.services.storage_service import LocalDocumentStorage
from app.tasks.submission_tasks import generate_submission_receipt, send_submission_confirmation

logger = logging.getLogger(__name__)


async def on_startup(ctx: dict) -> None:
    configure_logging(settings.app_env)
    ctx["notification_service"] = SmtpNotificationService()
    ctx["receipt_generator"] = PdfReceiptGenerator()
    ctx["document_storage"] = LocalDocumentStorage()
    ctx["max_tries"] = WorkerSettings.max_tries
    logger.info(
        "ARQ worker started. Functions: send_submission_confirmation, "
        "generate_submission_receipt"
    )


async def on_shutdown(ctx: dict) -> None:
    logger.info("ARQ worker shut down.")


class WorkerSettings:
    functions = [
        send_submission_confirmation,
        generate_submission_receipt,
    ]
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    max_jobs = 10
    job_timeout = 120
    max_tries = 3       # Retry up to 3 times on failure
    on_startup = on_startup
    on_shutdown = on_shutdown
