"""
Outbound email for applicants.

Only the submission confirmation is sent from the core. Delivery happens in
an ARQ task, so a slow or failing SMTP server never holds up a request.
"""
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional
import asyncio
import logging
import smtplib

from app.core.config import settings

logger = logging.getLogger(__name__)


class NotificationService(ABC):

    @abstractmethod
    async def send_application_confirmation(
        self,
        email: str,
        application_number: str,
        job_title: str,
        applicant_name: Optional[str] = None
    ) -> None:
        ...


def build_confirmation_message(
    email: str,
    application_number: str,
    job_title: str,
    applicant_name: Optional[str] = None
) -> EmailMessage:
    """Compose the confirmation mail sent after a successful submission."""
    message = EmailMessage()
    message["Subject"] = f"Application Submitted - {application_number}"
    message["From"] = settings.email_from
    message["To"] = email

    greeting = f"Dear {applicant_name}," if applicant_name else "Dear Applicant,"
    message.set_content(
        f"{greeting}\n\n"
        f"Your application for the position of {job_title} has been submitted "
        f"successfully.\n\n"
        f"Application Number: {application_number}\n\n"
        f"Please quote this number in any correspondence. A receipt is "
        f"available from your dashboard.\n\n"
        f"Regards,\n{settings.portal_name}\n"
    )
    return message


class SmtpNotificationService(NotificationService):
    """Sends mail with ``smtplib`` on a worker thread."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: Optional[bool] = None
    ):
        self.host = host or settings.smtp_host
        self.port = port or settings.smtp_port
        self.user = user if user is not None else settings.smtp_user
        self.password = password if password is not None else settings.smtp_password
        self.use_tls = settings.smtp_use_tls if use_tls is None else use_tls

    def _send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            if self.use_tls:
                server.starttls()
            if self.user:
                server.login(self.user, self.password)
            server.send_message(message)

    async def send_application_confirmation(
        self,
        email: str,
        application_number: str,
        job_title: str,
        applicant_name: Optional[str] = None
    ) -> None:
        message = build_confirmation_message(email, application_number, job_title, applicant_name)
        await asyncio.to_thread(self._send, message)
        logger.info(f"Sent submission confirmation for {application_number} to {email}")
