from .credit_points_service import CreditPointsService
from .section_store import SectionStore
from .application_service import ApplicationService
from .review_service import ReviewService
from .storage_service import DocumentStorage, LocalDocumentStorage
from .email_service import NotificationService, SmtpNotificationService
from .receipt_service import ReceiptGenerator, PdfReceiptGenerator

__all__ = [
    "CreditPointsService",
    "SectionStore",
    "ApplicationService",
    "ReviewService",
    "DocumentStorage",
    "LocalDocumentStorage",
    "NotificationService",
    "SmtpNotificationService",
    "ReceiptGenerator",
    "PdfReceiptGenerator",
]
