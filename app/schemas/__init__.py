from .job import RequiredSection
from .credit_points import CreditPointsBreakdown, ManualActivity
from .application import (
    Application,
    ApplicationCreate,
    ApplicationSummary,
    ApplicationListResponse,
    SectionWrite,
    SectionRecord,
    StatusChange,
    DocumentRef,
    WithdrawRequest,
    SubmissionReadiness,
    SectionVerificationUpdate,
    StatusUpdate,
    ReviewNotesUpdate,
    BulkStatusUpdate,
    BulkStatusResult,
)

__all__ = [
    "RequiredSection",
    "CreditPointsBreakdown", "ManualActivity",
    "Application", "ApplicationCreate", "ApplicationSummary", "ApplicationListResponse",
    "SectionWrite", "SectionRecord", "StatusChange", "DocumentRef", "WithdrawRequest",
    "SubmissionReadiness",
    "SectionVerificationUpdate", "StatusUpdate", "ReviewNotesUpdate",
    "BulkStatusUpdate", "BulkStatusResult",
]
