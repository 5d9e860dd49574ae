# Repositories package
from .base import BaseRepository
from .job_repository import JobRepository
from .application_repository import ApplicationRepository, ApplicationSequenceRepository
from .audit_log_repository import AuditLogRepository

__all__ = [
    "BaseRepository",
    "JobRepository",
    "ApplicationRepository",
    "ApplicationSequenceRepository",
    "AuditLogRepository",
]
