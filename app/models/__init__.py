from .user import User, UserRole
from .job import Job
from .application import Application, ApplicationSequence, ApplicationStatus
from .audit_log import AuditLog, AuditAction

__all__ = [
    "User", "UserRole", "Job", "Application", "ApplicationSequence",
    "ApplicationStatus", "AuditLog", "AuditAction"
]
