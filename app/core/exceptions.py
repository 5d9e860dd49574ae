"""
Domain errors raised by the application lifecycle services.

Services raise these instead of HTTP errors so that the same code paths can
be driven from request handlers and ARQ tasks. ``app.main`` maps each kind
onto an HTTP status code.
"""

from __future__ import annotations
from typing import Any, Optional


class ApplicationError(Exception):
    """Base class for every error the recruitment core reports to callers."""

    kind = "application_error"

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        body = {"error": self.kind, "detail": self.message, "errors": []}
        if self.detail is not None:
            body["context"] = self.detail
        return body


class ValidationError(ApplicationError):
    """
    Bad or incomplete applicant data.

    ``errors`` is a list of ``{"section", "field", "message"}`` dicts so that
    callers can point at the exact section that needs attention.
    """

    kind = "validation_error"

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.errors = errors or []

    @property
    def sections(self) -> list[str]:
        """Offending section names, in first-seen order, without duplicates."""
        seen: list[str] = []
        for error in self.errors:
            section = error.get("section")
            if section and section not in seen:
                seen.append(section)
        return seen

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["errors"] = self.errors
        body["sections"] = self.sections
        return body


class InvalidStateError(ApplicationError):
    """Operation is not permitted in the application's current status."""

    kind = "invalid_state"


class InvalidTransitionError(ApplicationError):
    """Requested status change is not an edge of the status graph."""

    kind = "invalid_transition"


class ConflictError(ApplicationError):
    """A concurrent writer won a race that could not be resolved locally."""

    kind = "conflict"


class NotFoundError(ApplicationError):
    """Unknown application, job or section."""

    kind = "not_found"


class PermissionDeniedError(ApplicationError):
    """Caller does not own the resource it is trying to act on."""

    kind = "permission_denied"
