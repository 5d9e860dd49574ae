"""
Application status graph.

Statuses move forward only:

    draft ──► submitted ──► under_review ──► shortlisted ──► selected
      │                          │                │
      ▼                          ├──► selected    └──► rejected
    withdrawn                    └──► rejected

- draft: applicant is still editing; the only status with editable sections
- submitted: locked, application number issued
- under_review / shortlisted: staff are evaluating
- selected / rejected / withdrawn: terminal, nothing leaves these
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from app.models.application import ApplicationStatus

ALLOWED_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.DRAFT: frozenset({ApplicationStatus.SUBMITTED, ApplicationStatus.WITHDRAWN}),
    ApplicationStatus.SUBMITTED: frozenset({ApplicationStatus.UNDER_REVIEW}),
    ApplicationStatus.UNDER_REVIEW: frozenset({
        ApplicationStatus.SHORTLISTED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.SELECTED,
    }),
    ApplicationStatus.SHORTLISTED: frozenset({ApplicationStatus.SELECTED, ApplicationStatus.REJECTED}),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.SELECTED: frozenset(),
    ApplicationStatus.WITHDRAWN: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def parse_status(value: str) -> ApplicationStatus:
    """
    Normalise a status string into an ``ApplicationStatus``.

    Raises:
        ValueError: If value is None, empty, or not a known status

    Example:
        >>> parse_status(" Under_Review ")
        <ApplicationStatus.UNDER_REVIEW: 'under_review'>
    """
    if not value:
        raise ValueError("status cannot be None or empty")
    try:
        return ApplicationStatus(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown application status: {value}")


def is_valid_transition(current: str, target: str) -> bool:
    """
    Check whether ``current -> target`` is an edge of the status graph.

    Staying in the same status is not a transition and returns False.

    Example:
        >>> is_valid_transition("submitted", "under_review")
        True
        >>> is_valid_transition("submitted", "selected")
        False
    """
    return parse_status(target) in ALLOWED_TRANSITIONS[parse_status(current)]


def get_allowed_targets(status: str) -> list[str]:
    """Sorted list of statuses reachable in one step from ``status``."""
    return sorted(target.value for target in ALLOWED_TRANSITIONS[parse_status(status)])


def build_status_change(
    status: str,
    remarks: str,
    changed_by: Optional[UUID],
    changed_at: datetime
) -> dict:
    """One ``status_history`` entry, in its stored JSON form."""
    return {
        "status": parse_status(status).value,
        "remarks": remarks,
        "changed_by": str(changed_by) if changed_by else None,
        "changed_at": changed_at.isoformat(),
    }
