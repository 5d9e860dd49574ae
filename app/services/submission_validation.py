"""
Completeness checks run before an application leaves draft.

All problems are collected rather than stopping at the first, so the
applicant sees every section that still needs work in one response.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Optional
import logging

from pydantic import ValidationError as PydanticValidationError

from app.models.application import Application
from app.models.job import Job
from app.schemas.job import RequiredSection
from app.schemas.sections import (
    DECLARATION,
    DECLARATION_FLAGS,
    DOCUMENT_SECTIONS,
    LIST_SECTIONS,
    REFEREES,
    REQUIRED_REFEREES,
)
from app.services.section_validation import validate_section_payload

logger = logging.getLogger(__name__)


def _error(section: Optional[str], field: Optional[str], message: str) -> dict:
    return {"section": section, "field": field, "message": message}


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def check_job_window(job: Optional[Job], now: datetime) -> list[dict]:
    """The job must still be published and its deadline not passed."""
    if job is None or job.status != "published":
        return [_error(None, "job", "Applications for this position are closed")]
    if job.application_end_date and _as_utc(now) > _as_utc(job.application_end_date):
        return [_error(None, "job", "The application deadline has passed")]
    return []


def check_declaration(record: Any) -> list[dict]:
    if not isinstance(record, dict):
        return [_error(DECLARATION, None, "Declaration must be completed")]
    data = record.get("data") or {}
    return [
        _error(DECLARATION, flag, "Declaration must be explicitly accepted")
        for flag in DECLARATION_FLAGS
        if data.get(flag) is not True
    ]


def check_section(config: RequiredSection, record: Any) -> list[dict]:
    """Validate one configured section against what the applicant stored."""
    section = config.section_type
    if not isinstance(record, dict):
        return [_error(section, None, "Section is required")]

    data = record.get("data")
    data = data if isinstance(data, dict) else {}
    has_document = bool(record.get("document_ref"))
    errors = []

    if section in DOCUMENT_SECTIONS:
        if not has_document:
            errors.append(_error(section, "document", "Please upload the required file"))
        return errors

    if section == DECLARATION:
        errors.extend(check_declaration(record))
    elif section in LIST_SECTIONS:
        items = data.get("items")
        count = len(items) if isinstance(items, list) else 0
        if section == REFEREES:
            if count != REQUIRED_REFEREES:
                errors.append(_error(
                    section, "items", f"Exactly {REQUIRED_REFEREES} referees are required",
                ))
        else:
            min_items = config.min_items if config.min_items is not None else 1
            if count < min_items:
                errors.append(_error(
                    section, "items", f"At least {min_items} entr{'y' if min_items == 1 else 'ies'} required",
                ))
    elif not data:
        errors.append(_error(section, None, "Section is incomplete"))

    if config.requires_pdf and not has_document:
        errors.append(_error(section, "document", "A supporting PDF document is required"))

    return errors


def _required_sections(application: Application) -> list[RequiredSection]:
    configs = []
    for raw in (application.job_snapshot or {}).get("required_sections") or []:
        try:
            configs.append(RequiredSection.model_validate(raw))
        except PydanticValidationError:
            logger.warning(f"Ignoring malformed section config on application {application.id}: {raw!r}")
    return configs


def validate_for_submission(
    application: Application,
    job: Optional[Job],
    now: Optional[datetime] = None
) -> list[dict]:
    """
    Collect every reason the application cannot be submitted yet.

    Returns:
        List of ``{"section", "field", "message"}`` dicts, empty when ready
    """
    now = now or datetime.now(timezone.utc)
    sections = application.sections or {}
    errors = check_job_window(job, now)

    mandatory = [config for config in _required_sections(application) if config.is_mandatory]
    for config in mandatory:
        errors.extend(check_section(config, sections.get(config.section_type)))

    # The declaration is required even when the job does not list it
    if DECLARATION not in {config.section_type for config in mandatory}:
        errors.extend(check_declaration(sections.get(DECLARATION)))

    # Stored payloads are re-checked in case the section rules changed since they were saved
    for section_type, record in sections.items():
        if isinstance(record, dict) and record.get("data") is not None:
            errors.extend(validate_section_payload(section_type, record.get("data")))

    return errors
