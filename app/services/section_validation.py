"""
Checks applied to a single section write or document upload.

Errors are returned as ``{"section", "field", "message"}`` dicts; the caller
decides whether to raise. Scoring does not depend on these checks passing:
it still tolerates whatever is stored.
"""

from __future__ import annotations
from typing import Any, Optional
import logging

from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.schemas.sections import (
    CREDIT_POINTS,
    DERIVED_CREDIT_KEYS,
    IMAGE_ONLY_SECTIONS,
    SECTION_MODELS,
)

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
JPEG_MAGIC = b"\xff\xd8\xff"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"

PDF_CONTENT_TYPE = "application/pdf"
IMAGE_CONTENT_TYPES = {
    "image/jpeg": JPEG_MAGIC,
    "image/jpg": JPEG_MAGIC,
    "image/png": PNG_MAGIC,
}


def _error(section: Optional[str], field: Optional[str], message: str) -> dict:
    return {"section": section, "field": field, "message": message}


def _field_path(loc: tuple) -> str:
    return ".".join(str(part) for part in loc) or "data"


def validate_section_payload(section_type: str, data: Any) -> list[dict]:
    """
    Validate ``data`` against the model registered for ``section_type``.

    Section types without a model only need to be JSON objects.
    """
    if not isinstance(data, dict):
        return [_error(section_type, "data", "Section data must be an object")]

    model = SECTION_MODELS.get(section_type)
    if model is None:
        return []

    try:
        model.model_validate(data)
    except PydanticValidationError as e:
        return [
            _error(section_type, _field_path(err["loc"]), err["msg"])
            for err in e.errors()
        ]
    return []


def sanitize_credit_points(data: dict) -> dict:
    """
    Keep only applicant-owned keys of a ``credit_points`` payload.

    Derived totals are dropped and manual activities are reduced to
    ``{id, description, claimedPoints}``; ``activityId`` is accepted as the id.
    """
    cleaned = {key: value for key, value in data.items() if key not in DERIVED_CREDIT_KEYS}

    activities = []
    for activity in cleaned.get("manualActivities") or []:
        activities.append({
            "id": activity.get("id", activity.get("activityId")),
            "description": activity.get("description"),
            "claimedPoints": activity.get("claimedPoints"),
        })
    cleaned["manualActivities"] = activities
    return cleaned


def prepare_section_data(section_type: str, data: Any) -> tuple[dict, list[dict]]:
    """
    Validate a section write and return the payload to store.

    Returns:
        Tuple of (payload to store, validation errors)
    """
    errors = validate_section_payload(section_type, data)
    if errors:
        return data, errors
    if section_type == CREDIT_POINTS:
        return sanitize_credit_points(data), []
    return dict(data), []


def validate_document_upload(
    section_type: str,
    filename: Optional[str],
    content_type: Optional[str],
    content: bytes
) -> list[dict]:
    """
    Check size and type of an upload before it reaches storage.

    ``photo`` and ``signature`` take JPEG or PNG images; every other section
    takes PDFs only. The declared content type must match the file's magic
    bytes.
    """
    errors = []
    max_bytes = settings.max_document_size_mb * 1024 * 1024

    if not content:
        return [_error(section_type, "file", "Uploaded file is empty")]
    if len(content) > max_bytes:
        errors.append(_error(
            section_type, "file",
            f"File exceeds the {settings.max_document_size_mb} MB limit",
        ))

    declared = (content_type or "").lower()
    if section_type in IMAGE_ONLY_SECTIONS:
        magic = IMAGE_CONTENT_TYPES.get(declared)
        if magic is None:
            errors.append(_error(section_type, "file", "Only JPEG or PNG images are accepted"))
        elif not content.startswith(magic):
            errors.append(_error(section_type, "file", "File content does not match its image type"))
    else:
        if declared != PDF_CONTENT_TYPE:
            errors.append(_error(section_type, "file", "Only PDF documents are accepted"))
        elif not content.startswith(PDF_MAGIC):
            errors.append(_error(section_type, "file", "File is not a valid PDF document"))

    if errors:
        logger.info(f"Rejected upload {filename!r} for section {section_type}: {len(errors)} error(s)")
    return errors
