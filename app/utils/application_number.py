"""
Human-readable application numbers.

Format: ``<PREFIX>-<YEAR>-<NNNNNN>``, e.g. ``APP-2026-000042``. The running
number comes from the per-year ``application_sequences`` counter, so numbers
within a year are strictly increasing and never reused.
"""

import re

from app.core.config import settings

APPLICATION_NUMBER_PATTERN = re.compile(r"^(?P<prefix>[A-Z0-9]+)-(?P<year>\d{4})-(?P<seq>\d{6,})$")


def format_application_number(year: int, sequence: int, prefix: str | None = None) -> str:
    """
    Example:
        >>> format_application_number(2026, 42, prefix="APP")
        'APP-2026-000042'
    """
    if sequence < 1:
        raise ValueError("sequence must be >= 1")
    prefix = (prefix or settings.application_number_prefix).upper()
    return f"{prefix}-{year}-{sequence:06d}"


def parse_application_number(value: str) -> tuple[str, int, int]:
    """
    Split an application number into ``(prefix, year, sequence)``.

    Raises:
        ValueError: If value does not match the application number format
    """
    match = APPLICATION_NUMBER_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid application number: {value}")
    return match.group("prefix"), int(match.group("year")), int(match.group("seq"))
