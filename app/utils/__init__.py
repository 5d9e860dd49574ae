# Utilities package
from .status_transitions import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    is_valid_transition,
    parse_status,
    build_status_change,
)
from .application_number import format_application_number, parse_application_number
from .pagination import calculate_offset, calculate_total_pages, PaginationParams, PaginationMeta

__all__ = [
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "is_valid_transition",
    "parse_status",
    "build_status_change",
    "format_application_number",
    "parse_application_number",
    "calculate_offset",
    "calculate_total_pages",
    "PaginationParams",
    "PaginationMeta",
]
