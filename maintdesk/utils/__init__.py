"""
Utility functions
"""
from maintdesk.utils.logger import setup_logger, get_logger
from maintdesk.utils.validators import (
    missing_fields,
    is_valid_score,
    sanitize_input
)
from maintdesk.utils.timeutils import (
    utc_now,
    parse_timestamp,
    duration_parts,
    format_duration,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "missing_fields",
    "is_valid_score",
    "sanitize_input",
    "utc_now",
    "parse_timestamp",
    "duration_parts",
    "format_duration",
]
