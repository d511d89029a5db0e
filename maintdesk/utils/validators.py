"""
Input validation utilities
"""
from typing import Any, Dict, List


def missing_fields(values: Dict[str, Any]) -> List[str]:
    """
    List the keys whose values are empty

    Args:
        values: Field name to submitted value

    Returns:
        Names of fields that are None or blank strings, in input order
    """
    missing = []
    for name, value in values.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def is_valid_score(score: Any) -> bool:
    """
    Validate a star rating

    Args:
        score: Submitted rating

    Returns:
        True if score is an integer from 1 to 5
    """
    return isinstance(score, int) and not isinstance(score, bool) and 1 <= score <= 5


def sanitize_input(text: str, max_length: int = 10000) -> str:
    """
    Sanitize user input

    Args:
        text: Input text to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    # Remove null bytes
    text = text.replace('\x00', '')

    # Truncate to max length
    if len(text) > max_length:
        text = text[:max_length]

    return text.strip()
