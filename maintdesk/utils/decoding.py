"""
Defensive decoding of ticket store payloads

The spreadsheet backend stores attachments as a JSON string column and
timestamps as whatever the sheet cell happened to hold. Strict parsers raise
DecodeError; the decode_* helpers log it and substitute a safe default so a
single malformed record never breaks a whole ticket list.
"""
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from maintdesk.errors import DecodeError
from maintdesk.utils.logger import get_logger
from maintdesk.utils.timeutils import parse_timestamp

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ATTACHMENT_KEYS = ("id", "name", "url")


def parse_attachments(raw: Any) -> List[Dict[str, Any]]:
    """
    Parse an attachment list that may still be JSON-encoded

    Raises:
        DecodeError: If the payload is neither a list nor a JSON list string
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, list):
        return raw
    if isinstance(raw, str):
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Attachments are not valid JSON: {raw[:80]!r}") from e
        if not isinstance(value, list):
            raise DecodeError(f"Attachments JSON is not a list: {type(value).__name__}")
        return value
    raise DecodeError(f"Unsupported attachments payload: {type(raw).__name__}")


def _text_value(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    return str(value)


def _attachment_entry(item: Any) -> Optional[Dict[str, str]]:
    """id/name/url as strings, or None if any is missing or unusable"""
    if not isinstance(item, dict):
        return None
    entry = {key: _text_value(item.get(key)) for key in ATTACHMENT_KEYS}
    if any(value is None for value in entry.values()) or not entry["id"]:
        return None
    return entry


def decode_attachments(raw: Any, ticket_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Decode attachments, falling back to an empty list on malformed input

    Entries missing id/name/url, or holding a null, empty id or non-text
    value, are dropped; for repeated ids the first valid entry wins.
    """
    try:
        items = parse_attachments(raw)
    except DecodeError as e:
        logger.warning(f"Ticket {ticket_id}: {e}; using no attachments")
        return []

    attachments = []
    seen_ids = set()
    for item in items:
        if hasattr(item, "model_dump"):
            item = item.model_dump()
        entry = _attachment_entry(item)
        if entry is None:
            logger.warning(f"Ticket {ticket_id}: dropping malformed attachment {item!r}")
            continue
        attachment_id = entry["id"]
        if attachment_id in seen_ids:
            logger.warning(f"Ticket {ticket_id}: dropping duplicate attachment id {attachment_id}")
            continue
        seen_ids.add(attachment_id)
        attachments.append(entry)
    return attachments


def decode_optional_timestamp(
    raw: Any,
    field: str,
    ticket_id: Optional[str] = None
) -> Optional[datetime]:
    """Decode an optional timestamp; malformed values become None"""
    if raw is None or raw == "":
        return None
    try:
        return parse_timestamp(raw)
    except DecodeError as e:
        logger.warning(f"Ticket {ticket_id}: invalid {field}: {e}")
        return None


def decode_required_timestamp(
    raw: Any,
    field: str,
    ticket_id: Optional[str] = None
) -> datetime:
    """Decode a mandatory timestamp; malformed or missing values become the epoch"""
    try:
        return parse_timestamp(raw)
    except DecodeError as e:
        logger.warning(f"Ticket {ticket_id}: invalid {field}, defaulting to epoch: {e}")
        return EPOCH
