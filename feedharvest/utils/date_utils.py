"""
Date utility functions for feedharvest.

Records carry Unix-second timestamps; the feed renders machine-readable
ISO 8601 datetimes on its time elements.
"""

import time
from datetime import datetime, timezone
from typing import Optional
from feedharvest.core.logging import get_logger

logger = get_logger(__name__)


def now_epoch() -> int:
    """Current wall-clock time in whole Unix seconds."""
    return int(time.time())


def parse_iso_datetime(date_str: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 datetime string into an aware datetime.

    A trailing ``Z`` is accepted and naive values are taken as UTC.
    Returns None if parsing fails.

    Example:
        >>> parse_iso_datetime("2023-05-01T12:00:00.000Z").year
        2023
        >>> parse_iso_datetime("yesterday") is None
        True
    """
    if not date_str or not isinstance(date_str, str):
        return None

    value = date_str.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        logger.debug(f"Could not parse datetime: {date_str}")
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_epoch_seconds(date_str: Optional[str]) -> Optional[int]:
    """
    Convert an ISO 8601 datetime string to whole Unix seconds.

    Example:
        >>> to_epoch_seconds("2023-05-01T12:00:00.000Z")
        1682942400
    """
    dt = parse_iso_datetime(date_str)
    if dt is None:
        return None
    return int(dt.timestamp())
