"""
Datetime utilities for consistent timezone-aware handling.

Interaction timestamps arrive either as epoch milliseconds or as ISO-8601
strings; everything downstream works in epoch milliseconds.
"""

from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    """
    Get current UTC time as a naive datetime (for JSON serialization compatibility).
    
    Returns:
        Current UTC time as a naive datetime object
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_epoch_millis(value: Any) -> Optional[float]:
    """
    Coerce a recorded timestamp to epoch milliseconds.
    
    Args:
        value: Epoch milliseconds (int/float/numeric string) or ISO-8601 string
    
    Returns:
        Milliseconds since the epoch, or None if the value cannot be read
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp() * 1000.0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            pass
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp() * 1000.0
    return None
