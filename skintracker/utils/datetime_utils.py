"""
Datetime utility functions.
"""

from datetime import datetime
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def parse_iso(value: str) -> datetime:
    """
    Parse an ISO timestamp, treating naive values as UTC.

    Args:
        value: ISO 8601 timestamp string

    Returns:
        Timezone-aware datetime
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = pytz.UTC.localize(parsed)
    return parsed


def is_expired(expires_at: str) -> bool:
    """Expiry is a hard cutoff: a token is dead once now >= expires_at."""
    return utcnow() >= parse_iso(expires_at)
