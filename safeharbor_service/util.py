"""
Utility functions for the SafeHarbor service.

Encoding and time helpers.
"""

import base64
import binascii
import time
from datetime import datetime, timezone


def now_epoch() -> int:
    """Get current Unix timestamp as integer."""
    return int(time.time())


def b64d(s: str) -> bytes:
    """Base64 decode string to bytes. Raises ValueError on malformed input."""
    try:
        return base64.b64decode(s.encode('ascii'), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"invalid base64: {e}") from e


def parse_timestamp(s: str) -> int:
    """
    Parse an ISO-8601 UTC timestamp ("...Z" or "+00:00", fractional seconds
    allowed) to a Unix timestamp.
    """
    dt = datetime.fromisoformat(s.replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def mask_sensitive(value: str, visible_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only the last N characters.
    Useful for logging.
    """
    if len(value) <= visible_chars:
        return '*' * len(value)
    return '*' * (len(value) - visible_chars) + value[-visible_chars:]
