"""UTC helpers.

``datetime.utcnow()`` is deprecated since Python 3.12. These thin wrappers
produce the **naive** UTC datetimes used in log records and status payloads.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return the current UTC time as a naive (tzinfo=None) datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_isoformat(dt: Optional[datetime] = None) -> str:
    """ISO-8601 with a trailing ``Z`` for naive UTC datetimes."""
    value = dt if dt is not None else utcnow()
    return value.replace(microsecond=0).isoformat() + "Z"
