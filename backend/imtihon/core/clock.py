"""Wall clock used by the exam engine.

All timestamps are stored as naive UTC. Tests patch ``utcnow`` on this module
to move time forward without sleeping.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current time as naive UTC."""
    return datetime.now(UTC).replace(tzinfo=None)
