"""Time and datetime utilities.

The document store keeps timestamps as integer epoch milliseconds.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Get the current time as epoch milliseconds."""
    return to_epoch_ms(utc_now())


def to_epoch_ms(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds.

    Naive datetimes are treated as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)

