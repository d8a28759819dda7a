from datetime import datetime, timezone


def utc_now():
    """Return current UTC timezone-aware datetime."""
    return datetime.now(timezone.utc)
