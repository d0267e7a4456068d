from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime; every stored timestamp uses it."""
    return datetime.now(timezone.utc)
