"""UTC helpers.

Every timestamp the engine stores or compares is timezone-aware UTC.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime. Use instead of datetime.utcnow()."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Normalise ``dt`` to aware UTC; naive values are taken to already be UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        # SQLite hands back naive values for timezone-aware columns
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def hours_between(earlier: datetime, later: datetime) -> float:
    """Elapsed hours from ``earlier`` to ``later`` (negative if reversed)."""
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds() / 3600


def datetime_to_iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def iso_to_datetime(value: str | None) -> datetime | None:
    """Parse an ISO 8601 string (``Z`` suffix accepted) into aware UTC."""
    if value is None:
        return None
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
