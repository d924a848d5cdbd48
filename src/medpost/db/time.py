"""Clock helpers; every stored timestamp is timezone-aware UTC."""

from datetime import UTC, date, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def utc_today() -> date:
    """Calendar date in UTC, used for date-range defaults in listings."""
    return utcnow().date()
