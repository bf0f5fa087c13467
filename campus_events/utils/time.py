from datetime import datetime, timezone
import pytz


def utcnow() -> datetime:
    return datetime.now(pytz.UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the database."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=pytz.UTC)
    return value.astimezone(pytz.UTC)


def parse_datetime(value) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware UTC datetime."""
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid date value: {value!r}")
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=pytz.UTC)
    return parsed.astimezone(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    return as_utc(value).isoformat() if value else None
