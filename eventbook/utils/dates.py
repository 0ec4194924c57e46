from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive values; SQLite returns stored datetimes without tzinfo."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
