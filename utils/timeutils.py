from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Attach UTC to naive datetimes read back from the database.
    SQLite drops tzinfo even on DateTime(timezone=True) columns.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_past(value: datetime | None) -> bool:
    return value is not None and as_utc(value) <= utcnow()


def parse_provider_datetime(value: str | None) -> datetime:
    """
    Parse the provider's "YYYY-MM-DD HH:MM:SS" (or ISO) timestamps.
    Falls back to now when the value is missing or unreadable.
    """
    if value:
        try:
            return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
        except ValueError:
            pass
    return utcnow()
