from datetime import UTC, datetime


def utcnow() -> datetime:
    """Naive UTC now, the representation stored in every timestamp column."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Normalize a driver-returned timestamp (aware on PostgreSQL, naive on SQLite)."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)
