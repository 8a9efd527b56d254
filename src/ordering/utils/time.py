"""Clock helpers shared by aggregates and sweeps."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_naive_utc(value: datetime | None) -> datetime | None:
    """Normalize a datetime to naive UTC so stored and computed values compare."""
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value
