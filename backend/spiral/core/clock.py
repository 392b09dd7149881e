from datetime import datetime, timezone


def utcnow() -> datetime:
    # UTC naive: SQLite non conserva il fuso, così i confronti restano omogenei
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
