import datetime


def ensure_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    if value and value.tzinfo is None:
        # Treat naive datetimes as UTC; this is required because SQLite
        # DATETIME values lack timezones.
        return value.replace(tzinfo=datetime.timezone.utc)
    return value
