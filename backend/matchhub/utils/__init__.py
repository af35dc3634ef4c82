from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Make a naive datetime timezone-aware (UTC). Already-aware datetimes are converted.

    Cached provider payloads round-trip through JSON and Mongo, both of which
    may hand back naive values; comparisons against utcnow() need them aware.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_utc(value: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 string or datetime into a tz-aware UTC datetime.

    Handles trailing "Z", explicit offsets and bare dates. Returns None for
    empty or unparseable input instead of raising, since provider dates are
    frequently missing or malformed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        return None


def from_epoch_ms(value) -> datetime | None:
    """Convert an epoch-milliseconds value (int or numeric string) to UTC."""
    try:
        millis = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def day_key(value: datetime | date | None) -> str:
    """Calendar-day key (YYYY-MM-DD) in UTC; empty string when absent."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return ensure_utc(value).date().isoformat()
    return value.isoformat()
