from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

LOCAL_TZ_NAME = "local"
DAY = timedelta(hours=24)


def now_utc() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (the storage convention)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_storage(value: datetime) -> datetime:
    """Naive UTC, the form every DateTime column holds."""
    return as_utc(value).replace(tzinfo=None)


def resolve_zone(name: str | None) -> tzinfo | None:
    """Return a zone for ``name``; ``None`` means the host's local zone."""
    if not name or name == LOCAL_TZ_NAME:
        return None
    return ZoneInfo(name)


def local_day(value: datetime, tz_name: str | None) -> date:
    """Calendar day of an absolute instant in the named zone."""
    instant = as_utc(value)
    zone = resolve_zone(tz_name)
    if zone is None:
        return instant.astimezone().date()
    return instant.astimezone(zone).date()


def day_window(day: date, tz_name: str | None) -> tuple[datetime, datetime]:
    """Return ``[midnight, midnight + 24h)`` for ``day`` as aware UTC datetimes.

    The span is a fixed 24 hours even on DST transition days.
    """
    zone = resolve_zone(tz_name)
    if zone is None:
        start = datetime.combine(day, time.min).astimezone()
    else:
        start = datetime.combine(day, time.min, tzinfo=zone)
    start = start.astimezone(timezone.utc)
    return start, start + DAY


def fmt_dt(value: datetime | date | None) -> str:
    """Format datetimes without seconds; dates use D MMM YYYY."""
    if not value:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%-d %b %Y %H:%M")
    if isinstance(value, date):
        return value.strftime("%-d %b %Y")
    return str(value)


def fmt_date(value: date | None) -> str:
    """Long form used on certificates: ``5 March 2026``."""
    if not value:
        return ""
    return f"{value.day} {value.strftime('%B %Y')}"


def fmt_long_date(value: date | None) -> str:
    """``Thursday, 5 March 2026`` for posters and reminders."""
    if not value:
        return ""
    return f"{value.strftime('%A')}, {fmt_date(value)}"
