"""Day-precision date helpers. Every engine date is a `datetime.date`; no times, no zones."""
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from .errors import ValidationError

ISO_FORMAT = "%Y-%m-%d"


def parse_day(value) -> Optional[date]:
    """
    Normalize a date-ish value to a `date`, or None if absent/unparseable.

    Accepts `date`, `datetime` (time dropped), "YYYY-MM-DD", "YYYY-MM-DD HH:MM:SS"
    and "YYYY-MM-DDTHH:MM:SS[...]".
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return datetime.strptime(s[:10], ISO_FORMAT).date()
    except ValueError:
        return None


def require_day(value, field: str = "date") -> date:
    """Like parse_day but raises ValidationError."""
    d = parse_day(value)
    if d is None:
        raise ValidationError(f"Invalid {field}: {value!r}")
    return d


def today_in(tz_name: str = "UTC", now: Optional[datetime] = None) -> date:
    """Calendar day in the reference zone. Computed once per operation."""
    tz = ZoneInfo(tz_name)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    return now.astimezone(tz).date()


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)


def span_end(start: date, duration_days: int) -> date:
    """Inclusive end of a placement lasting `duration_days` days."""
    return start + timedelta(days=duration_days - 1)


def span_days(start: date, end: date) -> int:
    """Inclusive length in days."""
    return (end - start).days + 1


def fmt(d: Optional[date]) -> Optional[str]:
    return d.strftime(ISO_FORMAT) if d else None


# Placement predicates. `p` is anything with start_date / end_date.

def is_current(p, today: date) -> bool:
    return p.start_date <= today <= p.end_date


def is_upcoming(p, today: date) -> bool:
    return p.start_date > today


def is_completed(p, today: date) -> bool:
    return p.end_date < today


def is_current_or_upcoming(p, today: date) -> bool:
    return is_current(p, today) or is_upcoming(p, today)
