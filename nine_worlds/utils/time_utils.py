import calendar
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

_DURATION_RE = re.compile(r"^\s*(?P<count>\d+)\s*(?P<unit>days?|months?)\s*$", re.IGNORECASE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(d: Optional[datetime]) -> Optional[datetime]:
    """sqlite hands back naive datetimes; treat them as UTC."""
    if d is not None and d.tzinfo is None:
        return d.replace(tzinfo=timezone.utc)
    return d


def add_months(d: datetime, months: int) -> datetime:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return d.replace(year=year, month=month, day=day)


def is_valid_duration(duration: Optional[str]) -> bool:
    return duration is None or bool(_DURATION_RE.match(duration))


def expiry_from_duration(duration: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    "7 days" / "1 month" -> absolute expiry from now.
    None (or blank) means a permanent ban and returns None.
    """
    if duration is None or not duration.strip():
        return None
    m = _DURATION_RE.match(duration)
    if not m:
        raise ValueError(f"Unsupported ban duration: {duration!r}")

    now = now or utcnow()
    count = int(m.group("count"))
    if m.group("unit").lower().startswith("day"):
        return now + timedelta(days=count)
    return add_months(now, count)
