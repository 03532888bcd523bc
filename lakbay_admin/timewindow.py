"""Time windows, bucket keys and labels for the dashboard charts.

Bucket keys, calendar days, chart labels and row clock times are all taken
in UTC, so a label always names the date of the bucket it sits on. ``TZ`` is
only used for free-standing timestamps such as the CSV export.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from .config import TZ_NAME

TZ = ZoneInfo(TZ_NAME)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

RANGE_SPANS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "all": None,
}
INTERVALS = ("1h", "6h", "12h", "24h")


def window_cutoff(time_range: str, now: datetime) -> datetime:
    """Earliest instant still inside ``time_range`` as seen from ``now``."""
    if time_range not in RANGE_SPANS:
        raise ValueError(f"unknown time range: {time_range!r}")
    span = RANGE_SPANS[time_range]
    if span is None:
        return EPOCH
    return now - span


def include(timestamp: datetime, time_range: str, now: datetime) -> bool:
    return timestamp >= window_cutoff(time_range, now)


def check_interval(interval: str) -> None:
    if interval not in INTERVALS:
        raise ValueError(f"unknown interval: {interval!r}")


def bucket_of(timestamp: datetime, interval: str) -> tuple[str, datetime]:
    """Return ``(key, representative)`` for the bucket holding ``timestamp``.

    ``1h`` and ``24h`` buckets are represented by their aligned start. For
    ``6h`` and ``12h`` the representative is the timestamp itself; callers
    keep the earliest one seen per key.
    """
    check_interval(interval)
    ts = timestamp.astimezone(timezone.utc)
    day = ts.date().isoformat()
    if interval == "1h":
        start = ts.replace(minute=0, second=0, microsecond=0)
        return start.isoformat(), start
    if interval == "24h":
        start = ts.replace(hour=0, minute=0, second=0, microsecond=0)
        return day, start
    if interval == "6h":
        return f"{day}-Q{ts.hour // 6}", ts
    return f"{day}-H{ts.hour // 12}", ts


def utc_day(timestamp: datetime) -> date:
    return timestamp.astimezone(timezone.utc).date()


def _clock_hour(dt: datetime) -> str:
    hn = dt.hour % 12 or 12
    return f"{hn} {'AM' if dt.hour < 12 else 'PM'}"


def format_label(instant: datetime, interval: str) -> str:
    """Chart label: ``Mar 4`` for days, ``3 PM`` for hours, ``Mar 4, 3 PM`` otherwise."""
    check_interval(interval)
    ts = instant.astimezone(timezone.utc)
    if interval == "24h":
        return f"{ts:%b} {ts.day}"
    if interval == "1h":
        return _clock_hour(ts)
    return f"{ts:%b} {ts.day}, {_clock_hour(ts)}"


def format_clock(instant: datetime) -> str:
    """Clock time of an activity row, in the same zone as its day group."""
    ts = instant.astimezone(timezone.utc)
    hn = ts.hour % 12 or 12
    return f"{hn}:{ts.minute:02d} {'AM' if ts.hour < 12 else 'PM'}"


def relative_day_header(day: date, now: datetime) -> str:
    today = utc_day(now)
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return f"{day:%b} {day.day}, {day.year}"
