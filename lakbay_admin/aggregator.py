"""Turn the raw analytics collections into dashboard data.

The engine functions (``aggregate_series``, ``group_activity``,
``layout_shares``) are pure: they read immutable inputs and an explicit
``now``, and return fresh values. ``build_dashboard_data`` composes them into
the JSON blob served by the API and the HTML dashboard.

The fetched snapshot is cached in memory per Authorization value and reused
until it expires or is invalidated; changing the range, interval or search
only recomputes. A caller never receives a snapshot fetched with someone
else's credentials.
"""

import logging
import threading
import time
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timezone
from itertools import islice

from .config import DEFAULT_INTERVAL, DEFAULT_RANGE, LEADERBOARD_TOP_N, SNAPSHOT_TTL_S
from .models import (
    ActivityLog, ActivityRow, ArcSlice, ChartPoint, DayGroup, LeaderboardEntry,
    MetricEvent, Snapshot,
)
from .timewindow import (
    bucket_of, check_interval, format_label, relative_day_header, utc_day, window_cutoff,
)
from .upstream import fetch_snapshot

logger = logging.getLogger(__name__)

# In-memory snapshot cache keyed by Authorization value, entries are
# (snapshot, monotonic fetch time) and expire after SNAPSHOT_TTL_S
_cache_lock = threading.Lock()
_cached: dict[str | None, tuple[Snapshot, float]] = {}
_cache_version: int = 0


def invalidate_cache():
    """Drop every cached snapshot, forcing a refetch on next request."""
    global _cache_version
    with _cache_lock:
        _cached.clear()
        _cache_version += 1


def get_cache_version() -> int:
    """Return current cache version (incremented on each invalidation or refetch)."""
    with _cache_lock:
        return _cache_version


async def load_snapshot(authorization: str | None = None) -> Snapshot:
    """Return the snapshot cached for ``authorization``, refetching when missing or stale."""
    global _cache_version
    with _cache_lock:
        entry = _cached.get(authorization)
        if entry is not None and time.monotonic() - entry[1] < SNAPSHOT_TTL_S:
            return entry[0]
    # Fetch outside the lock to avoid blocking concurrent readers
    snapshot = await fetch_snapshot(authorization)
    with _cache_lock:
        now = time.monotonic()
        for key in [k for k, (_, at) in _cached.items() if now - at >= SNAPSHOT_TTL_S]:
            del _cached[key]
        _cached[authorization] = (snapshot, now)
        _cache_version += 1
    logger.info("Snapshot cache rebuilt (version %d)", _cache_version)
    return snapshot


def aggregate_series(events: Iterable[MetricEvent], time_range: str, interval: str,
                     now: datetime) -> list[ChartPoint]:
    """Sum event values per bucket inside the window, oldest bucket first."""
    cutoff = window_cutoff(time_range, now)
    check_interval(interval)

    # key -> {"sum", "rep"}; rep is the earliest representative seen for the key
    buckets: dict[str, dict] = {}
    for ev in events:
        if ev.timestamp < cutoff:
            continue
        key, rep = bucket_of(ev.timestamp, interval)
        b = buckets.get(key)
        if b is None:
            buckets[key] = {"sum": ev.value, "rep": rep}
            continue
        b["sum"] += ev.value
        if rep < b["rep"]:
            b["rep"] = rep

    return [
        ChartPoint(label=format_label(b["rep"], interval), value=b["sum"], sort_instant=b["rep"])
        for b in sorted(buckets.values(), key=lambda b: b["rep"])
    ]


def _matches(row: ActivityRow, needle: str) -> bool:
    return needle in row.username.lower() or needle in str(row.user_id)


def group_activity(rows: Iterable[ActivityRow], time_range: str, search: str,
                   now: datetime) -> ActivityLog:
    """Filter by window and search, newest first, grouped by UTC day.

    The window and the search are independent filters; a row is kept only
    when it passes both. Counters cover every kept row, not one day.
    """
    cutoff = window_cutoff(time_range, now)
    needle = (search or "").lower()

    kept = [r for r in rows if r.timestamp >= cutoff and (not needle or _matches(r, needle))]
    # reverse=True keeps ties in input order
    kept.sort(key=lambda r: r.timestamp, reverse=True)

    by_day: dict[date, list[ActivityRow]] = {}
    for row in kept:
        by_day.setdefault(utc_day(row.timestamp), []).append(row)

    return ActivityLog(
        groups=[
            DayGroup(day=day, header=relative_day_header(day, now), rows=day_rows)
            for day, day_rows in by_day.items()
        ],
        distinct_users=len({r.user_id for r in kept}),
        total_events=sum(r.count for r in kept),
    )


def layout_shares(leaderboard: Sequence[LeaderboardEntry], top_n: int) -> list[ArcSlice]:
    """Lay the top ``top_n`` entries end to end around a circle.

    Each slice starts where the previous one ended. Percentages are not
    normalized, so the total may fall short of or exceed 100.
    """
    if top_n <= 0:
        return []
    slices = []
    cumulative = 0
    for i, entry in enumerate(islice(leaderboard, top_n)):
        sweep = max(entry.percentage, 0)
        slices.append(ArcSlice(entry_index=i, start_offset_percent=cumulative, sweep_percent=sweep))
        cumulative += sweep
    return slices


def build_dashboard_data(snapshot: Snapshot, time_range: str = DEFAULT_RANGE,
                         interval: str = DEFAULT_INTERVAL, search: str = "",
                         now: datetime | None = None,
                         top_n: int = LEADERBOARD_TOP_N) -> dict:
    """Produce the full dashboard JSON blob from one snapshot."""
    if now is None:
        now = datetime.now(timezone.utc)
    logger.debug("Recomputing dashboard: range=%s interval=%s search=%r",
                 time_range, interval, search)

    logins = aggregate_series(snapshot.logins, time_range, interval, now)
    unique = aggregate_series(snapshot.unique_users, time_range, interval, now)
    activity = group_activity(snapshot.activity, time_range, search, now)
    slices = layout_shares(snapshot.leaderboard, top_n)

    shares = []
    for s in slices:
        entry = snapshot.leaderboard[s.entry_index]
        shares.append({
            **s.model_dump(),
            "end_percent": s.end_percent,
            "username": entry.username,
            "percentage": entry.percentage,
        })

    return {
        "params": {"range": time_range, "interval": interval, "search": search},
        "cards": {
            "total_logins": sum(p.value for p in logins),
            "distinct_users": activity.distinct_users,
            "total_events": activity.total_events,
            "contributors": len(snapshot.leaderboard),
        },
        "logins": [p.model_dump(mode="json") for p in logins],
        "unique_users": [p.model_dump(mode="json") for p in unique],
        "activity": activity.model_dump(mode="json"),
        "shares": shares,
        "leaderboard": [e.model_dump() for e in snapshot.leaderboard],
        "generated_at": now.isoformat(),
        "fetched_at": snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
        "version": get_cache_version(),
    }
