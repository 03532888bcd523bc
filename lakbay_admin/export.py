"""GET /api/export/*.csv - activity log and leaderboard downloads."""

import csv
import io
from collections.abc import Sequence
from datetime import datetime, timezone

from fastapi import APIRouter, Header, Query
from fastapi.responses import Response

from .aggregator import group_activity, load_snapshot
from .config import DEFAULT_RANGE
from .models import ActivityLog, LeaderboardEntry, TimeRange
from .timewindow import TZ

router = APIRouter()

ACTIVITY_HEADERS = ["Username", "User ID", "Login Count", "Lakbay Points", "Last Activity"]
LEADERBOARD_HEADERS = ["Rank", "Username", "Lakbay Points", "Verified Terminals",
                       "Verified Routes", "Percentage"]


def _fmt_number(n):
    if isinstance(n, float) and n.is_integer():
        return str(int(n))
    return str(n)


def _fmt_local(ts: datetime) -> str:
    local = ts.astimezone(TZ)
    hn = local.hour % 12 or 12
    ampm = "AM" if local.hour < 12 else "PM"
    return f"{local.month}/{local.day}/{local.year}, {hn}:{local.minute:02d}:{local.second:02d} {ampm}"


def _write(headers: list[str], rows) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buf.getvalue()


def activity_csv(log: ActivityLog, leaderboard: Sequence[LeaderboardEntry]) -> str:
    """Activity rows in log order, with each user's points looked up by username."""
    points = {e.username: e.points for e in leaderboard}
    return _write(ACTIVITY_HEADERS, (
        [r.username, r.user_id, r.count, _fmt_number(points.get(r.username, 0)),
         _fmt_local(r.timestamp)]
        for r in log.flat_rows()
    ))


def leaderboard_csv(leaderboard: Sequence[LeaderboardEntry]) -> str:
    return _write(LEADERBOARD_HEADERS, (
        [rank, e.username, _fmt_number(e.points), e.verified_terminals, e.verified_routes,
         f"{_fmt_number(e.percentage)}%"]
        for rank, e in enumerate(leaderboard, start=1)
    ))


def _csv_response(body: str, prefix: str) -> Response:
    filename = f"{prefix}_{datetime.now(timezone.utc):%Y-%m-%d}.csv"
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/api/export/activity.csv")
async def export_activity(
    time_range: TimeRange = Query(default=DEFAULT_RANGE, alias="range"),
    search: str = Query(default=""),
    authorization: str | None = Header(default=None),
):
    snapshot = await load_snapshot(authorization)
    log = group_activity(snapshot.activity, time_range, search, datetime.now(timezone.utc))
    return _csv_response(activity_csv(log, snapshot.leaderboard), "login_activity")


@router.get("/api/export/leaderboard.csv")
async def export_leaderboard(authorization: str | None = Header(default=None)):
    snapshot = await load_snapshot(authorization)
    return _csv_response(leaderboard_csv(snapshot.leaderboard), "lakbay_leaderboard")
