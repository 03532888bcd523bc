"""GET / - serves rendered HTML dashboard."""

import math
from pathlib import Path

from fastapi import APIRouter, Header, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from .aggregator import build_dashboard_data, load_snapshot
from .config import DEFAULT_INTERVAL, DEFAULT_RANGE
from .models import ArcSlice, Interval, TimeRange
from .timewindow import format_clock
from .upstream import parse_timestamp

router = APIRouter()
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

RING_RADIUS = 40
RING_CIRCUMFERENCE = 2 * math.pi * RING_RADIUS
RING_COLORS = ["#facc15", "#94a3b8", "#fb923c", "#60a5fa", "#34d399"]

RANGE_OPTIONS = [("24h", "Last 24 Hours"), ("7d", "Last 7 Days"),
                 ("30d", "Last 30 Days"), ("all", "All Time")]
INTERVAL_OPTIONS = [("1h", "Hourly"), ("6h", "Every 6 Hours"),
                    ("12h", "Every 12 Hours"), ("24h", "Daily")]


def _fmt_num(n):
    n = int(n)
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n:,}"
    return str(n)


def _bars(points: list[dict]) -> list[dict]:
    """Bar heights as a percentage of the tallest bar."""
    max_val = max((p["value"] for p in points), default=0) or 1
    return [
        {"label": p["label"], "value": p["value"], "height": round(p["value"] / max_val * 100, 2)}
        for p in points
    ]


def _ring(shares: list[dict]) -> list[dict]:
    """SVG stroke geometry for each share slice, drawn from the 12 o'clock mark."""
    ring = []
    for s in shares:
        arc = ArcSlice.model_validate(s)
        ring.append({
            "username": s["username"],
            "percentage": s["percentage"],
            "color": RING_COLORS[s["entry_index"] % len(RING_COLORS)],
            "dasharray": f"{arc.arc_length(RING_CIRCUMFERENCE):.4f} {RING_CIRCUMFERENCE:.4f}",
            "dashoffset": f"{arc.arc_offset(RING_CIRCUMFERENCE):.4f}",
        })
    return ring


@router.get("/", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    time_range: TimeRange = Query(default=DEFAULT_RANGE, alias="range"),
    interval: Interval = Query(default=DEFAULT_INTERVAL),
    search: str = Query(default=""),
    authorization: str | None = Header(default=None),
):
    snapshot = await load_snapshot(authorization)
    data = build_dashboard_data(snapshot, time_range, interval, search)
    c = data["cards"]

    groups = []
    for g in data["activity"]["groups"]:
        groups.append({
            "header": g["header"],
            "rows": [
                {
                    "username": r["username"],
                    "initial": (r["username"][:1] or "?").upper(),
                    "user_id": r["user_id"],
                    "count": r["count"],
                    "time": format_clock(parse_timestamp(r["timestamp"])),
                }
                for r in g["rows"]
            ],
        })

    return templates.TemplateResponse(request, "dashboard.html", {
        "params": data["params"],
        "range_options": RANGE_OPTIONS,
        "interval_options": INTERVAL_OPTIONS,
        "total_logins": _fmt_num(c["total_logins"]),
        "distinct_users": _fmt_num(c["distinct_users"]),
        "total_events": _fmt_num(c["total_events"]),
        "login_bars": _bars(data["logins"]),
        "unique_bars": _bars(data["unique_users"]),
        "groups": groups,
        "ring": _ring(data["shares"]),
        "ring_radius": RING_RADIUS,
        "leaderboard": data["leaderboard"],
        "gen_time": data["generated_at"],
    })
