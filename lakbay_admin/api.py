"""GET /api/stats - returns dashboard JSON blob."""

from fastapi import APIRouter, Header, Query
from fastapi.responses import JSONResponse

from .aggregator import build_dashboard_data, get_cache_version, invalidate_cache, load_snapshot
from .config import DEFAULT_INTERVAL, DEFAULT_RANGE
from .models import Interval, TimeRange

router = APIRouter()


@router.get("/api/stats/version")
async def stats_version():
    return {"version": get_cache_version()}


@router.post("/api/stats/refresh")
async def stats_refresh():
    invalidate_cache()
    return {"version": get_cache_version()}


@router.get("/api/stats")
async def stats(
    time_range: TimeRange = Query(default=DEFAULT_RANGE, alias="range"),
    interval: Interval = Query(default=DEFAULT_INTERVAL),
    search: str = Query(default=""),
    authorization: str | None = Header(default=None),
):
    snapshot = await load_snapshot(authorization)
    data = build_dashboard_data(snapshot, time_range, interval, search)
    return JSONResponse(content=data)
