"""Fetch the four analytics collections from the Lakbay API.

The endpoints are requested concurrently and fail independently: an endpoint
that errors, answers non-2xx or returns something other than a list degrades
to an empty collection and the others are kept.

Leaderboard responses have come back in several shapes, so the list is
located by probing well-known keys and, failing those, taking the first
list-valued field. The fallback can pick the wrong field if the response
shape changes; it logs a warning every time it fires.
"""

import asyncio
import logging
import math
from datetime import datetime, timezone

import httpx

from .config import FETCH_TIMEOUT_S, LAKBAY_API_TOKEN, LAKBAY_API_URL
from .models import ActivityRow, LeaderboardEntry, MetricEvent, Snapshot

logger = logging.getLogger(__name__)

LOGINS_PATH = "/analytics/"
UNIQUE_USERS_PATH = "/analytics/unique-users/"
ACTIVITY_PATH = "/analytics/all-logins/"
LEADERBOARD_PATH = "/analytics/lakbay-leaderboards/"

LEADERBOARD_KEYS = ("contributors", "results", "leaderboard", "data")


def find_array_in_data(data) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in LEADERBOARD_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
        for key, value in data.items():
            if isinstance(value, list):
                logger.warning("Leaderboard located via fallback field %r", key)
                return value
    return []


def parse_timestamp(raw) -> datetime | None:
    """Parse an ISO-8601 ``hour`` value; naive values are taken as UTC."""
    if not isinstance(raw, str) or not raw:
        return None
    try:
        ts = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def as_number(raw) -> int | float:
    """Numeric value of an upstream field, 0 when missing or not a number."""
    if isinstance(raw, bool) or raw is None:
        return 0
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return raw if math.isfinite(raw) else 0
    if isinstance(raw, str):
        try:
            return int(raw)
        except ValueError:
            pass
        try:
            value = float(raw)
        except ValueError:
            return 0
        return value if math.isfinite(value) else 0
    return 0


def _records(records, what: str):
    """Yield ``(record, timestamp)`` for each usable record."""
    for rec in records:
        if not isinstance(rec, dict):
            logger.warning("Dropping non-object %s record: %r", what, rec)
            continue
        ts = parse_timestamp(rec.get("hour"))
        if ts is None:
            logger.warning("Dropping %s record with bad timestamp: %r", what, rec.get("hour"))
            continue
        yield rec, ts


def parse_metric_events(records: list, value_key: str) -> list[MetricEvent]:
    return [
        MetricEvent(timestamp=ts, value=as_number(rec.get(value_key)))
        for rec, ts in _records(records, value_key)
    ]


def parse_activity_rows(records: list) -> list[ActivityRow]:
    rows = []
    for rec, ts in _records(records, "activity"):
        username = rec.get("user__username")
        rows.append(ActivityRow(
            timestamp=ts,
            user_id=int(as_number(rec.get("user__id"))),
            username=username if isinstance(username, str) else "",
            count=int(as_number(rec.get("count"))),
        ))
    return rows


def parse_leaderboard(records: list) -> list[LeaderboardEntry]:
    entries = []
    for rec in records:
        if not isinstance(rec, dict):
            logger.warning("Dropping non-object leaderboard entry: %r", rec)
            continue
        username = rec.get("username")
        entries.append(LeaderboardEntry(
            username=username if isinstance(username, str) else "",
            points=as_number(rec.get("lakbay_points")),
            percentage=as_number(rec.get("percentage")),
            verified_terminals=int(as_number(rec.get("verified_terminals"))),
            verified_routes=int(as_number(rec.get("verified_routes"))),
        ))
    return entries


async def _get_json(client: httpx.AsyncClient, path: str):
    """GET ``path`` and decode JSON; ``None`` on any failure."""
    try:
        response = await client.get(path)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as exc:
        logger.warning("Upstream %s answered %s", path, exc.response.status_code)
    except httpx.HTTPError as exc:
        logger.warning("Upstream %s failed: %s", path, exc)
    except ValueError:
        logger.warning("Upstream %s returned invalid JSON", path)
    return None


def _as_list(payload, path: str) -> list:
    if isinstance(payload, list):
        return payload
    if payload is not None:
        logger.warning("Upstream %s returned %s, expected a list", path, type(payload).__name__)
    return []


async def fetch_snapshot(authorization: str | None = None,
                         transport: httpx.AsyncBaseTransport | None = None) -> Snapshot:
    """Fetch and parse all four collections.

    ``authorization`` is forwarded verbatim when given; otherwise the
    configured ``LAKBAY_API_TOKEN`` is sent as a bearer token.
    """
    headers = {}
    if authorization:
        headers["Authorization"] = authorization
    elif LAKBAY_API_TOKEN:
        headers["Authorization"] = f"Bearer {LAKBAY_API_TOKEN}"

    async with httpx.AsyncClient(base_url=LAKBAY_API_URL, headers=headers,
                                 timeout=FETCH_TIMEOUT_S, transport=transport) as client:
        logins, unique, activity, board = await asyncio.gather(
            _get_json(client, LOGINS_PATH),
            _get_json(client, UNIQUE_USERS_PATH),
            _get_json(client, ACTIVITY_PATH),
            _get_json(client, LEADERBOARD_PATH),
        )

    snapshot = Snapshot(
        logins=parse_metric_events(_as_list(logins, LOGINS_PATH), "count"),
        unique_users=parse_metric_events(_as_list(unique, UNIQUE_USERS_PATH), "unique_users"),
        activity=parse_activity_rows(_as_list(activity, ACTIVITY_PATH)),
        leaderboard=parse_leaderboard(find_array_in_data(board)),
        fetched_at=datetime.now(timezone.utc),
    )
    logger.info(
        "Fetched snapshot: %d login rows, %d unique-user rows, %d activity rows, %d leaderboard entries",
        len(snapshot.logins), len(snapshot.unique_users),
        len(snapshot.activity), len(snapshot.leaderboard),
    )
    return snapshot
