"""
Shared fixtures for the Lakbay admin tests.

Nothing here talks to the real Lakbay API: the engine tests build models
directly, and the HTTP tests replace ``fetch_snapshot`` with a canned
snapshot so the routes only exercise aggregation and rendering.
"""

from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from lakbay_admin.models import Snapshot
from lakbay_admin.upstream import parse_activity_rows, parse_leaderboard, parse_metric_events

NOW = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)

LOGINS_PAYLOAD = [
    {"hour": "2024-03-05T09:00:00Z", "count": 4},
    {"hour": "2024-03-05T10:00:00Z", "count": 6},
    {"hour": "2024-03-04T23:00:00Z", "count": 2},
    {"hour": "2024-02-20T08:00:00Z", "count": 10},
    {"hour": "2023-12-01T08:00:00Z", "count": 1},
]

UNIQUE_PAYLOAD = [
    {"hour": "2024-03-05T09:00:00Z", "unique_users": 3},
    {"hour": "2024-03-05T10:00:00Z", "unique_users": 5},
    {"hour": "2024-03-01T10:00:00Z", "unique_users": 2},
]

ACTIVITY_PAYLOAD = [
    {"hour": "2024-03-04T23:50:00Z", "user__username": "Maria", "user__id": 7, "count": 2},
    {"hour": "2024-03-05T00:05:00Z", "user__username": "jose", "user__id": 12, "count": 1},
    {"hour": "2024-03-05T10:00:00Z", "user__username": "maria", "user__id": 7, "count": 3},
    {"hour": "2024-02-01T10:00:00Z", "user__username": "ana", "user__id": 170, "count": 5},
]

LEADERBOARD_PAYLOAD = {
    "contributors": [
        {"username": "maria", "lakbay_points": 500, "percentage": 50,
         "verified_terminals": 4, "verified_routes": 6},
        {"username": "jose", "lakbay_points": 300, "percentage": 30,
         "verified_terminals": 2, "verified_routes": 3},
        {"username": "ana", "lakbay_points": 200, "percentage": 20,
         "verified_terminals": 1, "verified_routes": 1},
    ]
}


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def snapshot():
    return Snapshot(
        logins=parse_metric_events(LOGINS_PAYLOAD, "count"),
        unique_users=parse_metric_events(UNIQUE_PAYLOAD, "unique_users"),
        activity=parse_activity_rows(ACTIVITY_PAYLOAD),
        leaderboard=parse_leaderboard(LEADERBOARD_PAYLOAD["contributors"]),
        fetched_at=NOW,
    )


@pytest.fixture(autouse=True)
def reset_cache():
    """Every test starts without a cached snapshot."""
    import lakbay_admin.aggregator as agg

    agg.invalidate_cache()
    yield
    agg.invalidate_cache()


@pytest.fixture()
def fetch_calls(monkeypatch, snapshot):
    """
    Replace the upstream fetch with the canned snapshot.

    Returns the list of Authorization values the fetch was called with.
    """
    calls = []

    async def fake_fetch(authorization=None, transport=None):
        calls.append(authorization)
        return snapshot

    monkeypatch.setattr("lakbay_admin.aggregator.fetch_snapshot", fake_fetch)
    return calls


@pytest.fixture()
async def client(fetch_calls):  # noqa: ARG001 - fetch_calls must patch first
    from lakbay_admin.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
