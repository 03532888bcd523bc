"""
test_upstream.py - payload extraction, record parsing and the concurrent fetch.

The fetch tests route httpx through a MockTransport, so no network is used.
"""

import json
import logging
from datetime import datetime, timezone

import httpx
import pytest

from lakbay_admin.upstream import (
    as_number,
    fetch_snapshot,
    find_array_in_data,
    parse_activity_rows,
    parse_leaderboard,
    parse_metric_events,
    parse_timestamp,
)

from .conftest import ACTIVITY_PAYLOAD, LEADERBOARD_PAYLOAD, LOGINS_PAYLOAD, UNIQUE_PAYLOAD


# ── find_array_in_data ───────────────────────────────────────────────────────

class TestFindArrayInData:

    def test_plain_list(self):
        assert find_array_in_data([1, 2]) == [1, 2]

    @pytest.mark.parametrize("key", ["contributors", "results", "leaderboard", "data"])
    def test_known_keys(self, key):
        assert find_array_in_data({"count": 3, key: [{"username": "a"}]}) == [{"username": "a"}]

    def test_known_keys_checked_in_order(self):
        payload = {"data": ["d"], "results": ["r"], "contributors": ["c"]}
        assert find_array_in_data(payload) == ["c"]

    def test_fallback_to_first_list_field(self, caplog):
        with caplog.at_level(logging.WARNING, logger="lakbay_admin.upstream"):
            assert find_array_in_data({"meta": {}, "rows": ["x"], "other": ["y"]}) == ["x"]
        assert "fallback" in caplog.text

    @pytest.mark.parametrize("payload", [None, "text", 3, {"meta": {"a": 1}}])
    def test_nothing_found(self, payload):
        assert find_array_in_data(payload) == []


# ── parsing ──────────────────────────────────────────────────────────────────

class TestParsing:

    def test_parse_timestamp_accepts_z_and_offsets(self):
        assert parse_timestamp("2024-03-04T10:00:00Z") == datetime(2024, 3, 4, 10, tzinfo=timezone.utc)
        assert parse_timestamp("2024-03-04T18:00:00+08:00") == datetime(2024, 3, 4, 10, tzinfo=timezone.utc)

    def test_parse_timestamp_naive_is_utc(self):
        assert parse_timestamp("2024-03-04T10:00:00").tzinfo is timezone.utc

    @pytest.mark.parametrize("raw", [None, "", "yesterday", 1709546400])
    def test_parse_timestamp_rejects(self, raw):
        assert parse_timestamp(raw) is None

    @pytest.mark.parametrize("raw,expected", [
        (3, 3), (2.5, 2.5), ("7", 7), ("1.5", 1.5), (None, 0), ("abc", 0),
        (True, 0), ([], 0), (float("nan"), 0),
    ])
    def test_as_number(self, raw, expected):
        assert as_number(raw) == expected

    def test_metric_events(self):
        events = parse_metric_events(LOGINS_PAYLOAD, "count")
        assert len(events) == len(LOGINS_PAYLOAD)
        assert events[0].value == 4

    def test_missing_value_counts_as_zero(self):
        (event,) = parse_metric_events([{"hour": "2024-03-04T10:00:00Z"}], "unique_users")
        assert event.value == 0

    def test_bad_records_dropped(self, caplog):
        records = [
            {"hour": "not-a-date", "count": 1},
            "garbage",
            {"hour": "2024-03-04T10:00:00Z", "count": 2},
        ]
        with caplog.at_level(logging.WARNING, logger="lakbay_admin.upstream"):
            events = parse_metric_events(records, "count")
        assert [e.value for e in events] == [2]
        assert "bad timestamp" in caplog.text

    def test_activity_rows(self):
        rows = parse_activity_rows(ACTIVITY_PAYLOAD)
        assert [(r.user_id, r.username, r.count) for r in rows][:2] == [(7, "Maria", 2), (12, "jose", 1)]

    def test_leaderboard_field_names(self):
        (first, *_rest) = parse_leaderboard(LEADERBOARD_PAYLOAD["contributors"])
        assert first.username == "maria"
        assert first.points == 500
        assert first.percentage == 50
        assert (first.verified_terminals, first.verified_routes) == (4, 6)


# ── fetch_snapshot ───────────────────────────────────────────────────────────

def _transport(routes, seen=None):
    def handler(request: httpx.Request):
        if seen is not None:
            seen.append(request)
        path = request.url.path
        if path not in routes:
            return httpx.Response(404)
        status, body = routes[path]
        return httpx.Response(status, content=json.dumps(body).encode(),
                              headers={"Content-Type": "application/json"})
    return httpx.MockTransport(handler)


FULL_ROUTES = {
    "/api/analytics/": (200, LOGINS_PAYLOAD),
    "/api/analytics/unique-users/": (200, UNIQUE_PAYLOAD),
    "/api/analytics/all-logins/": (200, ACTIVITY_PAYLOAD),
    "/api/analytics/lakbay-leaderboards/": (200, LEADERBOARD_PAYLOAD),
}


class TestFetchSnapshot:

    async def test_fetches_all_four(self):
        snapshot = await fetch_snapshot(transport=_transport(FULL_ROUTES))
        assert len(snapshot.logins) == len(LOGINS_PAYLOAD)
        assert len(snapshot.unique_users) == len(UNIQUE_PAYLOAD)
        assert len(snapshot.activity) == len(ACTIVITY_PAYLOAD)
        assert [e.username for e in snapshot.leaderboard] == ["maria", "jose", "ana"]
        assert snapshot.fetched_at is not None

    async def test_failures_are_independent(self):
        routes = dict(FULL_ROUTES)
        routes["/api/analytics/unique-users/"] = (500, {"detail": "boom"})
        routes["/api/analytics/all-logins/"] = (200, {"detail": "not a list"})
        snapshot = await fetch_snapshot(transport=_transport(routes))
        assert snapshot.unique_users == []
        assert snapshot.activity == []
        assert len(snapshot.logins) == len(LOGINS_PAYLOAD)
        assert len(snapshot.leaderboard) == 3

    async def test_transport_error_yields_empty_snapshot(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        snapshot = await fetch_snapshot(transport=httpx.MockTransport(handler))
        assert snapshot.logins == []
        assert snapshot.leaderboard == []

    async def test_forwards_authorization(self):
        seen = []
        await fetch_snapshot("Bearer abc", transport=_transport(FULL_ROUTES, seen))
        assert len(seen) == 4
        assert {r.headers["Authorization"] for r in seen} == {"Bearer abc"}
