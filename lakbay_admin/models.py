from datetime import date, datetime, timezone
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict

TimeRange = Literal["24h", "7d", "30d", "all"]
Interval = Literal["1h", "6h", "12h", "24h"]


def _as_utc(ts: datetime) -> datetime:
    # Naive upstream timestamps are UTC
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class MetricEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: UtcDatetime
    value: int | float = 0


class ActivityRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: UtcDatetime
    user_id: int
    username: str
    count: int = 0


class LeaderboardEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    points: int | float = 0
    percentage: int | float = 0
    verified_terminals: int = 0
    verified_routes: int = 0


class ChartPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    value: int | float
    sort_instant: datetime


class DayGroup(BaseModel):
    day: date
    header: str
    rows: list[ActivityRow]


class ActivityLog(BaseModel):
    groups: list[DayGroup] = []
    distinct_users: int = 0
    total_events: int = 0

    def flat_rows(self) -> list[ActivityRow]:
        return [row for group in self.groups for row in group.rows]


class ArcSlice(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry_index: int
    start_offset_percent: int | float
    sweep_percent: int | float

    @property
    def end_percent(self) -> int | float:
        return self.start_offset_percent + self.sweep_percent

    def arc_length(self, circumference: float) -> float:
        return self.sweep_percent / 100 * circumference

    def arc_offset(self, circumference: float) -> float:
        """Dash offset for an SVG stroke drawn clockwise from the zero reference."""
        return -(self.start_offset_percent / 100 * circumference)


class Snapshot(BaseModel):
    """Settled result of one upstream fetch: the four source collections."""

    logins: list[MetricEvent] = []
    unique_users: list[MetricEvent] = []
    activity: list[ActivityRow] = []
    leaderboard: list[LeaderboardEntry] = []
    fetched_at: datetime | None = None
