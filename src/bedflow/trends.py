"""Occupancy trends: status changes grouped into hourly, daily or weekly buckets.

Bucket keys
-----------
- hourly: ``YYYY-MM-DD HH:00``
- daily: ``YYYY-MM-DD``
- weekly: ``YYYY-Www`` using ISO-8601 week numbering (weeks start on
  Monday, the year is the ISO year so 2024-12-30 falls in ``2025-W01``)

All keys are computed in UTC.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Union

import pandas as pd

from bedflow.errors import InvalidArgument
from bedflow.store import EventStore
from bedflow.types import ChangeType, Granularity, StatusChangeEvent
from bedflow.utils import Instant, parse_instant

DEFAULT_TREND_WINDOW_DAYS = 30

TREND_CHANGE_TYPES = (
    ChangeType.ASSIGNED,
    ChangeType.RELEASED,
    ChangeType.MAINTENANCE_START,
    ChangeType.MAINTENANCE_END,
)

_STRFTIME_FORMATS = {
    Granularity.HOURLY: "%Y-%m-%d %H:00",
    Granularity.DAILY: "%Y-%m-%d",
}


@dataclass
class TrendBucket:
    key: str
    count: int
    assigned_count: int
    released_count: int


@dataclass
class TrendReport:
    start: datetime
    end: datetime
    granularity: Granularity
    total_beds: int
    trends: List[TrendBucket]


def parse_granularity(value: Union[str, Granularity, None]) -> Granularity:
    if value is None:
        return Granularity.DAILY
    try:
        return Granularity(value)
    except ValueError as exc:
        raise InvalidArgument(
            f"Invalid granularity. Must be one of: {', '.join(Granularity.values())}"
        ) from exc


def resolve_window(
    now: datetime,
    start_date: Optional[Instant] = None,
    end_date: Optional[Instant] = None,
    window_days: int = DEFAULT_TREND_WINDOW_DAYS,
):
    """Resolve the trend window, defaulting to the ``window_days`` ending at ``now``."""
    start = (
        parse_instant(start_date, "startDate")
        if start_date is not None
        else now - timedelta(days=window_days)
    )
    end = parse_instant(end_date, "endDate") if end_date is not None else now
    if start > end:
        raise InvalidArgument("Start date cannot be after end date")
    return start, end


def bucket_keys(timestamps: pd.Series, granularity: Granularity) -> pd.Series:
    """Map UTC timestamps to bucket keys for ``granularity``."""
    if granularity is Granularity.WEEKLY:
        iso = timestamps.dt.isocalendar()
        return iso["year"].astype(str) + "-W" + iso["week"].astype(str).str.zfill(2)
    return timestamps.dt.strftime(_STRFTIME_FORMATS[granularity])


def bucketize_events(
    events: Sequence[StatusChangeEvent], granularity: Granularity
) -> List[TrendBucket]:
    """Count events per bucket, ascending by bucket key.

    Parameters
    ----------
    events : sequence of StatusChangeEvent
        Events already restricted to the window and change types of interest
    granularity : Granularity
        Bucket width

    Returns
    -------
    list[TrendBucket]
        One bucket per key that has at least one event
    """
    if not events:
        return []

    frame = pd.DataFrame(
        {
            "timestamp": pd.to_datetime(
                [event.timestamp for event in events], utc=True
            ),
            "change_type": [ChangeType(event.change_type).value for event in events],
        }
    )
    frame["bucket"] = bucket_keys(frame["timestamp"], granularity).to_numpy()
    frame["assigned"] = (frame["change_type"] == ChangeType.ASSIGNED.value).astype(int)
    frame["released"] = (frame["change_type"] == ChangeType.RELEASED.value).astype(int)

    grouped = frame.groupby("bucket", sort=True).agg(
        events=("change_type", "size"),
        assigned_count=("assigned", "sum"),
        released_count=("released", "sum"),
    )

    return [
        TrendBucket(
            key=str(key),
            count=int(events_in_bucket),
            assigned_count=int(assigned),
            released_count=int(released),
        )
        for key, events_in_bucket, assigned, released in zip(
            grouped.index,
            grouped["events"],
            grouped["assigned_count"],
            grouped["released_count"],
        )
    ]


def occupancy_trends(
    store: EventStore,
    now: datetime,
    start_date: Optional[Instant] = None,
    end_date: Optional[Instant] = None,
    granularity: Union[str, Granularity, None] = Granularity.DAILY,
    window_days: int = DEFAULT_TREND_WINDOW_DAYS,
) -> TrendReport:
    """Build the occupancy trend series for ``[start, end]``.

    Raises
    ------
    InvalidArgument
        If a date does not parse, the start is after the end or the
        granularity is unknown
    """
    start, end = resolve_window(now, start_date, end_date, window_days)
    granularity = parse_granularity(granularity)

    events = store.list_events(change_types=TREND_CHANGE_TYPES, start=start, end=end)
    return TrendReport(
        start=start,
        end=end,
        granularity=granularity,
        total_beds=store.count_snapshots(),
        trends=bucketize_events(events, granularity),
    )
