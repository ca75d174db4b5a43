"""Cleaning performance: completion and overdue rates with ward, staff and daily rollups.

A completed cleaning is overdue when its actual duration exceeds its
estimate. Rates are whole-number percentages of completed cleanings and are
0 when nothing has been completed. The average estimated duration is taken
over every retrieved record, the average actual duration over completed ones
only.
"""

import warnings
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

import numpy as np

from bedflow.errors import InvalidArgument
from bedflow.occupancy import ward_sort_key
from bedflow.store import EventStore
from bedflow.types import CleaningRecord
from bedflow.utils import (
    Instant,
    ensure_utc,
    parse_instant,
    percentage,
    round_half_up,
)

DEFAULT_PERIOD_DAYS = 7
RECENT_LIMIT = 10
MANAGER_ROLE = "manager"


@dataclass
class CleaningSummary:
    total_cleanings: int
    total_completed: int
    total_overdue: int
    total_in_progress: int
    overdue_rate: int
    on_time_rate: int
    avg_actual_duration: int
    avg_estimated_duration: int


@dataclass
class CleaningHighlight:
    bed_ref: str
    ward: str
    duration: float
    completed_by: str


@dataclass
class WardCleaningStats:
    ward: str
    total: int = 0
    completed: int = 0
    overdue: int = 0
    in_progress: int = 0
    avg_duration: int = 0


@dataclass
class StaffCleaningStats:
    staff_ref: str
    name: str
    email: Optional[str] = None
    total_completed: int = 0
    overdue: int = 0
    avg_duration: int = 0


@dataclass
class DailyCleaningStats:
    date: str
    total: int = 0
    completed: int = 0
    overdue: int = 0
    in_progress: int = 0


@dataclass
class CleaningAnalysis:
    """Aggregates over one set of cleaning records."""

    summary: CleaningSummary
    fastest_cleaning: Optional[CleaningHighlight]
    slowest_cleaning: Optional[CleaningHighlight]
    by_ward: List[WardCleaningStats]
    staff_performance: List[StaffCleaningStats]
    daily_breakdown: List[DailyCleaningStats]
    recent_cleanings: List[CleaningRecord]


@dataclass
class CleaningPerformance:
    window_start: datetime
    window_end: Optional[datetime]
    ward: Optional[str]
    summary: CleaningSummary
    fastest_cleaning: Optional[CleaningHighlight]
    slowest_cleaning: Optional[CleaningHighlight]
    by_ward: List[WardCleaningStats]
    staff_performance: List[StaffCleaningStats]
    daily_breakdown: List[DailyCleaningStats]
    recent_cleanings: List[CleaningRecord]


def effective_ward(
    requested: Optional[str],
    role: Optional[str] = None,
    manager_ward: Optional[str] = None,
) -> Optional[str]:
    """Ward filter to apply: a ward manager only ever sees their own ward."""
    if role == MANAGER_ROLE and manager_ward:
        return manager_ward
    return requested or None


def resolve_cleaning_window(
    now: datetime,
    start_date: Optional[Instant] = None,
    end_date: Optional[Instant] = None,
    period: Optional[int] = None,
    default_period: int = DEFAULT_PERIOD_DAYS,
):
    """Explicit ``[start_date, end_date]`` when both are given, else the last ``period`` days."""
    if start_date is not None and end_date is not None:
        start = parse_instant(start_date, "startDate")
        end = parse_instant(end_date, "endDate")
        if start > end:
            raise InvalidArgument("Start date cannot be after end date")
        return start, end
    if period is not None and period < 0:
        raise InvalidArgument(f"period must be a positive number of days, got {period}")
    days = period or default_period
    return now - timedelta(days=days), None


def _duration_stats(records: Sequence[CleaningRecord]) -> int:
    durations = [r.actual_duration_minutes for r in records]
    if not durations:
        return 0
    return round_half_up(float(np.mean(durations)))


def _highlight(record: Optional[CleaningRecord], store: EventStore):
    if record is None:
        return None
    completed_by = "Unknown"
    if record.completed_by_ref:
        actor = store.get_actor(record.completed_by_ref)
        if actor is not None and actor.name:
            completed_by = actor.name
    return CleaningHighlight(
        bed_ref=record.bed_ref,
        ward=record.ward,
        duration=record.actual_duration_minutes,
        completed_by=completed_by,
    )


def analyze_cleanings(
    records: Sequence[CleaningRecord], store: EventStore
) -> CleaningAnalysis:
    """Compute every aggregate over ``records``.

    ``records`` must already be in retrieval order (newest ``start_time``
    first); ties in fastest/slowest are resolved by that order.
    """
    completed = [r for r in records if r.is_completed]
    measurable = [r for r in completed if r.actual_duration_minutes is not None]
    if len(measurable) < len(completed):
        warnings.warn(
            f"{len(completed) - len(measurable)} completed cleaning records have "
            "no actual duration and are left out of duration statistics",
            stacklevel=2,
        )
    overdue = [r for r in completed if r.is_overdue]
    in_progress = [r for r in records if r.is_in_progress]

    total_completed = len(completed)
    total_overdue = len(overdue)
    overdue_rate = percentage(total_overdue, total_completed)
    summary = CleaningSummary(
        total_cleanings=len(records),
        total_completed=total_completed,
        total_overdue=total_overdue,
        total_in_progress=len(in_progress),
        overdue_rate=overdue_rate,
        # complement of the rounded overdue rate so the two always sum to 100
        on_time_rate=100 - overdue_rate if total_completed else 0,
        avg_actual_duration=_duration_stats(measurable),
        avg_estimated_duration=(
            round_half_up(
                float(np.mean([r.estimated_duration_minutes for r in records]))
            )
            if records
            else 0
        ),
    )

    by_duration = sorted(measurable, key=lambda r: r.actual_duration_minutes)
    fastest = by_duration[0] if by_duration else None
    slowest = by_duration[-1] if by_duration else None

    wards: Dict[str, WardCleaningStats] = {}
    ward_durations: Dict[str, List[CleaningRecord]] = {}
    days: Dict[str, DailyCleaningStats] = {}
    for record in records:
        ward = wards.setdefault(record.ward, WardCleaningStats(ward=record.ward))
        day_key = ensure_utc(record.start_time).date().isoformat()
        day = days.setdefault(day_key, DailyCleaningStats(date=day_key))
        for stats in (ward, day):
            stats.total += 1
            if record.is_completed:
                stats.completed += 1
                if record.is_overdue:
                    stats.overdue += 1
            elif record.is_in_progress:
                stats.in_progress += 1
        if record.is_completed and record.actual_duration_minutes is not None:
            ward_durations.setdefault(record.ward, []).append(record)
    for name, stats in wards.items():
        stats.avg_duration = _duration_stats(ward_durations.get(name, []))

    staff: Dict[str, StaffCleaningStats] = {}
    staff_durations: Dict[str, List[CleaningRecord]] = {}
    for record in completed:
        staff_ref = record.completed_by_ref
        if not staff_ref:
            continue
        if staff_ref not in staff:
            actor = store.get_actor(staff_ref)
            staff[staff_ref] = StaffCleaningStats(
                staff_ref=staff_ref,
                name=actor.display_name if actor else staff_ref,
                email=actor.email if actor else None,
            )
        staff[staff_ref].total_completed += 1
        if record.is_overdue:
            staff[staff_ref].overdue += 1
        if record.actual_duration_minutes is not None:
            staff_durations.setdefault(staff_ref, []).append(record)
    for staff_ref, stats in staff.items():
        stats.avg_duration = _duration_stats(staff_durations.get(staff_ref, []))

    return CleaningAnalysis(
        summary=summary,
        fastest_cleaning=_highlight(fastest, store),
        slowest_cleaning=_highlight(slowest, store),
        by_ward=sorted(wards.values(), key=lambda s: ward_sort_key(s.ward)),
        staff_performance=sorted(
            staff.values(), key=lambda s: s.total_completed, reverse=True
        ),
        daily_breakdown=[days[key] for key in sorted(days)],
        recent_cleanings=list(records[:RECENT_LIMIT]),
    )


def cleaning_performance(
    store: EventStore,
    now: datetime,
    ward: Optional[str] = None,
    start_date: Optional[Instant] = None,
    end_date: Optional[Instant] = None,
    period: Optional[int] = None,
    default_period: int = DEFAULT_PERIOD_DAYS,
) -> CleaningPerformance:
    """Cleaning performance for ``ward`` (or every ward) over the resolved window.

    Parameters
    ----------
    store : EventStore
        Source of cleaning records and staff display fields
    now : datetime
        Request instant, anchors the ``period`` window
    ward : str, optional
        Effective ward filter, already scoped by the caller
    start_date, end_date : str or datetime, optional
        Explicit window; only used when both are given
    period : int, optional
        Number of days back from ``now`` (default 7)
    """
    start, end = resolve_cleaning_window(
        now, start_date, end_date, period, default_period
    )
    records = sorted(
        store.list_cleaning_records(ward=ward, start=start, end=end),
        key=lambda r: r.start_time,
        reverse=True,
    )
    analysis = analyze_cleanings(records, store)
    return CleaningPerformance(
        window_start=start,
        window_end=end,
        ward=ward,
        summary=analysis.summary,
        fastest_cleaning=analysis.fastest_cleaning,
        slowest_cleaning=analysis.slowest_cleaning,
        by_ward=analysis.by_ward,
        staff_performance=analysis.staff_performance,
        daily_breakdown=analysis.daily_breakdown,
        recent_cleanings=analysis.recent_cleanings,
    )
