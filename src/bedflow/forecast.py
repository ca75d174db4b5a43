"""Discharge forecasting from current occupancy and the mean length of stay.

Every occupied bed is assumed to be released ``mean_days`` after its
``last_updated`` instant (the admission proxy). The projected discharges are
counted over 24/48/72 hour windows, broken down per ward, laid out on a
72-hour timeline of twelve 6-hour buckets and fed to the insight rules.

All times are relative to a single ``now`` supplied by the caller.
"""

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

import pandas as pd

from bedflow.insights import Insight, InsightContext, WardLoad, generate_insights
from bedflow.length_of_stay import (
    LOOKBACK_DAYS,
    LengthOfStayEstimate,
    estimate_length_of_stay,
)
from bedflow.occupancy import ward_sort_key
from bedflow.store import EventStore
from bedflow.types import BedSnapshot, BedStatus
from bedflow.utils import percentage, round_half_up

FORECAST_HORIZON_HOURS = 72
TIMELINE_BUCKET_HOURS = 6
DETAIL_LIMIT = 10

CALCULATION_METHOD = "Average length of stay based on historical occupancy logs"
DISCLAIMER = (
    "Forecasting is based on historical trends and may not account for "
    "emergency admissions or unscheduled discharges"
)


@dataclass
class ExpectedDischarge:
    bed_ref: str
    bed_code: str
    ward: str
    patient_ref: Optional[str]
    patient_name: Optional[str]
    admission_time: datetime
    expected_discharge_time: datetime
    hours_until_discharge: float
    days_in_bed: float


@dataclass
class DischargeWindowCounts:
    next_24_hours: int
    next_48_hours: int
    next_72_hours: int

    @classmethod
    def from_discharges(
        cls, discharges: Sequence[ExpectedDischarge]
    ) -> "DischargeWindowCounts":
        return cls(
            next_24_hours=count_within(discharges, 24),
            next_48_hours=count_within(discharges, 48),
            next_72_hours=count_within(discharges, 72),
        )

    def plus(self, beds: int) -> "DischargeWindowCounts":
        return DischargeWindowCounts(
            next_24_hours=beds + self.next_24_hours,
            next_48_hours=beds + self.next_48_hours,
            next_72_hours=beds + self.next_72_hours,
        )


@dataclass
class WardForecast:
    ward: str
    total_beds: int
    occupied_beds: int
    available_beds: int
    occupancy_percentage: int
    expected_discharges: DischargeWindowCounts
    projected_availability: DischargeWindowCounts


@dataclass
class TimelineBed:
    bed_ref: str
    bed_code: str
    ward: str
    patient_ref: Optional[str]


@dataclass
class TimelineBucket:
    """Discharges expected in the half-open interval ``[start_time, end_time)``."""

    start_time: datetime
    end_time: datetime
    label: str
    expected_discharges: int
    beds: List[TimelineBed]


@dataclass
class CurrentMetrics:
    total_beds: int
    occupied_beds: int
    available_beds: int
    occupancy_percentage: int


@dataclass
class LengthOfStaySummary:
    days: float
    based_on_samples: int
    note: str


@dataclass
class ExpectedDischargeSummary:
    next_24_hours: int
    next_48_hours: int
    next_72_hours: int
    total: int
    details: List[ExpectedDischarge]


@dataclass
class ForecastMetadata:
    timestamp: datetime
    forecast_horizon: str
    calculation_method: str
    disclaimer: str


@dataclass
class DischargeForecast:
    current_metrics: CurrentMetrics
    average_length_of_stay: LengthOfStaySummary
    expected_discharges: ExpectedDischargeSummary
    ward_forecasts: List[WardForecast]
    timeline: List[TimelineBucket]
    insights: List[Insight]
    metadata: ForecastMetadata


def project_discharges(
    occupied: Sequence[BedSnapshot], mean_days: float, now: datetime
) -> List[ExpectedDischarge]:
    """Project a discharge instant for every occupied bed.

    Returns
    -------
    list[ExpectedDischarge]
        Sorted ascending by expected discharge time
    """
    stay = timedelta(days=mean_days)
    discharges = []
    for bed in occupied:
        admission = bed.last_updated
        expected = admission + stay
        discharges.append(
            ExpectedDischarge(
                bed_ref=bed.bed_ref,
                bed_code=bed.bed_code,
                ward=bed.ward,
                patient_ref=bed.patient_ref,
                patient_name=bed.patient_name,
                admission_time=admission,
                expected_discharge_time=expected,
                hours_until_discharge=max(0.0, (expected - now) / timedelta(hours=1)),
                days_in_bed=(now - admission) / timedelta(days=1),
            )
        )
    discharges.sort(key=lambda discharge: discharge.expected_discharge_time)
    return discharges


def count_within(discharges: Sequence[ExpectedDischarge], hours: float) -> int:
    return sum(1 for d in discharges if d.hours_until_discharge <= hours)


def build_timeline(
    discharges: Sequence[ExpectedDischarge], now: datetime
) -> List[TimelineBucket]:
    """Lay discharges out on contiguous 6-hour buckets covering ``[now, now + 72h)``.

    Discharges already due (expected before ``now``) fall in no bucket.
    """
    timeline = []
    for offset in range(0, FORECAST_HORIZON_HOURS, TIMELINE_BUCKET_HOURS):
        start = now + timedelta(hours=offset)
        end = now + timedelta(hours=offset + TIMELINE_BUCKET_HOURS)
        in_bucket = [
            d for d in discharges if start <= d.expected_discharge_time < end
        ]
        timeline.append(
            TimelineBucket(
                start_time=start,
                end_time=end,
                label=f"{offset}h - {offset + TIMELINE_BUCKET_HOURS}h",
                expected_discharges=len(in_bucket),
                beds=[
                    TimelineBed(
                        bed_ref=d.bed_ref,
                        bed_code=d.bed_code,
                        ward=d.ward,
                        patient_ref=d.patient_ref,
                    )
                    for d in in_bucket
                ],
            )
        )
    return timeline


def _ward_statistics(snapshots: Sequence[BedSnapshot]) -> pd.DataFrame:
    frame = pd.DataFrame(
        {
            "ward": [bed.ward for bed in snapshots],
            "status": [BedStatus(bed.status).value for bed in snapshots],
        }
    )
    frame["occupied"] = (frame["status"] == BedStatus.OCCUPIED.value).astype(int)
    frame["available"] = (frame["status"] == BedStatus.AVAILABLE.value).astype(int)
    return frame.groupby("ward").agg(
        total_beds=("status", "size"),
        occupied_beds=("occupied", "sum"),
        available_beds=("available", "sum"),
    )


def forecast_wards(
    snapshots: Sequence[BedSnapshot], discharges: Sequence[ExpectedDischarge]
) -> List[WardForecast]:
    """Per-ward discharge counts and projected availability, ordered by ward."""
    if not snapshots:
        return []

    by_ward: Dict[str, List[ExpectedDischarge]] = {}
    for discharge in discharges:
        by_ward.setdefault(discharge.ward, []).append(discharge)

    stats = _ward_statistics(snapshots)
    forecasts = []
    for ward in sorted(stats.index, key=ward_sort_key):
        row = stats.loc[ward]
        total = int(row["total_beds"])
        occupied = int(row["occupied_beds"])
        available = int(row["available_beds"])
        expected = DischargeWindowCounts.from_discharges(by_ward.get(ward, []))
        forecasts.append(
            WardForecast(
                ward=ward,
                total_beds=total,
                occupied_beds=occupied,
                available_beds=available,
                occupancy_percentage=percentage(occupied, total),
                expected_discharges=expected,
                projected_availability=expected.plus(available),
            )
        )
    return forecasts


def _rounded_detail(discharge: ExpectedDischarge) -> ExpectedDischarge:
    return dataclasses.replace(
        discharge,
        hours_until_discharge=round_half_up(discharge.hours_until_discharge, 1),
        days_in_bed=round_half_up(discharge.days_in_bed, 1),
    )


def forecast_discharges(
    store: EventStore,
    now: datetime,
    estimate: Optional[LengthOfStayEstimate] = None,
) -> DischargeForecast:
    """Project discharges over the next 72 hours.

    Parameters
    ----------
    store : EventStore
        Source of the bed snapshots and occupancy log
    now : datetime
        Request instant, used for the LOS window, the horizon and the timeline
    estimate : LengthOfStayEstimate, optional
        Precomputed estimate for the same ``now``; computed when omitted

    Returns
    -------
    DischargeForecast
    """
    if estimate is None:
        estimate = estimate_length_of_stay(store, now)

    snapshots = store.list_snapshots()
    occupied = [bed for bed in snapshots if bed.status == BedStatus.OCCUPIED]
    discharges = project_discharges(occupied, estimate.mean_days, now)

    total_beds = len(snapshots)
    occupied_beds = len(occupied)
    counts = DischargeWindowCounts.from_discharges(discharges)
    ward_forecasts = forecast_wards(snapshots, discharges)

    insights = generate_insights(
        InsightContext(
            total_beds=total_beds,
            occupied_beds=occupied_beds,
            discharges_next_24_hours=counts.next_24_hours,
            wards=[
                WardLoad(ward=w.ward, occupancy_percentage=w.occupancy_percentage)
                for w in ward_forecasts
            ],
        )
    )

    return DischargeForecast(
        current_metrics=CurrentMetrics(
            total_beds=total_beds,
            occupied_beds=occupied_beds,
            available_beds=total_beds - occupied_beds,
            occupancy_percentage=percentage(occupied_beds, total_beds),
        ),
        average_length_of_stay=LengthOfStaySummary(
            days=round_half_up(estimate.mean_days, 1),
            based_on_samples=estimate.samples,
            note=(
                f"Calculated from {estimate.samples} patient stays "
                f"in last {LOOKBACK_DAYS} days"
            ),
        ),
        expected_discharges=ExpectedDischargeSummary(
            next_24_hours=counts.next_24_hours,
            next_48_hours=counts.next_48_hours,
            next_72_hours=counts.next_72_hours,
            total=len(discharges),
            details=[_rounded_detail(d) for d in discharges[:DETAIL_LIMIT]],
        ),
        ward_forecasts=ward_forecasts,
        timeline=build_timeline(discharges, now),
        insights=insights,
        metadata=ForecastMetadata(
            timestamp=now,
            forecast_horizon=f"{FORECAST_HORIZON_HOURS} hours",
            calculation_method=CALCULATION_METHOD,
            disclaimer=DISCLAIMER,
        ),
    )
