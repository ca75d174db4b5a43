"""Analytics engine facade.

``AnalyticsEngine`` is the single entry point used by the HTTP API and the
command line. Each query reads "now" once from the engine clock and passes it
explicitly to every computation, so all values within one response share the
same reference instant. Every store call goes through ``GuardedStore``:
adapter failures surface as ``UpstreamUnavailable`` and are not retried.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Callable, List, Optional

from bedflow import beds, cleaning, forecast, length_of_stay, occupancy, trends
from bedflow.config import Settings
from bedflow.store import EventStore, GuardedStore
from bedflow.types import BedSnapshot
from bedflow.utils import Instant, ensure_utc


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AnalyticsEngine:
    """Read-only analytics over an event store.

    Parameters
    ----------
    store : EventStore
        Adapter exposing events, snapshots and cleaning records
    clock : callable, optional
        Returns the current instant; defaults to the system UTC clock
    settings : Settings, optional
        Overridable defaults (history page size, trend and cleaning windows)
    verbose : bool, default=False
        Whether to enable verbose logging.
    """

    def __init__(
        self,
        store: EventStore,
        clock: Optional[Callable[[], datetime]] = None,
        settings: Optional[Settings] = None,
        verbose: bool = False,
    ):
        self.store = GuardedStore(store)
        self.clock = clock or utc_now
        self.settings = settings or Settings()
        self.verbose = verbose

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        if verbose and not self.logger.handlers:
            self.logger.setLevel(logging.INFO)

            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(logging.INFO)
            handler.setFormatter(logging.Formatter("%(message)s"))
            self.logger.addHandler(handler)

            # Prevent propagation to root logger
            self.logger.propagate = False

    def now(self) -> datetime:
        return ensure_utc(self.clock())

    def occupancy_summary(self) -> occupancy.OccupancySummary:
        summary = occupancy.summarize_occupancy(self.store)
        self.logger.info(
            "Occupancy: %s of %s beds occupied (%s%%)",
            summary.occupied,
            summary.total_beds,
            summary.occupancy_percentage,
        )
        return summary

    def occupancy_by_ward(self) -> List[occupancy.WardOccupancy]:
        breakdown = occupancy.occupancy_by_ward(self.store)
        self.logger.info("Ward breakdown over %s wards", len(breakdown))
        return breakdown

    def bed_history(
        self, bed_id: str, limit: Optional[int] = None, skip: Optional[int] = None
    ) -> beds.BedHistory:
        return beds.read_bed_history(
            self.store,
            bed_id,
            limit=limit,
            skip=skip,
            default_limit=self.settings.history_default_limit,
        )

    def list_beds(
        self, status: Optional[str] = None, ward: Optional[str] = None
    ) -> List[BedSnapshot]:
        return beds.list_beds(self.store, status=status, ward=ward)

    def occupancy_trends(
        self,
        start_date: Optional[Instant] = None,
        end_date: Optional[Instant] = None,
        granularity: Optional[str] = "daily",
    ) -> trends.TrendReport:
        report = trends.occupancy_trends(
            self.store,
            self.now(),
            start_date=start_date,
            end_date=end_date,
            granularity=granularity,
            window_days=self.settings.trend_window_days,
        )
        self.logger.info(
            "Trends %s to %s (%s): %s buckets",
            report.start.isoformat(),
            report.end.isoformat(),
            report.granularity.value,
            len(report.trends),
        )
        return report

    def length_of_stay(self) -> length_of_stay.LengthOfStayEstimate:
        return length_of_stay.estimate_length_of_stay(self.store, self.now())

    def forecast(self) -> forecast.DischargeForecast:
        now = self.now()
        estimate = length_of_stay.estimate_length_of_stay(self.store, now)
        if estimate.used_default:
            self.logger.info(
                "No stays in the last %s days, using default length of stay of %s days",
                length_of_stay.LOOKBACK_DAYS,
                estimate.mean_days,
            )
        else:
            self.logger.info(
                "Mean length of stay %.2f days from %s stays",
                estimate.mean_days,
                estimate.samples,
            )
        return forecast.forecast_discharges(self.store, now, estimate=estimate)

    def cleaning_performance(
        self,
        ward: Optional[str] = None,
        start_date: Optional[Instant] = None,
        end_date: Optional[Instant] = None,
        period: Optional[int] = None,
        requester_role: Optional[str] = None,
        requester_ward: Optional[str] = None,
    ) -> cleaning.CleaningPerformance:
        """Cleaning performance, scoped to the requester's ward for ward managers."""
        return cleaning.cleaning_performance(
            self.store,
            self.now(),
            ward=cleaning.effective_ward(ward, requester_role, requester_ward),
            start_date=start_date,
            end_date=end_date,
            period=period,
            default_period=self.settings.cleaning_period_days,
        )
