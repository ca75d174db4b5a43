import json
import unittest
from datetime import datetime, timedelta, timezone

import pytest

from bedflow.config import Settings
from bedflow.engine import AnalyticsEngine
from bedflow.errors import InvalidArgument, NotFound, UpstreamUnavailable
from bedflow.store import InMemoryEventStore
from bedflow.types import (
    Actor,
    BedSnapshot,
    BedStatus,
    ChangeType,
    CleaningRecord,
    CleaningStatus,
    StatusChangeEvent,
)
from bedflow.utils import to_payload

NOW = datetime(2025, 11, 5, 12, 0, tzinfo=timezone.utc)


def icu_store():
    """Ten ICU beds: 8 occupied, 1 available, 1 under maintenance.

    Occupied beds were admitted 10 hours ago and the last 30 days hold one
    completed 48 hour stay, giving a 2 day mean length of stay.
    """
    beds = [
        BedSnapshot(
            f"icu-{i}",
            f"ICU-{i:02d}",
            "ICU",
            BedStatus.OCCUPIED,
            NOW - timedelta(hours=10),
            patient_ref=f"p{i}",
        )
        for i in range(8)
    ]
    beds.append(BedSnapshot("icu-8", "ICU-08", "ICU", BedStatus.AVAILABLE, NOW))
    beds.append(BedSnapshot("icu-9", "ICU-09", "ICU", BedStatus.MAINTENANCE, NOW))
    events = [
        StatusChangeEvent("icu-8", "n1", ChangeType.ASSIGNED, NOW - timedelta(days=4), "e1"),
        StatusChangeEvent("icu-8", "n1", ChangeType.RELEASED, NOW - timedelta(days=2), "e2"),
    ]
    cleanings = [
        CleaningRecord(
            "icu-8",
            "ICU",
            NOW - timedelta(days=2),
            30,
            CleaningStatus.COMPLETED,
            actual_duration_minutes=35,
            completed_by_ref="c1",
        )
    ]
    actors = [
        Actor("n1", name="Ana Silva", role="ward_staff"),
        Actor("c1", name="Ravi Patel", role="cleaner"),
    ]
    return InMemoryEventStore(beds=beds, events=events, cleanings=cleanings, actors=actors)


class CountingClock:
    def __init__(self, instant):
        self.instant = instant
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.instant


class FailingStore(InMemoryEventStore):
    def count_snapshots(self, status=None, ward=None):
        raise ConnectionError("database unreachable")

    def list_snapshots(self, status=None, ward=None):
        raise ConnectionError("database unreachable")


class TestAnalyticsEngine(unittest.TestCase):
    def setUp(self):
        self.clock = CountingClock(NOW)
        self.engine = AnalyticsEngine(icu_store(), clock=self.clock)

    def test_occupancy_summary(self):
        summary = self.engine.occupancy_summary()

        self.assertEqual(summary.total_beds, 10)
        self.assertEqual(summary.occupied, 8)
        self.assertEqual(summary.available, 1)
        self.assertEqual(summary.maintenance, 1)
        self.assertEqual(summary.occupancy_percentage, 80)

    def test_forecast_end_to_end(self):
        forecast = self.engine.forecast()

        self.assertEqual(forecast.average_length_of_stay.days, 2.0)
        self.assertEqual(forecast.expected_discharges.next_24_hours, 0)
        self.assertEqual(forecast.expected_discharges.next_48_hours, 8)
        self.assertEqual(forecast.expected_discharges.next_72_hours, 8)

        [icu] = forecast.ward_forecasts
        self.assertEqual(icu.projected_availability.next_24_hours, 1)
        self.assertEqual(icu.projected_availability.next_48_hours, 9)

        # 38 hours out lands in the 36h - 42h bucket
        self.assertEqual(forecast.timeline[6].expected_discharges, 8)
        self.assertEqual(forecast.timeline[6].label, "36h - 42h")
        self.assertEqual(forecast.current_metrics.available_beds, 2)
        self.assertEqual(forecast.insights, [])

    def test_forecast_reads_the_clock_once(self):
        forecast = self.engine.forecast()

        self.assertEqual(self.clock.calls, 1)
        self.assertEqual(forecast.metadata.timestamp, NOW)
        self.assertEqual(forecast.timeline[0].start_time, NOW)

    def test_naive_clock_is_taken_as_utc(self):
        engine = AnalyticsEngine(icu_store(), clock=lambda: datetime(2025, 11, 5, 12, 0))
        self.assertEqual(engine.now(), NOW)

    def test_payloads_serialise_to_json(self):
        for result in (
            self.engine.occupancy_summary(),
            self.engine.occupancy_by_ward(),
            self.engine.bed_history("ICU-08"),
            self.engine.occupancy_trends(),
            self.engine.length_of_stay(),
            self.engine.forecast(),
            self.engine.cleaning_performance(),
            self.engine.list_beds(status="occupied"),
        ):
            json.dumps(to_payload(result))

    def test_bed_history_by_code(self):
        history = self.engine.bed_history("ICU-08")
        self.assertEqual(history.bed.bed_ref, "icu-8")
        self.assertEqual([e.event_id for e in history.history], ["e2", "e1"])
        self.assertEqual(history.history[0].actor_name, "Ana Silva")

    def test_not_found_passes_through(self):
        with pytest.raises(NotFound):
            self.engine.bed_history("ICU-99")

    def test_invalid_argument_passes_through(self):
        with pytest.raises(InvalidArgument):
            self.engine.list_beds(status="broken")

    def test_store_failure_is_upstream_unavailable(self):
        engine = AnalyticsEngine(FailingStore(), clock=self.clock)
        with pytest.raises(UpstreamUnavailable, match="count_snapshots"):
            engine.occupancy_summary()
        with pytest.raises(UpstreamUnavailable):
            engine.forecast()

    def test_manager_sees_own_ward(self):
        result = self.engine.cleaning_performance(
            ward="General", requester_role="manager", requester_ward="ICU"
        )
        self.assertEqual(result.ward, "ICU")
        self.assertEqual(result.summary.total_completed, 1)
        self.assertEqual(result.fastest_cleaning.completed_by, "Ravi Patel")

    def test_settings_defaults(self):
        engine = AnalyticsEngine(
            icu_store(),
            clock=self.clock,
            settings=Settings(trend_window_days=1, cleaning_period_days=1),
        )
        self.assertEqual(engine.occupancy_trends().start, NOW - timedelta(days=1))
        self.assertEqual(engine.cleaning_performance().summary.total_cleanings, 0)


if __name__ == "__main__":
    unittest.main()
