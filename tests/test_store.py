import json
import pickle
import unittest
from datetime import datetime, timedelta, timezone

import pytest
import yaml

from bedflow.errors import NotFound, UpstreamUnavailable
from bedflow.store import EventStore, GuardedStore, InMemoryEventStore, load_store
from bedflow.types import (
    Actor,
    BedSnapshot,
    BedStatus,
    ChangeType,
    CleaningRecord,
    CleaningStatus,
    StatusChangeEvent,
)

NOW = datetime(2025, 11, 5, 12, 0, tzinfo=timezone.utc)

PAYLOAD = {
    "beds": [
        {
            "bed_ref": "b1",
            "bed_code": "ICU-01",
            "ward": "ICU",
            "status": "occupied",
            "last_updated": "2025-11-05T02:00:00Z",
            "patient_ref": "p1",
        },
        {
            "bed_ref": "b2",
            "ward": "General",
            "status": "available",
            "last_updated": "2025-11-04T00:00:00",
        },
    ],
    "events": [
        {
            "bed_ref": "b1",
            "actor_ref": "u1",
            "change_type": "assigned",
            "timestamp": "2025-11-05T02:00:00+00:00",
        }
    ],
    "cleanings": [
        {
            "bed_ref": "b2",
            "ward": "General",
            "start_time": "2025-11-04T00:00:00Z",
            "estimated_duration_minutes": 30,
            "status": "completed",
            "actual_duration_minutes": 28,
            "completed_by_ref": "c1",
        }
    ],
    "actors": [{"actor_ref": "u1", "name": "Ana Silva", "role": "ward_staff"}],
}


class TestInMemoryEventStore(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryEventStore.from_dict(PAYLOAD)

    def test_from_dict(self):
        self.assertEqual(len(self.store.beds), 2)
        self.assertEqual(self.store.beds[0].status, BedStatus.OCCUPIED)
        self.assertEqual(self.store.beds[0].last_updated, datetime(2025, 11, 5, 2, tzinfo=timezone.utc))
        # bed code defaults to the reference
        self.assertEqual(self.store.beds[1].bed_code, "b2")
        self.assertEqual(self.store.beds[1].last_updated.tzinfo, timezone.utc)
        self.assertEqual(self.store.events[0].change_type, ChangeType.ASSIGNED)
        self.assertTrue(self.store.cleanings[0].is_completed)
        self.assertEqual(self.store.get_actor("u1").name, "Ana Silva")
        self.assertIsNone(self.store.get_actor("nobody"))

    def test_to_dict_round_trip(self):
        again = InMemoryEventStore.from_dict(json.loads(json.dumps(self.store.to_dict())))

        self.assertEqual(again.beds, self.store.beds)
        self.assertEqual(again.events, self.store.events)
        self.assertEqual(again.cleanings, self.store.cleanings)

    def test_list_events_filters(self):
        store = InMemoryEventStore(
            events=[
                StatusChangeEvent("b1", "u1", ChangeType.ASSIGNED, NOW - timedelta(days=2)),
                StatusChangeEvent("b1", "u1", ChangeType.RELEASED, NOW - timedelta(days=1)),
                StatusChangeEvent("b2", "u1", ChangeType.ASSIGNED, NOW),
            ]
        )

        self.assertEqual(len(store.list_events(bed_ref="b1")), 2)
        self.assertEqual(len(store.list_events(change_types=["assigned"])), 2)
        # bounds are inclusive
        self.assertEqual(
            len(store.list_events(start=NOW - timedelta(days=1), end=NOW)), 2
        )

    def test_snapshots(self):
        self.assertEqual(self.store.count_snapshots(), 2)
        self.assertEqual(self.store.count_snapshots(status="occupied"), 1)
        self.assertEqual(self.store.count_snapshots(ward="ICU"), 1)
        self.assertEqual(self.store.distinct_wards(), {"ICU", "General"})

    def test_resolve_bed(self):
        self.assertEqual(self.store.resolve_bed("b1").bed_code, "ICU-01")
        self.assertEqual(self.store.resolve_bed("ICU-01").bed_ref, "b1")
        with pytest.raises(NotFound):
            self.store.resolve_bed("ICU-02")

    def test_cleaning_records(self):
        self.assertEqual(len(self.store.list_cleaning_records(ward="General")), 1)
        self.assertEqual(len(self.store.list_cleaning_records(ward="ICU")), 0)
        self.assertEqual(len(self.store.list_cleaning_records(start=NOW)), 0)

    def test_interface_is_abstract(self):
        with pytest.raises(NotImplementedError):
            EventStore().list_events()


class TestGuardedStore(unittest.TestCase):
    def test_wraps_adapter_errors(self):
        class Broken(InMemoryEventStore):
            def list_events(self, bed_ref=None, change_types=None, start=None, end=None):
                raise TimeoutError("query timed out")

        guarded = GuardedStore(Broken())
        with pytest.raises(UpstreamUnavailable) as excinfo:
            guarded.list_events()
        self.assertIsInstance(excinfo.value.__cause__, TimeoutError)

    def test_engine_errors_pass_through(self):
        guarded = GuardedStore(InMemoryEventStore())
        with pytest.raises(NotFound):
            guarded.resolve_bed("missing")
        self.assertEqual(guarded.beds, [])


class TestLoadStore:
    def test_json(self, tmp_path):
        path = tmp_path / "beds.json"
        path.write_text(json.dumps(PAYLOAD))
        store = load_store(path)
        assert len(store.beds) == 2

    def test_yaml(self, tmp_path):
        path = tmp_path / "beds.yaml"
        path.write_text(yaml.safe_dump(PAYLOAD))
        store = load_store(str(path))
        assert store.resolve_bed("ICU-01").ward == "ICU"

    def test_pickle(self, tmp_path):
        original = InMemoryEventStore(
            beds=[BedSnapshot("b1", "B1", "ICU", BedStatus.AVAILABLE, NOW)],
            cleanings=[
                CleaningRecord("b1", "ICU", NOW, 20, CleaningStatus.IN_PROGRESS)
            ],
            actors=[Actor("c1", name="Ravi Patel")],
        )
        path = tmp_path / "beds.pkl"
        with path.open("wb") as f:
            pickle.dump(original, f)

        store = load_store(path)
        assert store.beds == original.beds
        assert store.get_actor("c1").name == "Ravi Patel"

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "beds.csv"
        path.write_text("")
        with pytest.raises(ValueError, match="Unsupported store file type"):
            load_store(path)
