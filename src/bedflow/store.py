"""Event store adapter used by the analytics engine.

``EventStore`` is the boundary to the bed-lifecycle subsystem: it exposes the
occupancy log, the current bed snapshots and the cleaning records. The engine
only ever reads through it. ``InMemoryEventStore`` is a complete
implementation backed by Python lists, used by the API, the CLI and the tests.
"""

import functools
import json
import logging
import pickle
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Union

import yaml

from bedflow.errors import BedflowError, NotFound, UpstreamUnavailable
from bedflow.types import (
    Actor,
    BedSnapshot,
    BedStatus,
    ChangeType,
    CleaningRecord,
    CleaningStatus,
    StatusChangeEvent,
)
from bedflow.utils import parse_instant, parse_optional_instant, to_payload

LOGGER = logging.getLogger(__name__)


class EventStore:
    """Interface for reading events, snapshots and cleaning records.

    Implementations may return events in any order; callers sort them.
    """

    def list_events(
        self,
        bed_ref: Optional[str] = None,
        change_types: Optional[Iterable[ChangeType]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[StatusChangeEvent]:
        """Return events matching every given filter.

        Parameters
        ----------
        bed_ref : str, optional
            Restrict to a single bed
        change_types : iterable of ChangeType, optional
            Restrict to these change types
        start, end : datetime, optional
            Inclusive bounds on the event timestamp

        Returns
        -------
        list[StatusChangeEvent]
        """
        raise NotImplementedError

    def count_snapshots(
        self, status: Optional[BedStatus] = None, ward: Optional[str] = None
    ) -> int:
        raise NotImplementedError

    def list_snapshots(
        self, status: Optional[BedStatus] = None, ward: Optional[str] = None
    ) -> List[BedSnapshot]:
        raise NotImplementedError

    def distinct_wards(self) -> Set[str]:
        raise NotImplementedError

    def resolve_bed(self, id_or_code: str) -> BedSnapshot:
        """Resolve a bed by primary key, falling back to its human code.

        Raises
        ------
        NotFound
            If neither form resolves
        """
        raise NotImplementedError

    def list_cleaning_records(
        self,
        ward: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[CleaningRecord]:
        raise NotImplementedError

    def get_actor(self, actor_ref: str) -> Optional[Actor]:
        raise NotImplementedError


def _in_range(
    timestamp: datetime, start: Optional[datetime], end: Optional[datetime]
) -> bool:
    if start is not None and timestamp < start:
        return False
    if end is not None and timestamp > end:
        return False
    return True


class InMemoryEventStore(EventStore):
    """Event store holding every record in memory.

    Parameters
    ----------
    beds : iterable of BedSnapshot, optional
    events : iterable of StatusChangeEvent, optional
    cleanings : iterable of CleaningRecord, optional
    actors : iterable of Actor, optional
    """

    def __init__(
        self,
        beds: Optional[Iterable[BedSnapshot]] = None,
        events: Optional[Iterable[StatusChangeEvent]] = None,
        cleanings: Optional[Iterable[CleaningRecord]] = None,
        actors: Optional[Iterable[Actor]] = None,
    ):
        self.beds: List[BedSnapshot] = list(beds or [])
        self.events: List[StatusChangeEvent] = list(events or [])
        self.cleanings: List[CleaningRecord] = list(cleanings or [])
        self.actors: Dict[str, Actor] = {
            actor.actor_ref: actor for actor in actors or []
        }

    def list_events(self, bed_ref=None, change_types=None, start=None, end=None):
        wanted = None
        if change_types is not None:
            wanted = {ChangeType(change_type) for change_type in change_types}
        return [
            event
            for event in self.events
            if (bed_ref is None or event.bed_ref == bed_ref)
            and (wanted is None or ChangeType(event.change_type) in wanted)
            and _in_range(event.timestamp, start, end)
        ]

    def count_snapshots(self, status=None, ward=None):
        return len(self.list_snapshots(status=status, ward=ward))

    def list_snapshots(self, status=None, ward=None):
        if status is not None:
            status = BedStatus(status)
        return [
            bed
            for bed in self.beds
            if (status is None or bed.status == status)
            and (ward is None or bed.ward == ward)
        ]

    def distinct_wards(self):
        return {bed.ward for bed in self.beds}

    def resolve_bed(self, id_or_code):
        for bed in self.beds:
            if bed.bed_ref == id_or_code:
                return bed
        for bed in self.beds:
            if bed.bed_code == id_or_code:
                return bed
        raise NotFound(f"Bed not found: {id_or_code}")

    def list_cleaning_records(self, ward=None, start=None, end=None):
        return [
            record
            for record in self.cleanings
            if (ward is None or record.ward == ward)
            and _in_range(record.start_time, start, end)
        ]

    def get_actor(self, actor_ref):
        return self.actors.get(actor_ref)

    # ---- Serialisation ----
    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "beds": to_payload(self.beds),
            "events": to_payload(self.events),
            "cleanings": to_payload(self.cleanings),
            "actors": to_payload(list(self.actors.values())),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "InMemoryEventStore":
        """Build a store from plain records, e.g. a parsed JSON document."""
        beds = [
            BedSnapshot(
                bed_ref=str(item["bed_ref"]),
                bed_code=str(item.get("bed_code", item["bed_ref"])),
                ward=item["ward"],
                status=BedStatus(item["status"]),
                last_updated=parse_instant(item["last_updated"], "last_updated"),
                patient_ref=item.get("patient_ref"),
                patient_name=item.get("patient_name"),
            )
            for item in payload.get("beds", [])
        ]
        events = [
            StatusChangeEvent(
                bed_ref=str(item["bed_ref"]),
                actor_ref=str(item["actor_ref"]),
                change_type=ChangeType(item["change_type"]),
                timestamp=parse_instant(item["timestamp"], "timestamp"),
                event_id=item.get("event_id"),
            )
            for item in payload.get("events", [])
        ]
        cleanings = [
            CleaningRecord(
                bed_ref=str(item["bed_ref"]),
                ward=item["ward"],
                start_time=parse_instant(item["start_time"], "start_time"),
                estimated_duration_minutes=item["estimated_duration_minutes"],
                status=CleaningStatus(item["status"]),
                end_time=parse_optional_instant(item.get("end_time"), "end_time"),
                actual_duration_minutes=item.get("actual_duration_minutes"),
                assigned_to_ref=item.get("assigned_to_ref"),
                completed_by_ref=item.get("completed_by_ref"),
                record_id=item.get("record_id"),
            )
            for item in payload.get("cleanings", [])
        ]
        actors = [
            Actor(
                actor_ref=str(item["actor_ref"]),
                name=item.get("name"),
                email=item.get("email"),
                role=item.get("role"),
            )
            for item in payload.get("actors", [])
        ]
        return cls(beds=beds, events=events, cleanings=cleanings, actors=actors)


class GuardedStore:
    """Wrap an ``EventStore`` so adapter failures surface as ``UpstreamUnavailable``.

    Errors that are already part of the engine taxonomy (e.g. ``NotFound``)
    pass through unchanged. Nothing is retried.
    """

    def __init__(self, store: EventStore):
        self._store = store

    def __getattr__(self, name):
        attribute = getattr(self._store, name)
        if not callable(attribute):
            return attribute

        @functools.wraps(attribute)
        def guarded(*args, **kwargs):
            try:
                return attribute(*args, **kwargs)
            except BedflowError:
                raise
            except Exception as exc:
                LOGGER.exception("Event store call %s failed", name)
                raise UpstreamUnavailable(
                    f"Event store call '{name}' failed: {exc}"
                ) from exc

        return guarded


def load_store(path: Union[str, Path]) -> InMemoryEventStore:
    """Load an in-memory store from a pickle, JSON or YAML file.

    Pickles may contain either an ``InMemoryEventStore`` or the plain
    dictionary accepted by ``InMemoryEventStore.from_dict``.
    """
    path = Path(path).expanduser()
    suffix = path.suffix.lower()
    if suffix in (".pkl", ".pickle"):
        with path.open("rb") as file:
            loaded = pickle.load(file)
        if isinstance(loaded, InMemoryEventStore):
            store = loaded
        else:
            store = InMemoryEventStore.from_dict(loaded)
    elif suffix == ".json":
        with path.open("r") as file:
            store = InMemoryEventStore.from_dict(json.load(file))
    elif suffix in (".yaml", ".yml"):
        with path.open("r") as file:
            store = InMemoryEventStore.from_dict(yaml.safe_load(file) or {})
    else:
        raise ValueError(
            f"Unsupported store file type '{suffix}'; use .pkl, .json or .yaml"
        )

    LOGGER.info(
        "Loaded store from %s: %s beds, %s events, %s cleanings",
        path,
        len(store.beds),
        len(store.events),
        len(store.cleanings),
    )
    return store
