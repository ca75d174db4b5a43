"""Record and enum definitions shared across the analytics engine.

This module defines the raw inputs read from the event store
(StatusChangeEvent, BedSnapshot, CleaningRecord, Actor) together with the
enumerations used to classify them.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class ChangeType(str, Enum):
    """Kind of status change recorded in the occupancy log."""

    ASSIGNED = "assigned"
    RELEASED = "released"
    MAINTENANCE_START = "maintenance_start"
    MAINTENANCE_END = "maintenance_end"
    RESERVED = "reserved"
    RESERVATION_CANCELLED = "reservation_cancelled"


class BedStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"

    @classmethod
    def values(cls):
        return [member.value for member in cls]


class CleaningStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Granularity(str, Enum):
    """Bucket width used when grouping status changes into a time series."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"

    @classmethod
    def values(cls):
        return [member.value for member in cls]


@dataclass(frozen=True)
class StatusChangeEvent:
    """Immutable entry of the append-only occupancy log.

    Parameters
    ----------
    bed_ref : str
        Opaque identifier of the bed the change applies to
    actor_ref : str
        Identifier of the user who made the change
    change_type : ChangeType
        Kind of change
    timestamp : datetime
        Instant of the change (timezone-aware, UTC)
    event_id : str, optional
        Identifier of the log entry, when the store provides one
    """

    bed_ref: str
    actor_ref: str
    change_type: ChangeType
    timestamp: datetime
    event_id: Optional[str] = None


@dataclass
class BedSnapshot:
    """Current state of a bed as owned by the bed-lifecycle subsystem.

    ``last_updated`` doubles as the admission time when ``status`` is
    occupied.
    """

    bed_ref: str
    bed_code: str
    ward: str
    status: BedStatus
    last_updated: datetime
    patient_ref: Optional[str] = None
    patient_name: Optional[str] = None


@dataclass
class CleaningRecord:
    """A single bed cleaning task.

    ``actual_duration_minutes`` is only meaningful once ``status`` is
    completed. A completed record is overdue when its actual duration exceeds
    the estimate.
    """

    bed_ref: str
    ward: str
    start_time: datetime
    estimated_duration_minutes: float
    status: CleaningStatus
    end_time: Optional[datetime] = None
    actual_duration_minutes: Optional[float] = None
    assigned_to_ref: Optional[str] = None
    completed_by_ref: Optional[str] = None
    record_id: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == CleaningStatus.COMPLETED

    @property
    def is_in_progress(self) -> bool:
        return self.status == CleaningStatus.IN_PROGRESS

    @property
    def is_overdue(self) -> bool:
        if not self.is_completed or self.actual_duration_minutes is None:
            return False
        return self.actual_duration_minutes > self.estimated_duration_minutes


@dataclass(frozen=True)
class Actor:
    """Display fields for a user referenced by events and cleaning records."""

    actor_ref: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.actor_ref
