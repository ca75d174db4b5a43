"""Bed lookup: paginated status-change history and filtered bed listings."""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from bedflow.errors import InvalidArgument
from bedflow.occupancy import ward_sort_key
from bedflow.store import EventStore
from bedflow.types import BedSnapshot, BedStatus, ChangeType

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 200


@dataclass
class BedReference:
    bed_ref: str
    bed_code: str
    ward: str
    current_status: BedStatus


@dataclass
class HistoryEntry:
    """A status change enriched with the display fields of its actor."""

    event_id: Optional[str]
    change_type: ChangeType
    timestamp: datetime
    actor_ref: str
    actor_name: Optional[str] = None
    actor_email: Optional[str] = None
    actor_role: Optional[str] = None


@dataclass
class Pagination:
    total: int
    limit: int
    skip: int
    has_more: bool


@dataclass
class BedHistory:
    bed: BedReference
    history: List[HistoryEntry]
    pagination: Pagination


def resolve_page(
    limit: Optional[int],
    skip: Optional[int],
    default_limit: int = DEFAULT_HISTORY_LIMIT,
):
    """Normalise pagination parameters.

    A missing or zero ``limit`` falls back to ``default_limit``; anything
    above ``MAX_HISTORY_LIMIT`` is clamped to it.
    """
    if limit is not None and limit < 0:
        raise InvalidArgument(f"limit must be non-negative, got {limit}")
    if skip is not None and skip < 0:
        raise InvalidArgument(f"skip must be non-negative, got {skip}")
    limit = min(limit or default_limit, MAX_HISTORY_LIMIT)
    return limit, skip or 0


def read_bed_history(
    store: EventStore,
    bed_id: str,
    limit: Optional[int] = None,
    skip: Optional[int] = None,
    default_limit: int = DEFAULT_HISTORY_LIMIT,
) -> BedHistory:
    """Return one page of a bed's status changes, newest first.

    Parameters
    ----------
    store : EventStore
        Source of snapshots, events and actors
    bed_id : str
        Primary key or human bed code
    limit : int, optional
        Page size, default 50, at most 200
    skip : int, optional
        Number of newest events to skip, default 0

    Raises
    ------
    NotFound
        If the bed resolves by neither identifier form
    InvalidArgument
        If ``limit`` or ``skip`` is negative
    """
    limit, skip = resolve_page(limit, skip, default_limit)
    bed = store.resolve_bed(bed_id)

    events = sorted(
        store.list_events(bed_ref=bed.bed_ref),
        key=lambda event: event.timestamp,
        reverse=True,
    )
    total = len(events)

    history = []
    for event in events[skip : skip + limit]:
        actor = store.get_actor(event.actor_ref)
        history.append(
            HistoryEntry(
                event_id=event.event_id,
                change_type=event.change_type,
                timestamp=event.timestamp,
                actor_ref=event.actor_ref,
                actor_name=actor.name if actor else None,
                actor_email=actor.email if actor else None,
                actor_role=actor.role if actor else None,
            )
        )

    return BedHistory(
        bed=BedReference(
            bed_ref=bed.bed_ref,
            bed_code=bed.bed_code,
            ward=bed.ward,
            current_status=bed.status,
        ),
        history=history,
        pagination=Pagination(
            total=total, limit=limit, skip=skip, has_more=skip + limit < total
        ),
    )


def list_beds(
    store: EventStore, status: Optional[str] = None, ward: Optional[str] = None
) -> List[BedSnapshot]:
    """List bed snapshots, optionally filtered by status and ward.

    Raises
    ------
    InvalidArgument
        If ``status`` is not a known bed status
    """
    status_filter = None
    if status:
        try:
            status_filter = BedStatus(status)
        except ValueError as exc:
            raise InvalidArgument(
                f"Invalid status. Must be one of: {', '.join(BedStatus.values())}"
            ) from exc

    beds = store.list_snapshots(status=status_filter, ward=ward or None)
    return sorted(beds, key=lambda bed: (ward_sort_key(bed.ward), bed.bed_code))
