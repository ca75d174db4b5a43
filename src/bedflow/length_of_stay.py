"""Length-of-stay estimation from assigned/released pairs in the occupancy log.

Pairing
-------
Each bed's ``assigned``/``released`` events are sorted by timestamp and
scanned as overlapping adjacent pairs: position ``i`` and ``i + 1`` form a
stay when the first is ``assigned`` and the second ``released``. The scan
always advances by one position, so consecutive events of the same type
produce no stay rather than being matched across a gap.

When no stay is found the estimate falls back to
``DEFAULT_LENGTH_OF_STAY_DAYS`` (3.5 days).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Sequence

import numpy as np

from bedflow.store import EventStore
from bedflow.types import ChangeType, StatusChangeEvent

DEFAULT_LENGTH_OF_STAY_DAYS = 3.5
LOOKBACK_DAYS = 30
DEFAULT_PERCENTILES = [50, 75, 90]

STAY_CHANGE_TYPES = (ChangeType.ASSIGNED, ChangeType.RELEASED)


@dataclass(frozen=True)
class Stay:
    """A matched assigned/released pair for one bed."""

    bed_ref: str
    assigned_at: datetime
    released_at: datetime

    @property
    def duration_days(self) -> float:
        return (self.released_at - self.assigned_at) / timedelta(days=1)


@dataclass
class LengthOfStayEstimate:
    """Mean length of stay and the distribution it was computed from.

    Parameters
    ----------
    mean_days : float
        Arithmetic mean of the stay durations, or the fallback when there are none
    stays : list[Stay]
        Stays found in the lookback window
    samples : int
        Number of stays
    used_default : bool
        Whether ``mean_days`` is the cold-start fallback
    window_start, window_end : datetime
        Lookback window the events were read from
    percentiles : dict[int, float]
        Duration percentiles in days (empty when there are no stays)
    """

    mean_days: float
    stays: List[Stay]
    samples: int
    used_default: bool
    window_start: datetime
    window_end: datetime
    percentiles: Dict[int, float] = field(default_factory=dict)

    @property
    def durations(self) -> np.ndarray:
        return np.array([stay.duration_days for stay in self.stays], dtype=float)


def group_events_by_bed(
    events: Sequence[StatusChangeEvent],
) -> Dict[str, List[StatusChangeEvent]]:
    """Group events per bed, each group sorted by timestamp ascending."""
    by_bed: Dict[str, List[StatusChangeEvent]] = {}
    for event in events:
        by_bed.setdefault(event.bed_ref, []).append(event)
    for bed_events in by_bed.values():
        bed_events.sort(key=lambda event: event.timestamp)
    return by_bed


def pair_stays(events: Sequence[StatusChangeEvent]) -> List[Stay]:
    """Extract stays from events scanned as overlapping adjacent pairs."""
    stays = []
    for bed_ref, bed_events in group_events_by_bed(events).items():
        for current, following in zip(bed_events, bed_events[1:]):
            if (
                current.change_type == ChangeType.ASSIGNED
                and following.change_type == ChangeType.RELEASED
            ):
                stays.append(
                    Stay(
                        bed_ref=bed_ref,
                        assigned_at=current.timestamp,
                        released_at=following.timestamp,
                    )
                )
    return stays


def summarise_stays(
    stays: List[Stay], window_start: datetime, window_end: datetime
) -> LengthOfStayEstimate:
    if not stays:
        return LengthOfStayEstimate(
            mean_days=DEFAULT_LENGTH_OF_STAY_DAYS,
            stays=[],
            samples=0,
            used_default=True,
            window_start=window_start,
            window_end=window_end,
        )

    durations = np.array([stay.duration_days for stay in stays], dtype=float)
    percentiles = {
        p: float(value)
        for p, value in zip(
            DEFAULT_PERCENTILES, np.percentile(durations, DEFAULT_PERCENTILES)
        )
    }
    return LengthOfStayEstimate(
        mean_days=float(np.mean(durations)),
        stays=stays,
        samples=len(stays),
        used_default=False,
        window_start=window_start,
        window_end=window_end,
        percentiles=percentiles,
    )


def estimate_length_of_stay(store: EventStore, now: datetime) -> LengthOfStayEstimate:
    """Estimate the mean length of stay over the ``LOOKBACK_DAYS`` before ``now``.

    Parameters
    ----------
    store : EventStore
        Source of the occupancy log
    now : datetime
        Request instant; the window is ``[now - 30 days, ...)``

    Returns
    -------
    LengthOfStayEstimate
    """
    window_start = now - timedelta(days=LOOKBACK_DAYS)
    events = store.list_events(change_types=STAY_CHANGE_TYPES, start=window_start)
    return summarise_stays(pair_stays(events), window_start, now)
