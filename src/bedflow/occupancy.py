"""Hospital-wide and per-ward occupancy counts."""

import unicodedata
from dataclasses import dataclass
from typing import List

from bedflow.store import EventStore
from bedflow.types import BedStatus
from bedflow.utils import percentage


def ward_sort_key(ward: str):
    """Collation key for ward names.

    Compares case- and accent-insensitively first ("cardiology" before
    "General", "Émergency" before "ICU"), then by the exact name so the
    order is total. Does not depend on the process locale.
    """
    decomposed = unicodedata.normalize("NFKD", ward)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), ward


@dataclass
class OccupancySummary:
    total_beds: int
    occupied: int
    available: int
    maintenance: int
    reserved: int
    occupancy_percentage: int


@dataclass
class WardOccupancy:
    ward: str
    total_beds: int
    occupied: int
    available: int
    maintenance: int
    reserved: int
    occupancy_percentage: int


def _count_by_status(store: EventStore, ward=None):
    total = store.count_snapshots(ward=ward)
    counts = {
        status: store.count_snapshots(status=status, ward=ward)
        for status in BedStatus
    }
    return total, counts


def summarize_occupancy(store: EventStore) -> OccupancySummary:
    """Count beds by status across the whole hospital.

    The occupancy percentage is 0 when there are no beds.
    """
    total, counts = _count_by_status(store)
    occupied = counts[BedStatus.OCCUPIED]
    return OccupancySummary(
        total_beds=total,
        occupied=occupied,
        available=counts[BedStatus.AVAILABLE],
        maintenance=counts[BedStatus.MAINTENANCE],
        reserved=counts[BedStatus.RESERVED],
        occupancy_percentage=percentage(occupied, total),
    )


def occupancy_by_ward(store: EventStore) -> List[WardOccupancy]:
    """Count beds by status for every ward that has at least one bed.

    Returns
    -------
    list[WardOccupancy]
        One entry per distinct ward, ordered by ward name
    """
    breakdown = []
    for ward in store.distinct_wards():
        total, counts = _count_by_status(store, ward=ward)
        occupied = counts[BedStatus.OCCUPIED]
        breakdown.append(
            WardOccupancy(
                ward=ward,
                total_beds=total,
                occupied=occupied,
                available=counts[BedStatus.AVAILABLE],
                maintenance=counts[BedStatus.MAINTENANCE],
                reserved=counts[BedStatus.RESERVED],
                occupancy_percentage=percentage(occupied, total),
            )
        )
    breakdown.sort(key=lambda row: ward_sort_key(row.ward))
    return breakdown
