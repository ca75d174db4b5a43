"""Threshold rules that turn forecast aggregates into prioritised alerts.

Rules are plain functions evaluated in order against the same
``InsightContext``; each returns at most one ``Insight``. Insights are
additive, so several rules may fire for one context.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from bedflow.utils import percentage

HIGH_OCCUPANCY_RATIO = 0.90
DISCHARGE_INSIGHT_MIN = 3
CRITICAL_WARD_PERCENTAGE = 90


@dataclass(frozen=True)
class Insight:
    type: str
    priority: str
    message: str


@dataclass(frozen=True)
class WardLoad:
    ward: str
    occupancy_percentage: int


@dataclass(frozen=True)
class InsightContext:
    """Aggregates the rules are evaluated against.

    Parameters
    ----------
    total_beds : int
        Beds in the hospital
    occupied_beds : int
        Beds currently occupied
    discharges_next_24_hours : int
        Expected discharges within 24 hours
    wards : sequence of WardLoad
        Per-ward occupancy, in the order wards should be named
    """

    total_beds: int
    occupied_beds: int
    discharges_next_24_hours: int
    wards: Sequence[WardLoad] = ()


InsightRule = Callable[[InsightContext], Optional[Insight]]


def high_occupancy_rule(context: InsightContext) -> Optional[Insight]:
    if context.total_beds <= 0:
        return None
    if context.occupied_beds / context.total_beds > HIGH_OCCUPANCY_RATIO:
        rate = percentage(context.occupied_beds, context.total_beds)
        return Insight(
            type="warning",
            priority="high",
            message=f"High occupancy alert: {rate}% of beds occupied",
        )
    return None


def upcoming_discharges_rule(context: InsightContext) -> Optional[Insight]:
    count = context.discharges_next_24_hours
    if count >= DISCHARGE_INSIGHT_MIN:
        return Insight(
            type="info",
            priority="medium",
            message=f"{count} beds expected to be available in next 24 hours",
        )
    return None


def critical_wards_rule(context: InsightContext) -> Optional[Insight]:
    critical = [
        ward.ward
        for ward in context.wards
        if ward.occupancy_percentage > CRITICAL_WARD_PERCENTAGE
    ]
    if critical:
        return Insight(
            type="warning",
            priority="high",
            message=f"Critical capacity in {', '.join(critical)}",
        )
    return None


DEFAULT_RULES: Sequence[InsightRule] = (
    high_occupancy_rule,
    upcoming_discharges_rule,
    critical_wards_rule,
)


def generate_insights(
    context: InsightContext, rules: Sequence[InsightRule] = DEFAULT_RULES
) -> List[Insight]:
    """Evaluate ``rules`` in order and collect every insight produced."""
    insights = []
    for rule in rules:
        insight = rule(context)
        if insight is not None:
            insights.append(insight)
    return insights
