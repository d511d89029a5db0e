"""
Rating Aggregation Engine

Averages the five review criteria per officer over the tickets they
completed and that the reporting unit has reviewed.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from maintdesk.models.schemas import RATING_CRITERIA, Ticket
from maintdesk.utils.timeutils import INSTANT_LABEL, format_duration


def round_rating(value: float) -> float:
    """Round half-up to one decimal for display (4.25 -> 4.3)"""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class OfficerRating(BaseModel):
    """Aggregated review scores for one officer"""
    officer: str
    review_count: int = Field(..., ge=1)
    averages: Dict[str, float]

    def display_averages(self) -> Dict[str, float]:
        """Averages rounded to one decimal, keyed by criterion"""
        return {key: round_rating(value) for key, value in self.averages.items()}

    @property
    def overall(self) -> float:
        """Mean of the five criterion averages, full precision"""
        return sum(self.averages.values()) / len(self.averages)


def is_rated(ticket: Ticket) -> bool:
    """Ticket counts toward ratings once it has an officer and a review"""
    return bool(ticket.assigned_officer) and ticket.review is not None


def reviewed_tickets(tickets: Iterable[Ticket], officer: Optional[str] = None) -> List[Ticket]:
    """
    Reviewed tickets, most recent review first

    Args:
        tickets: Full ticket collection
        officer: Restrict to tickets completed by this officer

    Returns:
        Tickets sorted by review time descending; ties keep collection order
    """
    rated = [
        ticket for ticket in tickets
        if is_rated(ticket) and (officer is None or ticket.assigned_officer == officer)
    ]
    return sorted(rated, key=lambda ticket: ticket.review.reviewed_at, reverse=True)


def aggregate_ratings(tickets: Iterable[Ticket]) -> List[OfficerRating]:
    """
    Per-officer average of each criterion

    Officers appear in the order their first reviewed ticket appears in the
    collection. Officers without reviewed tickets have no entry.
    """
    sums: Dict[str, Dict[str, int]] = {}
    counts: Dict[str, int] = {}

    for ticket in tickets:
        if not is_rated(ticket):
            continue
        officer = ticket.assigned_officer
        if officer not in sums:
            sums[officer] = {criterion.key: 0 for criterion in RATING_CRITERIA}
            counts[officer] = 0
        counts[officer] += 1
        for criterion in RATING_CRITERIA:
            sums[officer][criterion.key] += ticket.review.score(criterion)

    return [
        OfficerRating(
            officer=officer,
            review_count=counts[officer],
            averages={key: total / counts[officer] for key, total in criterion_sums.items()},
        )
        for officer, criterion_sums in sums.items()
    ]


def officer_rating(tickets: Iterable[Ticket], officer: str) -> Optional[OfficerRating]:
    """Aggregate for a single officer, or None if nobody reviewed their work yet"""
    ratings = aggregate_ratings(t for t in tickets if t.assigned_officer == officer)
    return ratings[0] if ratings else None


def review_delay(ticket: Ticket) -> Optional[str]:
    """How long after completion the unit submitted its review"""
    if ticket.review is None or ticket.completed_at is None:
        return None
    return format_duration(ticket.completed_at, ticket.review.reviewed_at, zero_label=INSTANT_LABEL)
