"""
Role views over the ticket collection

Filtering and ordering used by the User, Officer and Admin dashboards, the
category catalog offered when filing a ticket, and the officer's schedule
suggestion.
"""
from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from maintdesk.errors import ValidationError
from maintdesk.models.schemas import (
    FINISHED_STATUSES,
    LIVE_STATUSES,
    Priority,
    Ticket,
    TicketStatus,
)
from maintdesk.utils.timeutils import ZERO_SECONDS_LABEL, format_duration

SUBCATEGORIES: Dict[str, List[str]] = {
    "AC": ["AC tidak dingin", "AC berisik", "AC bocor", "Lainnya"],
    "Kelistrikan": ["Lampu mati", "Stop kontak rusak", "Sekring putus", "Lainnya"],
    "Perabotan": ["Kursi rusak", "Meja rusak", "Lemari rusak", "Lainnya"],
    "Saluran Air": ["Wastafel mampet", "Keran bocor", "Toilet mampet", "Lainnya"],
}

PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}
SCHEDULABLE_STATUSES = frozenset({TicketStatus.OPEN, TicketStatus.SCHEDULED})


class ReviewFilter(str, Enum):
    """Unit ticket list filter"""
    ALL = "all"
    REVIEWED = "reviewed"
    UNREVIEWED = "unreviewed"


class ScheduleSuggestion(BaseModel):
    """Suggested work order for an officer"""
    schedule: List[str]
    justification: str


def subcategories_for(category: str) -> List[str]:
    """Sub-categories offered for a category; unknown categories have none"""
    return list(SUBCATEGORIES.get(category, []))


def newest_first(tickets: Iterable[Ticket]) -> List[Ticket]:
    return sorted(tickets, key=lambda ticket: ticket.created_at, reverse=True)


def user_tickets(
    tickets: Iterable[Ticket],
    unit: str,
    review_filter: ReviewFilter = ReviewFilter.ALL
) -> List[Ticket]:
    """A unit's own tickets, newest first"""
    review_filter = ReviewFilter(review_filter)
    own = [ticket for ticket in tickets if ticket.unit == unit]
    if review_filter is ReviewFilter.REVIEWED:
        own = [ticket for ticket in own if ticket.is_reviewed]
    elif review_filter is ReviewFilter.UNREVIEWED:
        own = [ticket for ticket in own if not ticket.is_reviewed]
    return newest_first(own)


def pending_reviews(tickets: Iterable[Ticket], unit: str) -> List[Ticket]:
    """A unit's completed tickets still waiting for a review"""
    return [
        ticket for ticket in tickets
        if ticket.unit == unit
        and ticket.status is TicketStatus.COMPLETED
        and not ticket.is_reviewed
    ]


def officer_queue(tickets: Iterable[Ticket]) -> List[Ticket]:
    """Every ticket, in collection order"""
    return list(tickets)


def live_tickets(tickets: Iterable[Ticket]) -> List[Ticket]:
    """Open, scheduled and in-progress tickets, newest first"""
    return newest_first(t for t in tickets if t.status in LIVE_STATUSES)


def completed_tickets(tickets: Iterable[Ticket]) -> List[Ticket]:
    """Completed and closed tickets, newest first"""
    return newest_first(t for t in tickets if t.status in FINISHED_STATUSES)


def work_duration(ticket: Ticket) -> Optional[str]:
    """Total time from filing to completion, for the officer's work history"""
    if ticket.completed_at is None or ticket.status not in FINISHED_STATUSES:
        return None
    return format_duration(ticket.created_at, ticket.completed_at, zero_label=ZERO_SECONDS_LABEL)


def suggest_schedule(tickets: Iterable[Ticket]) -> ScheduleSuggestion:
    """
    Order open and scheduled tickets for efficient work

    High priority first; within a priority, tickets of the same unit are
    kept together to save travel, then grouped by category. Units and
    categories are taken in the order their oldest ticket was filed.

    Raises:
        ValidationError: If there is nothing to schedule
    """
    ordered = sorted(
        (t for t in tickets if t.status in SCHEDULABLE_STATUSES),
        key=lambda ticket: ticket.created_at,
    )
    if not ordered:
        raise ValidationError("No open or scheduled tickets available to create a suggestion")

    unit_rank: Dict[tuple, int] = {}
    category_rank: Dict[tuple, int] = {}
    for ticket in ordered:
        unit_rank.setdefault((ticket.priority, ticket.unit), len(unit_rank))
        category_rank.setdefault((ticket.priority, ticket.unit, ticket.category), len(category_rank))

    schedule = sorted(
        ordered,
        key=lambda t: (
            PRIORITY_RANK[t.priority],
            unit_rank[(t.priority, t.unit)],
            category_rank[(t.priority, t.unit, t.category)],
        ),
    )

    high_count = sum(1 for t in schedule if t.priority is Priority.HIGH)
    unit_count = len({t.unit for t in schedule})
    justification = (
        f"{len(schedule)} tickets ordered by priority ({high_count} high priority first), "
        f"then grouped by location across {unit_count} unit(s) and by category "
        f"so similar work at the same site is done together."
    )
    return ScheduleSuggestion(schedule=[t.id for t in schedule], justification=justification)
