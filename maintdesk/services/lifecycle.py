"""
Ticket Lifecycle State Machine

Open -> Scheduled -> In Progress -> Completed -> Closed, with Cancel
collapsing any live status straight to Closed and a submitted review
closing a Completed ticket.

Every plan_* function checks the current ticket and returns the partial
TicketUpdate for exactly one transition. Nothing here talks to the ticket
store: errors are raised before any request is issued.
"""
from datetime import date, datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Union

from maintdesk.errors import (
    DecodeError,
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from maintdesk.models.schemas import (
    LIVE_STATUSES,
    RATING_CRITERIA,
    Priority,
    Review,
    ReviewDraft,
    Role,
    Ticket,
    TicketDraft,
    TicketStatus,
    TicketUpdate,
    User,
)
from maintdesk.utils.logger import get_logger
from maintdesk.utils.timeutils import parse_timestamp, utc_now
from maintdesk.utils.validators import is_valid_score, missing_fields

logger = get_logger(__name__)


class TicketAction(str, Enum):
    """Actions that change a ticket"""
    SCHEDULE = "schedule"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    SUBMIT_REVIEW = "review"
    CHANGE_PRIORITY = "change priority of"


# Source statuses each action may be applied from
ALLOWED_SOURCES: Dict[TicketAction, FrozenSet[TicketStatus]] = {
    TicketAction.SCHEDULE: frozenset({TicketStatus.OPEN}),
    TicketAction.START: frozenset({TicketStatus.OPEN, TicketStatus.SCHEDULED}),
    TicketAction.COMPLETE: frozenset({TicketStatus.IN_PROGRESS}),
    TicketAction.CANCEL: LIVE_STATUSES,
    TicketAction.SUBMIT_REVIEW: frozenset({TicketStatus.COMPLETED}),
    TicketAction.CHANGE_PRIORITY: LIVE_STATUSES,
}

# Resulting status; None keeps the current one
TARGET_STATUS: Dict[TicketAction, Optional[TicketStatus]] = {
    TicketAction.SCHEDULE: TicketStatus.SCHEDULED,
    TicketAction.START: TicketStatus.IN_PROGRESS,
    TicketAction.COMPLETE: TicketStatus.COMPLETED,
    TicketAction.CANCEL: TicketStatus.CLOSED,
    TicketAction.SUBMIT_REVIEW: TicketStatus.CLOSED,
    TicketAction.CHANGE_PRIORITY: None,
}

ACTION_ROLES: Dict[TicketAction, FrozenSet[Role]] = {
    TicketAction.SCHEDULE: frozenset({Role.OFFICER}),
    TicketAction.START: frozenset({Role.OFFICER}),
    TicketAction.COMPLETE: frozenset({Role.OFFICER}),
    TicketAction.CANCEL: frozenset({Role.OFFICER}),
    TicketAction.CHANGE_PRIORITY: frozenset({Role.OFFICER}),
    TicketAction.SUBMIT_REVIEW: frozenset({Role.USER}),
}


def allowed_actions(ticket: Ticket) -> List[TicketAction]:
    """List the actions valid from the ticket's current status"""
    actions = [
        action for action, sources in ALLOWED_SOURCES.items()
        if ticket.status in sources
    ]
    if ticket.review is not None and TicketAction.SUBMIT_REVIEW in actions:
        actions.remove(TicketAction.SUBMIT_REVIEW)
    return actions


def ensure_transition(ticket: Ticket, action: TicketAction) -> None:
    """
    Check that the action may be applied to the ticket

    Raises:
        InvalidTransitionError: If the ticket's status does not allow it,
            or the ticket has already been reviewed
    """
    if ticket.status not in ALLOWED_SOURCES[action]:
        raise InvalidTransitionError(action.value, ticket.status.value)
    if action is TicketAction.SUBMIT_REVIEW and ticket.review is not None:
        raise InvalidTransitionError(
            action.value,
            ticket.status.value,
            f"Ticket {ticket.id} has already been reviewed",
        )


def ensure_permitted(user: User, action: TicketAction, ticket: Ticket) -> None:
    """
    Check that the user's role may apply the action

    Units may only review their own tickets.

    Raises:
        PermissionDeniedError: If the role or unit does not match
    """
    if user.role not in ACTION_ROLES[action]:
        raise PermissionDeniedError(
            f"Role {user.role.value} may not {action.value} tickets"
        )
    if user.role is Role.USER and ticket.unit != user.username:
        raise PermissionDeniedError(
            f"Ticket {ticket.id} belongs to unit '{ticket.unit}'"
        )


def validate_draft(draft: TicketDraft) -> None:
    """
    Check a new ticket before anything is uploaded or created

    Raises:
        ValidationError: If required fields are blank or attachment ids repeat
    """
    missing = missing_fields(draft.required_values())
    if missing:
        raise ValidationError(
            f"Missing required ticket fields: {', '.join(missing)}",
            fields=missing,
        )
    ids = [attachment.id for attachment in draft.attachments]
    if len(ids) != len(set(ids)):
        raise ValidationError("Attachment ids must be unique", fields=["attachments"])


def validate_review(draft: ReviewDraft) -> None:
    """
    Check that every criterion has a 1-5 score

    Raises:
        ValidationError: Naming the criteria that are unscored
    """
    unscored = [
        criterion.key for criterion in RATING_CRITERIA
        if not is_valid_score(draft.score(criterion))
    ]
    if unscored:
        raise ValidationError(
            f"All criteria must be rated 1-5; missing: {', '.join(unscored)}",
            fields=unscored,
        )


def plan_schedule(ticket: Ticket, scheduled_for: Union[date, datetime, str]) -> TicketUpdate:
    """Open -> Scheduled, recording the planned work date"""
    ensure_transition(ticket, TicketAction.SCHEDULE)
    try:
        scheduled_at = parse_timestamp(scheduled_for)
    except DecodeError as e:
        raise ValidationError(f"Invalid schedule date: {scheduled_for!r}", fields=["scheduledAt"]) from e
    return TicketUpdate(status=TicketStatus.SCHEDULED, scheduled_at=scheduled_at)


def plan_start(ticket: Ticket, now: Optional[datetime] = None) -> TicketUpdate:
    """Open/Scheduled -> In Progress"""
    ensure_transition(ticket, TicketAction.START)
    return TicketUpdate(status=TicketStatus.IN_PROGRESS, started_at=now or utc_now())


def plan_complete(ticket: Ticket, officer: str, now: Optional[datetime] = None) -> TicketUpdate:
    """In Progress -> Completed; the completing officer is assigned"""
    ensure_transition(ticket, TicketAction.COMPLETE)
    if not officer or not officer.strip():
        raise ValidationError("Completing officer is required", fields=["assignedOfficer"])
    return TicketUpdate(
        status=TicketStatus.COMPLETED,
        completed_at=now or utc_now(),
        assigned_officer=officer,
    )


def plan_cancel(ticket: Ticket) -> TicketUpdate:
    """Any live status -> Closed, without timestamps"""
    ensure_transition(ticket, TicketAction.CANCEL)
    return TicketUpdate(status=TicketStatus.CLOSED)


def plan_review(ticket: Ticket, draft: ReviewDraft, now: Optional[datetime] = None) -> TicketUpdate:
    """Completed -> Closed with the unit's review attached"""
    ensure_transition(ticket, TicketAction.SUBMIT_REVIEW)
    validate_review(draft)
    review = Review(**draft.model_dump(), reviewed_at=now or utc_now())
    return TicketUpdate(status=TicketStatus.CLOSED, review=review)


def plan_priority_change(ticket: Ticket, priority: Union[Priority, str]) -> TicketUpdate:
    """Change priority on a live ticket; status is unchanged"""
    ensure_transition(ticket, TicketAction.CHANGE_PRIORITY)
    try:
        priority = Priority(priority)
    except ValueError as e:
        raise ValidationError(f"Unknown priority: {priority!r}", fields=["priority"]) from e
    return TicketUpdate(priority=priority)


def action_for_update(update: TicketUpdate) -> TicketAction:
    """
    Identify which single transition a partial update represents

    Raises:
        ValidationError: If the update does not match any transition
    """
    fields = update.model_fields_set
    if "status" not in fields:
        if fields == {"priority"}:
            return TicketAction.CHANGE_PRIORITY
        raise ValidationError(
            f"Update does not correspond to a lifecycle transition: {sorted(fields)}",
            fields=sorted(fields),
        )
    if update.status is TicketStatus.CLOSED:
        return TicketAction.SUBMIT_REVIEW if "review" in fields else TicketAction.CANCEL
    for action, target in TARGET_STATUS.items():
        if target is update.status:
            return action
    raise ValidationError(
        f"No transition leads to status '{update.status.value}'",
        fields=["status"],
    )


def apply_update(ticket: Ticket, update: TicketUpdate) -> Ticket:
    """Return a copy of the ticket with the update's explicitly set fields merged in"""
    data = ticket.model_dump()
    data.update(update.model_dump(exclude_unset=True))
    return Ticket.model_validate(data)
