"""
Ticket desk session

TicketDesk coordinates one client session: it owns the DeskState (current
user, ticket list, tickets with an update in flight) and is the only place
that talks to the ticket store. Local state is changed only after the store
confirms an action, by committing the record the store returned.

Concurrent sessions editing the same ticket are not reconciled: whichever
write the store saw last wins and no version check is made.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, List, Optional, Sequence, Set, Tuple, Union

from maintdesk.errors import (
    ActionInProgressError,
    PermissionDeniedError,
    TicketNotFoundError,
    TransportError,
)
from maintdesk.models.schemas import (
    Priority,
    ReviewDraft,
    Role,
    Ticket,
    TicketDraft,
    TicketUpdate,
    User,
)
from maintdesk.services import lifecycle, ratings, views
from maintdesk.services.lifecycle import TicketAction
from maintdesk.services.store import TicketStore
from maintdesk.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class UploadedFile:
    """File picked by the user, not yet uploaded"""
    name: str
    mime_type: str
    data: bytes


@dataclass
class DeskState:
    """Application state for one session"""
    user: Optional[User] = None
    tickets: List[Ticket] = field(default_factory=list)
    in_flight: Set[str] = field(default_factory=set)


class TicketDesk:
    """Role-aware ticket operations for a single session"""

    def __init__(self, store: TicketStore, state: Optional[DeskState] = None):
        self.store = store
        self.state = state or DeskState()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def user(self) -> User:
        if self.state.user is None:
            raise PermissionDeniedError("Not logged in")
        return self.state.user

    @property
    def tickets(self) -> List[Ticket]:
        return list(self.state.tickets)

    async def login(self, username: str, password: str) -> User:
        user = await self.store.login(username, password)
        self.state = DeskState(user=user)
        logger.info(f"{user.username} logged in as {user.role.value}")
        return user

    def logout(self) -> None:
        self.state = DeskState()

    def _require_role(self, *roles: Role) -> User:
        user = self.user
        if user.role not in roles:
            raise PermissionDeniedError(f"Role {user.role.value} may not use this view")
        return user

    async def refresh(self) -> List[Ticket]:
        """Reload the ticket list; on failure the previous list is kept"""
        self._require_role(Role.USER, Role.OFFICER, Role.ADMIN)
        try:
            tickets = await self.store.list_tickets()
        except TransportError as e:
            logger.error(f"Could not load ticket data: {e}")
            raise
        self.state.tickets = tickets
        return self.tickets

    def get_ticket(self, ticket_id: str) -> Ticket:
        for ticket in self.state.tickets:
            if ticket.id == ticket_id:
                return ticket
        raise TicketNotFoundError(ticket_id)

    def _commit(self, updated: Ticket) -> None:
        for index, ticket in enumerate(self.state.tickets):
            if ticket.id == updated.id:
                self.state.tickets[index] = updated
                return
        self.state.tickets.append(updated)

    # ------------------------------------------------------------------
    # Ticket creation
    # ------------------------------------------------------------------

    async def create_ticket(
        self,
        draft: TicketDraft,
        files: Sequence[UploadedFile] = ()
    ) -> Ticket:
        """
        File a new ticket for the logged-in unit

        The draft is validated before anything is uploaded; files are then
        uploaded and the ticket is created with their references.

        Raises:
            ValidationError: If required fields are missing
            TransportError: If an upload or the creation fails
        """
        user = self._require_role(Role.USER)
        draft = draft.model_copy(update={"unit": user.username})
        lifecycle.validate_draft(draft)

        uploaded = []
        if files:
            uploaded = await asyncio.gather(*(
                self.store.upload_file(f.name, f.mime_type, f.data) for f in files
            ))
        if uploaded:
            draft = draft.model_copy(update={"attachments": [*draft.attachments, *uploaded]})
            lifecycle.validate_draft(draft)

        ticket = await self.store.create_ticket(draft)
        self.state.tickets.append(ticket)
        logger.info(f"Ticket {ticket.id} created by {user.username} with {len(uploaded)} attachments")
        return ticket

    # ------------------------------------------------------------------
    # Lifecycle actions
    # ------------------------------------------------------------------

    async def _perform(
        self,
        ticket_id: str,
        action: TicketAction,
        plan: Callable[[Ticket], TicketUpdate]
    ) -> Ticket:
        if ticket_id in self.state.in_flight:
            raise ActionInProgressError(ticket_id)

        ticket = self.get_ticket(ticket_id)
        lifecycle.ensure_permitted(self.user, action, ticket)
        update = plan(ticket)

        self.state.in_flight.add(ticket_id)
        try:
            updated = await self.store.update_ticket(ticket_id, update)
        except TransportError as e:
            logger.error(f"Failed to {action.value} ticket {ticket_id}: {e}")
            raise
        finally:
            self.state.in_flight.discard(ticket_id)

        self._commit(updated)
        logger.info(f"{self.user.username}: {action.value} ticket {ticket_id} -> {updated.status.value}")
        return updated

    async def schedule(self, ticket_id: str, scheduled_for: Union[date, datetime, str]) -> Ticket:
        return await self._perform(
            ticket_id, TicketAction.SCHEDULE,
            lambda t: lifecycle.plan_schedule(t, scheduled_for),
        )

    async def start(self, ticket_id: str) -> Ticket:
        return await self._perform(ticket_id, TicketAction.START, lifecycle.plan_start)

    async def complete(self, ticket_id: str) -> Ticket:
        officer = self.user.username
        return await self._perform(
            ticket_id, TicketAction.COMPLETE,
            lambda t: lifecycle.plan_complete(t, officer),
        )

    async def cancel(self, ticket_id: str) -> Ticket:
        return await self._perform(ticket_id, TicketAction.CANCEL, lifecycle.plan_cancel)

    async def change_priority(self, ticket_id: str, priority: Union[Priority, str]) -> Ticket:
        return await self._perform(
            ticket_id, TicketAction.CHANGE_PRIORITY,
            lambda t: lifecycle.plan_priority_change(t, priority),
        )

    async def submit_review(self, ticket_id: str, draft: ReviewDraft) -> Ticket:
        return await self._perform(
            ticket_id, TicketAction.SUBMIT_REVIEW,
            lambda t: lifecycle.plan_review(t, draft),
        )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def my_tickets(self, review_filter: views.ReviewFilter = views.ReviewFilter.ALL) -> List[Ticket]:
        user = self._require_role(Role.USER)
        return views.user_tickets(self.state.tickets, user.username, review_filter)

    def my_pending_reviews(self) -> List[Ticket]:
        user = self._require_role(Role.USER)
        return views.pending_reviews(self.state.tickets, user.username)

    def queue(self) -> List[Ticket]:
        self._require_role(Role.OFFICER)
        return views.officer_queue(self.state.tickets)

    def schedule_suggestion(self) -> views.ScheduleSuggestion:
        self._require_role(Role.OFFICER)
        return views.suggest_schedule(self.state.tickets)

    def live(self) -> List[Ticket]:
        self._require_role(Role.ADMIN)
        return views.live_tickets(self.state.tickets)

    def completed(self) -> List[Ticket]:
        self._require_role(Role.ADMIN)
        return views.completed_tickets(self.state.tickets)

    def officer_ratings(self) -> Tuple[List[ratings.OfficerRating], List[Ticket]]:
        """All officers' aggregates plus the reviewed tickets, newest review first"""
        self._require_role(Role.ADMIN)
        return (
            ratings.aggregate_ratings(self.state.tickets),
            ratings.reviewed_tickets(self.state.tickets),
        )

    def my_rating(self) -> Tuple[Optional[ratings.OfficerRating], List[Ticket]]:
        """The logged-in officer's aggregate and reviewed tickets"""
        user = self._require_role(Role.OFFICER)
        return (
            ratings.officer_rating(self.state.tickets, user.username),
            ratings.reviewed_tickets(self.state.tickets, officer=user.username),
        )
