"""
Ticket store interface and the in-process implementation

The lifecycle and aggregation code only needs five operations from the
store. SheetStoreClient implements them against the spreadsheet API;
InMemoryTicketStore keeps everything in process for development and tests.
"""
import uuid
from typing import Dict, List, Optional, Protocol, Tuple

from maintdesk.config import get_settings
from maintdesk.errors import AuthenticationError, InvalidTransitionError, StoreError, ValidationError
from maintdesk.models.schemas import (
    Attachment,
    Priority,
    Role,
    Ticket,
    TicketDraft,
    TicketStatus,
    TicketUpdate,
    User,
)
from maintdesk.services.lifecycle import action_for_update, apply_update, ensure_transition
from maintdesk.utils.logger import get_logger
from maintdesk.utils.timeutils import utc_now

logger = get_logger(__name__)
settings = get_settings()


class TicketStore(Protocol):
    """Operations the ticket desk consumes from the external store"""

    async def login(self, username: str, password: str) -> User:
        ...

    async def list_tickets(self) -> List[Ticket]:
        ...

    async def create_ticket(self, draft: TicketDraft) -> Ticket:
        ...

    async def update_ticket(self, ticket_id: str, update: TicketUpdate) -> Ticket:
        ...

    async def upload_file(self, file_name: str, mime_type: str, data: bytes) -> Attachment:
        ...


class InMemoryTicketStore:
    """
    Ticket store held in process memory

    Assigns ids, creation time, the Open status and the configured default
    priority on create, and rejects updates that do not match a lifecycle
    transition, the way the spreadsheet backend is expected to.
    """

    def __init__(
        self,
        users: Optional[Dict[str, Tuple[str, Role]]] = None,
        default_priority: Optional[str] = None,
        file_base_url: str = "memory://files",
    ):
        self.users: Dict[str, Tuple[str, Role]] = dict(users or {})
        self.default_priority = Priority(default_priority or settings.default_priority)
        self.file_base_url = file_base_url
        self.tickets: Dict[str, Ticket] = {}
        self.files: Dict[str, bytes] = {}
        self._id_counter = 0

    def next_id(self, prefix: str) -> str:
        self._id_counter += 1
        return f"{prefix}-{self._id_counter:04d}"

    def add_user(self, username: str, password: str, role: Role) -> None:
        self.users[username] = (password, Role(role))

    async def login(self, username: str, password: str) -> User:
        entry = self.users.get(username)
        if entry is None or entry[0] != password:
            raise AuthenticationError("Invalid username or password.")
        return User(username=username, role=entry[1])

    async def list_tickets(self) -> List[Ticket]:
        return list(self.tickets.values())

    async def create_ticket(self, draft: TicketDraft) -> Ticket:
        ticket = Ticket(
            id=self.next_id("TKT"),
            status=TicketStatus.OPEN,
            priority=self.default_priority,
            created_at=utc_now(),
            **draft.model_dump(),
        )
        self.tickets[ticket.id] = ticket
        logger.info(f"Created ticket {ticket.id} for unit {ticket.unit}")
        return ticket

    async def update_ticket(self, ticket_id: str, update: TicketUpdate) -> Ticket:
        ticket = self.tickets.get(ticket_id)
        if ticket is None:
            raise StoreError(f"Ticket {ticket_id} not found")
        try:
            ensure_transition(ticket, action_for_update(update))
        except (InvalidTransitionError, ValidationError) as e:
            raise StoreError(str(e)) from e

        updated = apply_update(ticket, update)
        self.tickets[ticket_id] = updated
        logger.info(f"Updated ticket {ticket_id}: {sorted(update.model_fields_set)}")
        return updated

    async def upload_file(self, file_name: str, mime_type: str, data: bytes) -> Attachment:
        file_id = uuid.uuid4().hex
        self.files[file_id] = data
        return Attachment(id=file_id, name=file_name, url=f"{self.file_base_url}/{file_id}")


def parse_user_entries(entries: str) -> Dict[str, Tuple[str, Role]]:
    """
    Parse "username:password:role" entries separated by commas

    Raises:
        ValueError: If an entry is malformed or names an unknown role
    """
    users: Dict[str, Tuple[str, Role]] = {}
    for entry in filter(None, (part.strip() for part in entries.split(","))):
        username, sep, rest = entry.partition(":")
        password, sep2, role = rest.rpartition(":")
        if not (sep and sep2 and username):
            raise ValueError(f"Invalid user entry: {entry!r}")
        users[username] = (password, Role(role))
    return users


def build_store() -> TicketStore:
    """Create the ticket store selected by settings.store_backend"""
    backend = settings.store_backend.lower()
    if backend == "memory":
        logger.info("Using in-memory ticket store")
        return InMemoryTicketStore(users=parse_user_entries(settings.memory_users))
    if backend == "sheet":
        # Imported here, the client module imports this one's models
        from maintdesk.services.sheet_client import SheetStoreClient
        logger.info("Using spreadsheet ticket store")
        return SheetStoreClient()
    raise ValueError(f"Unknown store backend: {settings.store_backend!r}")
