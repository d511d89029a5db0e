"""
Error taxonomy for the ticket desk

Every error raised by the lifecycle, aggregation and store layers derives
from TicketingError so callers can catch the family in one place.
"""
from typing import Iterable, Optional


class TicketingError(Exception):
    """Base class for ticket desk errors"""


class TransportError(TicketingError):
    """The ticket store could not be reached or the request failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StoreError(TransportError):
    """The ticket store answered but reported a failure (success=false)"""


class AuthenticationError(TicketingError):
    """Login rejected by the ticket store"""


class InvalidTransitionError(TicketingError):
    """Action attempted from a status that does not allow it"""

    def __init__(self, action: str, status: str, message: Optional[str] = None):
        self.action = action
        self.status = status
        super().__init__(message or f"Cannot {action} a ticket with status '{status}'")


class ValidationError(TicketingError):
    """Required input missing or out of range; raised before any request"""

    def __init__(self, message: str, fields: Iterable[str] = ()):
        super().__init__(message)
        self.fields = list(fields)


class DecodeError(TicketingError):
    """Malformed attachment or date payload coming back from the store"""


class PermissionDeniedError(TicketingError):
    """The acting user's role may not perform the action"""


class TicketNotFoundError(TicketingError):
    """No ticket with the given id in the current state"""

    def __init__(self, ticket_id: str):
        super().__init__(f"Ticket {ticket_id} not found")
        self.ticket_id = ticket_id


class ActionInProgressError(TicketingError):
    """Another action on the same ticket has not finished yet"""

    def __init__(self, ticket_id: str):
        super().__init__(f"An update for ticket {ticket_id} is already in progress")
        self.ticket_id = ticket_id
