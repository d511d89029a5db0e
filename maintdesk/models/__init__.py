"""
Pydantic models for the maintenance ticket desk
"""

from maintdesk.models.schemas import (
    # Enums
    Role,
    TicketStatus,
    Priority,
    LIVE_STATUSES,
    FINISHED_STATUSES,

    # Rating criteria
    RatingCriterion,
    RATING_CRITERIA,

    # Store Models
    User,
    Attachment,
    ReviewDraft,
    Review,
    Ticket,
    TicketDraft,
    TicketUpdate,
)

__all__ = [
    # Enums
    "Role",
    "TicketStatus",
    "Priority",
    "LIVE_STATUSES",
    "FINISHED_STATUSES",

    # Rating criteria
    "RatingCriterion",
    "RATING_CRITERIA",

    # Store Models
    "User",
    "Attachment",
    "ReviewDraft",
    "Review",
    "Ticket",
    "TicketDraft",
    "TicketUpdate",
]
