"""
Ticket-related API routes
"""
import base64
import binascii
from datetime import date
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import Field, field_validator

from maintdesk.errors import PermissionDeniedError, ValidationError
from maintdesk.models.schemas import (
    Attachment,
    Priority,
    ReviewDraft,
    Role,
    Ticket,
    TicketDraft,
    User,
    WireModel,
)
from maintdesk.routes.dependencies import get_desk
from maintdesk.services import lifecycle, ratings, views
from maintdesk.services.desk import TicketDesk, UploadedFile
from maintdesk.utils.validators import sanitize_input

router = APIRouter(prefix="/api/v1/tickets", tags=["tickets"])


# ============================================================================
# Request bodies
# ============================================================================

class FilePayload(WireModel):
    """File to attach, base64-encoded"""
    name: str = Field(..., min_length=1)
    mime_type: str = "application/octet-stream"
    data: str

    def decode(self) -> UploadedFile:
        try:
            raw = base64.b64decode(self.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(f"File {self.name} is not valid base64", fields=["files"]) from e
        return UploadedFile(name=self.name, mime_type=self.mime_type, data=raw)


class CreateTicketRequest(WireModel):
    """New ticket form; the unit is always the logged-in user"""
    reporter_name: str = ""
    title: str = ""
    category: str = ""
    sub_category: str = ""
    description: str = ""
    attachments: List[Attachment] = Field(default_factory=list)
    files: List[FilePayload] = Field(default_factory=list)

    @field_validator("reporter_name", "title", "category", "sub_category", "description")
    @classmethod
    def clean_text(cls, v: str) -> str:
        return sanitize_input(v)


class ScheduleRequest(WireModel):
    scheduled_at: Union[date, str]


class PriorityRequest(WireModel):
    priority: Priority


# ============================================================================
# Serialization
# ============================================================================

def permitted_actions(user: User, ticket: Ticket) -> List[str]:
    """Actions the user may apply to the ticket right now"""
    permitted = []
    for action in lifecycle.allowed_actions(ticket):
        try:
            lifecycle.ensure_permitted(user, action, ticket)
        except PermissionDeniedError:
            continue
        permitted.append(action.name.lower())
    return permitted


def ticket_payload(user: User, ticket: Ticket) -> Dict[str, Any]:
    """Ticket in store field names plus derived display values"""
    payload = ticket.to_wire()
    payload["allowedActions"] = permitted_actions(user, ticket)
    payload["workDuration"] = views.work_duration(ticket)
    payload["reviewDelay"] = ratings.review_delay(ticket)
    return payload


def ticket_list(user: User, tickets: List[Ticket]) -> Dict[str, Any]:
    return {
        "tickets": [ticket_payload(user, ticket) for ticket in tickets],
        "count": len(tickets),
    }


# ============================================================================
# Lists and views
# ============================================================================

@router.get("")
async def list_tickets(
    review_filter: views.ReviewFilter = views.ReviewFilter.ALL,
    view: Optional[str] = Query(None, pattern="^(live|completed)$"),
    desk: TicketDesk = Depends(get_desk),
):
    """
    Tickets visible to the acting role

    Users see their own unit's tickets (filterable by review state),
    officers the whole queue, admins the live or completed list.
    """
    user = desk.user
    if user.role is Role.USER:
        tickets = desk.my_tickets(review_filter)
    elif user.role is Role.OFFICER:
        tickets = desk.queue()
    elif view == "completed":
        tickets = desk.completed()
    else:
        tickets = desk.live()
    return ticket_list(user, tickets)


@router.get("/pending-reviews")
async def list_pending_reviews(desk: TicketDesk = Depends(get_desk)):
    """The unit's completed tickets still waiting for a review"""
    return ticket_list(desk.user, desk.my_pending_reviews())


@router.get("/schedule-suggestion", response_model=views.ScheduleSuggestion)
async def get_schedule_suggestion(desk: TicketDesk = Depends(get_desk)):
    return desk.schedule_suggestion()


@router.get("/categories")
async def list_categories():
    """Facility categories and their sub-categories"""
    return {"categories": {name: views.subcategories_for(name) for name in views.SUBCATEGORIES}}


# ============================================================================
# Creation and lifecycle actions
# ============================================================================

@router.post("", status_code=201)
async def create_ticket(body: CreateTicketRequest, desk: TicketDesk = Depends(get_desk)):
    """File a ticket for the acting unit, uploading any attached files first"""
    files = [payload.decode() for payload in body.files]
    draft = TicketDraft(
        reporter_name=body.reporter_name,
        title=body.title,
        category=body.category,
        sub_category=body.sub_category,
        description=body.description,
        attachments=body.attachments,
    )
    ticket = await desk.create_ticket(draft, files)
    return ticket_payload(desk.user, ticket)


@router.post("/{ticket_id}/schedule")
async def schedule_ticket(ticket_id: str, body: ScheduleRequest, desk: TicketDesk = Depends(get_desk)):
    ticket = await desk.schedule(ticket_id, body.scheduled_at)
    return ticket_payload(desk.user, ticket)


@router.post("/{ticket_id}/start")
async def start_ticket(ticket_id: str, desk: TicketDesk = Depends(get_desk)):
    ticket = await desk.start(ticket_id)
    return ticket_payload(desk.user, ticket)


@router.post("/{ticket_id}/complete")
async def complete_ticket(ticket_id: str, desk: TicketDesk = Depends(get_desk)):
    ticket = await desk.complete(ticket_id)
    return ticket_payload(desk.user, ticket)


@router.post("/{ticket_id}/cancel")
async def cancel_ticket(ticket_id: str, desk: TicketDesk = Depends(get_desk)):
    ticket = await desk.cancel(ticket_id)
    return ticket_payload(desk.user, ticket)


@router.post("/{ticket_id}/priority")
async def change_priority(ticket_id: str, body: PriorityRequest, desk: TicketDesk = Depends(get_desk)):
    ticket = await desk.change_priority(ticket_id, body.priority)
    return ticket_payload(desk.user, ticket)


@router.post("/{ticket_id}/review")
async def submit_review(ticket_id: str, body: ReviewDraft, desk: TicketDesk = Depends(get_desk)):
    """Rate the completed work; closes the ticket"""
    ticket = await desk.submit_review(ticket_id, body)
    return ticket_payload(desk.user, ticket)
