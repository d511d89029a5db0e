"""
Pytest configuration and fixtures
"""
import pytest
from datetime import datetime, timezone
from typing import Dict, Any

from maintdesk.models.schemas import Role, Ticket, TicketDraft, User
from maintdesk.services.desk import DeskState, TicketDesk
from maintdesk.services.store import InMemoryTicketStore

T0 = datetime(2025, 10, 20, 8, 0, 0, tzinfo=timezone.utc)

USERS = {
    "outlet-a": ("secret-a", Role.USER),
    "outlet-b": ("secret-b", Role.USER),
    "budi": ("secret-budi", Role.OFFICER),
    "rina": ("secret-rina", Role.OFFICER),
    "admin": ("secret-admin", Role.ADMIN),
}


def review_record(score: int = 4, reviewed_at: str = "2025-10-24T10:00:00Z", **comments) -> Dict[str, Any]:
    """Review as stored, every criterion given the same score"""
    record: Dict[str, Any] = {"reviewedAt": reviewed_at}
    for key in ("attitude", "neatness", "quality", "speed", "communication"):
        record[key] = score
        record[f"{key}Comment"] = comments.get(key, "")
    return record


def ticket_record(**overrides) -> Dict[str, Any]:
    """Ticket as stored; overrides use store (camelCase) field names"""
    record = {
        "id": "TKT-0001",
        "title": "AC bocor di ruang tunggu",
        "reporterName": "Sari",
        "unit": "outlet-a",
        "category": "AC",
        "subCategory": "AC bocor",
        "description": "Air menetes dari unit indoor",
        "status": "Open",
        "priority": "Medium",
        "createdAt": T0.isoformat(),
        "attachments": [],
    }
    record.update(overrides)
    return record


@pytest.fixture
def make_record():
    return ticket_record


@pytest.fixture
def make_review():
    return review_record


@pytest.fixture
def make_ticket():
    """Factory building Ticket models from store records"""
    def _make(**overrides) -> Ticket:
        return Ticket.model_validate(ticket_record(**overrides))
    return _make


@pytest.fixture
def sample_draft() -> TicketDraft:
    """Complete new-ticket form for outlet-a"""
    return TicketDraft(
        reporter_name="Sari",
        title="Lampu dapur mati",
        unit="outlet-a",
        category="Kelistrikan",
        sub_category="Lampu mati",
        description="Dua lampu di dapur tidak menyala sejak pagi",
    )


@pytest.fixture
def memory_store() -> InMemoryTicketStore:
    return InMemoryTicketStore(users=USERS, default_priority="Medium")


@pytest.fixture
def desk_for(memory_store):
    """Factory for a logged-in desk session on the shared in-memory store"""
    def _desk(username: str) -> TicketDesk:
        _, role = USERS[username]
        return TicketDesk(memory_store, DeskState(user=User(username=username, role=role)))
    return _desk
