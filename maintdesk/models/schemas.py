"""
Pydantic models for the maintenance ticket desk

This module contains the ticket, review and attachment schemas exchanged
with the spreadsheet ticket store. Field names are snake_case in Python and
camelCase on the wire (reporterName, subCategory, scheduledAt, ...).

Records coming back from the store are decoded defensively:
- timestamps may be datetimes or serialized strings
- attachments may still be a JSON-encoded string
- malformed values are logged and replaced with safe defaults
"""
import json
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List, NamedTuple

from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from pydantic.alias_generators import to_camel

from maintdesk.utils.decoding import (
    decode_attachments,
    decode_optional_timestamp,
    decode_required_timestamp,
    EPOCH,
)
from maintdesk.utils.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Enums
# ============================================================================

class _LenientEnum(str, Enum):
    """String enum that also accepts member names and any letter case"""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            needle = value.replace(" ", "").replace("_", "").lower()
            for member in cls:
                if needle in (
                    member.value.replace(" ", "").lower(),
                    member.name.replace("_", "").lower(),
                ):
                    return member
        return None


class Role(_LenientEnum):
    """Dashboard roles"""
    USER = "User"
    OFFICER = "Officer"
    ADMIN = "Admin"


class TicketStatus(_LenientEnum):
    """Ticket lifecycle statuses"""
    OPEN = "Open"
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CLOSED = "Closed"


class Priority(_LenientEnum):
    """Ticket priorities"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


LIVE_STATUSES = frozenset({TicketStatus.OPEN, TicketStatus.SCHEDULED, TicketStatus.IN_PROGRESS})
FINISHED_STATUSES = frozenset({TicketStatus.COMPLETED, TicketStatus.CLOSED})


# ============================================================================
# Rating criteria
# ============================================================================

class RatingCriterion(NamedTuple):
    """One scored review criterion and its paired comment field"""
    key: str
    label: str
    comment_key: str


RATING_CRITERIA = (
    RatingCriterion("attitude", "Sikap & Etika Kerja", "attitude_comment"),
    RatingCriterion("neatness", "Kerapihan & Kebersihan", "neatness_comment"),
    RatingCriterion("quality", "Kualitas Hasil Pekerjaan", "quality_comment"),
    RatingCriterion("speed", "Kecepatan & Ketepatan Waktu", "speed_comment"),
    RatingCriterion("communication", "Penjelasan & Komunikasi", "communication_comment"),
)


# ============================================================================
# Base
# ============================================================================

class WireModel(BaseModel):
    """Base model with camelCase aliases for the ticket store"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with store field names and ISO-8601 timestamps"""
        return self.model_dump(by_alias=True, mode="json")


def _blank_to_empty(v: Any) -> Any:
    return "" if v is None else v


# ============================================================================
# Users and attachments
# ============================================================================

class User(WireModel):
    """Authenticated dashboard user; for the User role, username is the unit"""
    username: str = Field(..., min_length=1)
    role: Role


class Attachment(WireModel):
    """Uploaded file reference"""
    id: str = Field(..., min_length=1)
    name: str
    url: str


# ============================================================================
# Reviews
# ============================================================================

class ReviewDraft(WireModel):
    """
    Review as filled in by the reporting unit, before submission.

    A score of 0 means the criterion has not been rated yet.
    """
    attitude: int = 0
    attitude_comment: str = ""
    neatness: int = 0
    neatness_comment: str = ""
    quality: int = 0
    quality_comment: str = ""
    speed: int = 0
    speed_comment: str = ""
    communication: int = 0
    communication_comment: str = ""

    @field_validator(
        "attitude_comment", "neatness_comment", "quality_comment",
        "speed_comment", "communication_comment",
        mode="before",
    )
    @classmethod
    def blank_comments_to_empty(cls, v: Any) -> Any:
        return _blank_to_empty(v)

    def score(self, criterion: RatingCriterion) -> int:
        return getattr(self, criterion.key)

    def comment(self, criterion: RatingCriterion) -> str:
        return getattr(self, criterion.comment_key)


class Review(ReviewDraft):
    """Submitted review: five scores from 1 to 5 plus the submission time"""
    attitude: int = Field(..., ge=1, le=5)
    neatness: int = Field(..., ge=1, le=5)
    quality: int = Field(..., ge=1, le=5)
    speed: int = Field(..., ge=1, le=5)
    communication: int = Field(..., ge=1, le=5)
    reviewed_at: datetime

    @field_validator("reviewed_at", mode="before")
    @classmethod
    def decode_reviewed_at(cls, v: Any) -> datetime:
        return decode_required_timestamp(v, "reviewedAt")


# ============================================================================
# Tickets
# ============================================================================

class Ticket(WireModel):
    """
    Maintenance ticket as held by the ticket store.

    Attributes:
        id: Store-assigned identifier
        title: Short summary
        reporter_name: Person who filed the ticket
        unit: Reporting unit (outlet); also the User role's identity
        category: Facility category (AC, Kelistrikan, ...)
        sub_category: Category-specific problem
        description: Free-text details
        status: Lifecycle status
        priority: Officer-managed priority
        created_at: Creation time, set once by the store
        scheduled_at: Planned work date
        started_at: When work started
        completed_at: When work was completed
        assigned_officer: Officer who completed the work
        attachments: Uploaded file references
        review: Unit's rating of the completed work
    """
    id: str = Field(..., min_length=1)
    title: str = ""
    reporter_name: str = ""
    unit: str = ""
    category: str = ""
    sub_category: str = ""
    description: str = ""
    status: TicketStatus = TicketStatus.OPEN
    priority: Priority = Priority.MEDIUM
    created_at: datetime = EPOCH
    scheduled_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    assigned_officer: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)
    review: Optional[Review] = None

    @field_validator(
        "title", "reporter_name", "unit", "category", "sub_category", "description",
        mode="before",
    )
    @classmethod
    def blank_text_to_empty(cls, v: Any) -> Any:
        return _blank_to_empty(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def decode_created_at(cls, v: Any, info) -> datetime:
        return decode_required_timestamp(v, "createdAt", info.data.get("id"))

    @field_validator("scheduled_at", "started_at", "completed_at", mode="before")
    @classmethod
    def decode_optional_dates(cls, v: Any, info) -> Optional[datetime]:
        return decode_optional_timestamp(v, info.field_name, info.data.get("id"))

    @field_validator("attachments", mode="before")
    @classmethod
    def decode_attachment_list(cls, v: Any, info) -> List[Dict[str, Any]]:
        return decode_attachments(v, info.data.get("id"))

    @field_validator("assigned_officer", mode="before")
    @classmethod
    def blank_officer_to_none(cls, v: Any) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("review", mode="before")
    @classmethod
    def decode_review(cls, v: Any, info) -> Any:
        if v is None or v == "" or v == {}:
            return None
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                logger.warning(f"Ticket {info.data.get('id')}: review is not valid JSON, ignoring")
                return None
        return v

    @model_validator(mode="after")
    def check_review_status(self) -> "Ticket":
        """A review can only exist once the work is completed"""
        if self.review is not None and self.status not in FINISHED_STATUSES:
            raise ValueError(
                f"Ticket {self.id} has a review but status is '{self.status.value}'"
            )
        return self

    @property
    def is_reviewed(self) -> bool:
        return self.review is not None


class TicketDraft(WireModel):
    """
    New ticket as submitted by a unit.

    Excludes store-assigned fields (id, status, createdAt, priority) and the
    review. Attachments must already be uploaded and resolved to triples.
    """
    reporter_name: str = ""
    title: str = ""
    unit: str = ""
    category: str = ""
    sub_category: str = ""
    description: str = ""
    attachments: List[Attachment] = Field(default_factory=list)

    @field_validator(
        "reporter_name", "title", "unit", "category", "sub_category", "description",
        mode="before",
    )
    @classmethod
    def blank_text_to_empty(cls, v: Any) -> Any:
        return _blank_to_empty(v)

    def required_values(self) -> Dict[str, str]:
        """Required fields keyed by wire name"""
        return {
            "reporterName": self.reporter_name,
            "title": self.title,
            "unit": self.unit,
            "category": self.category,
            "subCategory": self.sub_category,
            "description": self.description,
        }


class TicketUpdate(WireModel):
    """
    Partial ticket update; only explicitly set fields are sent to the store.
    """
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    scheduled_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    assigned_officer: Optional[str] = None
    review: Optional[Review] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_unset=True)
