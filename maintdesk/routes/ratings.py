"""
Officer rating routes
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from maintdesk.models.schemas import RATING_CRITERIA, Ticket
from maintdesk.routes.dependencies import get_desk
from maintdesk.services.desk import TicketDesk
from maintdesk.services.ratings import OfficerRating, review_delay, round_rating

router = APIRouter(prefix="/api/v1/ratings", tags=["ratings"])


def rating_payload(rating: Optional[OfficerRating]) -> Optional[Dict[str, Any]]:
    if rating is None:
        return None
    return {
        "officer": rating.officer,
        "reviewCount": rating.review_count,
        "averages": rating.display_averages(),
        "overall": round_rating(rating.overall),
    }


def review_payload(ticket: Ticket) -> Dict[str, Any]:
    """One reviewed ticket with its per-criterion scores and comments"""
    review = ticket.review
    return {
        "ticketId": ticket.id,
        "title": ticket.title,
        "unit": ticket.unit,
        "officer": ticket.assigned_officer,
        "reviewedAt": review.reviewed_at.isoformat(),
        "reviewDelay": review_delay(ticket),
        "criteria": [
            {
                "key": criterion.key,
                "label": criterion.label,
                "score": review.score(criterion),
                "comment": review.comment(criterion),
            }
            for criterion in RATING_CRITERIA
        ],
    }


def review_list(tickets: List[Ticket]) -> List[Dict[str, Any]]:
    return [review_payload(ticket) for ticket in tickets]


@router.get("")
async def list_ratings(desk: TicketDesk = Depends(get_desk)):
    """Every officer's averages plus all reviews, newest first"""
    aggregates, reviewed = desk.officer_ratings()
    return {
        "officers": [rating_payload(rating) for rating in aggregates],
        "reviews": review_list(reviewed),
    }


@router.get("/me")
async def my_ratings(desk: TicketDesk = Depends(get_desk)):
    """The acting officer's averages and reviews"""
    rating, reviewed = desk.my_rating()
    return {
        "rating": rating_payload(rating),
        "reviews": review_list(reviewed),
    }
