"""
Shared route dependencies

The app keeps one TicketDesk per logged-in username in app.state.desks so
that in-flight suppression spans concurrent requests of the same user.
Desks are only created by a successful login and removed on logout, so
actor headers must name a user who logged in with that role.
"""
from typing import Dict

from fastapi import Request

from maintdesk.errors import AuthenticationError
from maintdesk.models.schemas import User
from maintdesk.services.desk import TicketDesk
from maintdesk.services.store import TicketStore
from maintdesk.utils.logger import get_logger

logger = get_logger(__name__)


def get_store(request: Request) -> TicketStore:
    return request.app.state.store


def get_actor(request: Request) -> User:
    """Acting user set by ActorMiddleware"""
    return request.state.user


def register_desk(request: Request, desk: TicketDesk) -> None:
    desks: Dict[str, TicketDesk] = request.app.state.desks
    desks[desk.user.username] = desk


def release_desk(request: Request, user: User) -> None:
    """Drop the user's session; later requests need a new login"""
    desks: Dict[str, TicketDesk] = request.app.state.desks
    desk = desks.pop(user.username, None)
    if desk is not None:
        desk.logout()


def desk_for(request: Request, user: User) -> TicketDesk:
    """
    Session opened by the user's login

    Raises:
        AuthenticationError: If the user has not logged in, or logged in
            with a different role than the one claimed
    """
    desks: Dict[str, TicketDesk] = request.app.state.desks
    desk = desks.get(user.username)
    if desk is None or desk.state.user != user:
        logger.warning(f"Rejected actor {user.username} ({user.role.value}) without a matching login")
        raise AuthenticationError("Not logged in. Log in via /api/v1/auth/login first.")
    return desk


async def get_desk(request: Request) -> TicketDesk:
    """Desk session for the acting user with a freshly loaded ticket list"""
    desk = desk_for(request, get_actor(request))
    await desk.refresh()
    return desk
