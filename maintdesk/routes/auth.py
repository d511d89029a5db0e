"""
Login and logout routes
"""
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from maintdesk.models.schemas import User
from maintdesk.routes.dependencies import get_actor, get_store, register_desk, release_desk
from maintdesk.services.desk import TicketDesk
from maintdesk.services.store import TicketStore

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


class LoginRequest(BaseModel):
    """Credentials checked by the ticket store"""
    username: str = Field(..., min_length=1)
    password: str


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    store: TicketStore = Depends(get_store),
):
    """
    Log in and open a desk session

    Subsequent requests identify the user with the X-Username and X-Role
    headers taken from this response.
    """
    desk = TicketDesk(store)
    user = await desk.login(body.username, body.password)
    register_desk(request, desk)
    return {"user": user.to_wire()}


@router.post("/logout", status_code=204)
async def logout(request: Request, user: User = Depends(get_actor)):
    """Close the acting user's desk session"""
    release_desk(request, user)
