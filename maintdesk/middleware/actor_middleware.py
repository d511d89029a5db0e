"""
Actor Middleware - Extract and validate the acting user
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable

from maintdesk.models.schemas import Role, User
from maintdesk.utils.logger import get_logger

logger = get_logger(__name__)

PUBLIC_PATHS = {
    "/",
    "/api/health",
    "/api/health/dependencies",
    "/api/v1/auth/login",
    "/docs",
    "/openapi.json",
    "/redoc",
}


class ActorMiddleware(BaseHTTPMiddleware):
    """
    Middleware to extract the acting user from requests

    Reads the identity established at login from:
    1. Header: X-Username
    2. Header: X-Role (User, Officer or Admin)

    Sets request.state.user for downstream use. The headers are not a
    credential: routes accept them only when they match a user who logged
    in through /api/v1/auth/login with the same role (see
    routes.dependencies.desk_for). There are no signed tokens.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        """Process request and extract the actor"""

        # Skip actor validation for health/docs/login endpoints and CORS preflight
        if request.url.path in PUBLIC_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        username = (request.headers.get("X-Username") or "").strip()
        role_name = (request.headers.get("X-Role") or "").strip()

        if not username or not role_name:
            logger.warning(f"Missing actor headers for {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Missing actor. Provide X-Username and X-Role headers."}
            )

        try:
            role = Role(role_name)
        except ValueError:
            logger.warning(f"Invalid role '{role_name}' for {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"detail": f"Invalid role '{role_name}'. Use User, Officer or Admin."}
            )

        # Store in request state for downstream use
        request.state.user = User(username=username, role=role)
        logger.debug(f"Actor: {username} ({role.value}) | Path: {request.url.path}")

        return await call_next(request)
