"""
Maintenance Ticket Desk - FastAPI Backend
"""
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from maintdesk import __version__
from maintdesk.config import get_settings
from maintdesk.errors import (
    ActionInProgressError,
    AuthenticationError,
    InvalidTransitionError,
    PermissionDeniedError,
    TicketingError,
    TicketNotFoundError,
    TransportError,
    ValidationError,
)
from maintdesk.middleware.actor_middleware import ActorMiddleware
from maintdesk.middleware.logging_middleware import LoggingMiddleware
from maintdesk.routes import auth, health, ratings, tickets
from maintdesk.services.store import TicketStore, build_store
from maintdesk.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

# Most specific classes first; StoreError is covered by TransportError
ERROR_STATUS = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (TicketNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (ActionInProgressError, status.HTTP_409_CONFLICT),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (TransportError, status.HTTP_502_BAD_GATEWAY),
)


def status_for(error: TicketingError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def ticketing_error_handler(request: Request, exc: TicketingError) -> JSONResponse:
    """Translate desk errors into JSON responses"""
    status_code = status_for(exc)
    content = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, ValidationError) and exc.fields:
        content["fields"] = exc.fields
    if isinstance(exc, TransportError):
        content["detail"] = f"{exc} Please try again."
        logger.error(f"Ticket store failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=status_code, content=content)


def create_app(store: Optional[TicketStore] = None) -> FastAPI:
    """
    Build the API application

    Args:
        store: Ticket store to use; defaults to the one selected in settings
    """
    app = FastAPI(
        title="Maintenance Ticket Desk",
        description="Facility maintenance tickets for units, officers and admins",
        version=__version__
    )
    app.state.store = store if store is not None else build_store()
    app.state.desks = {}

    # Middleware order matters: the last one added runs first
    # 1. CORS (innermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 2. Actor (acting user from headers)
    app.add_middleware(ActorMiddleware)

    # 3. Logging (outermost, sees every request including rejected ones)
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(TicketingError, ticketing_error_handler)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(tickets.router)
    app.include_router(ratings.router)

    @app.get("/")
    async def root():
        return {"message": "Maintenance Ticket Desk API", "version": __version__}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.fastapi_host, port=settings.fastapi_port)
