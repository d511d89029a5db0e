"""
Logging Middleware - Request/Response logging
"""
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable
from maintdesk.utils.logger import get_logger

logger = get_logger(__name__)

QUIET_PATHS = {"/api/health"}


def _actor_label(request: Request) -> str:
    user = getattr(request.state, "user", None)
    if user is None:
        return request.headers.get("X-Username") or "anonymous"
    return f"{user.username}/{user.role.value}"


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log ticket desk requests

    Logs method, path, acting user, status code and duration, and adds an
    X-Process-Time header (milliseconds) to every response.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        """Process and log request/response"""

        # Health checks are polled constantly
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.time()
        method = request.method
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                f"✗ {method} {path} [{_actor_label(request)}] ERROR ({duration_ms}ms): {e}",
                exc_info=True
            )
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        log = logger.warning if response.status_code >= 500 else logger.info
        log(f"← {method} {path} [{_actor_label(request)}] {response.status_code} ({duration_ms}ms)")

        response.headers["X-Process-Time"] = str(duration_ms)
        return response
