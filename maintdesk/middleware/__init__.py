"""
Middleware modules
"""
from .actor_middleware import ActorMiddleware
from .logging_middleware import LoggingMiddleware

__all__ = ["ActorMiddleware", "LoggingMiddleware"]
