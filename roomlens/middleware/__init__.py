"""
Middleware package for the API.
"""
from roomlens.middleware.logging_middleware import (
    SESSION_HEADER,
    ContextualLogger,
    RequestLoggingMiddleware,
    get_logger,
    get_request_id,
    get_session_id,
)

__all__ = [
    "SESSION_HEADER",
    "RequestLoggingMiddleware",
    "ContextualLogger",
    "get_logger",
    "get_request_id",
    "get_session_id",
]
