"""
Request logging middleware with correlation IDs for request tracing.

Every request gets a short request id; the client session id comes from the
X-Session-ID header. Both live in contextvars (and in structlog's context) for
the duration of the request so service logs can be tied back to it.
"""
import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Callable, Dict, MutableMapping, Tuple

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

SESSION_HEADER = "X-Session-ID"
REQUEST_ID_HEADER = "X-Request-ID"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
session_id_var: ContextVar[str] = ContextVar("session_id", default="")

logger = logging.getLogger(__name__)


def get_request_id() -> str:
    return request_id_var.get()


def get_session_id() -> str:
    return session_id_var.get()


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    session_id: str
    method: str
    path: str

    def log_fields(self, stage: str, **extra: Any) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "session_id": self.session_id,
            "method": self.method,
            "path": self.path,
            "stage": stage,
            **extra,
        }


def bind_request_context(request: Request) -> RequestContext:
    """Assign a request id and pick up the session id for the current request"""
    context = RequestContext(
        request_id=uuid.uuid4().hex[:8],
        session_id=request.headers.get(SESSION_HEADER, ""),
        method=request.method,
        path=request.url.path,
    )
    request_id_var.set(context.request_id)
    session_id_var.set(context.session_id)
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=context.request_id, session_id=context.session_id)
    return context


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs request start/end with timing and tags responses with the request id"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        context = bind_request_context(request)
        started = time.perf_counter()
        logger.info(f"[{context.request_id}] → {context.method} {context.path}", extra=context.log_fields("request_start"))

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.error(
                f"[{context.request_id}] ✗ {type(e).__name__}: {str(e)[:100]} ({duration_ms:.0f}ms)",
                extra=context.log_fields("request_error", error=str(e), duration_ms=duration_ms),
                exc_info=True,
            )
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        level = logging.INFO if response.status_code < 400 else logging.WARNING
        logger.log(
            level,
            f"[{context.request_id}] ← {response.status_code} ({duration_ms:.0f}ms)",
            extra=context.log_fields("request_end", status_code=response.status_code, duration_ms=duration_ms),
        )

        response.headers[REQUEST_ID_HEADER] = context.request_id
        if context.session_id:
            response.headers[SESSION_HEADER] = context.session_id
        return response


class ContextualLogger(logging.LoggerAdapter):
    """Prefixes every message with the current [request_id][sess:...] tags"""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        prefix = ""
        request_id = get_request_id()
        session_id = get_session_id()
        if request_id:
            prefix = f"[{request_id}]"
        if session_id:
            prefix += f"[sess:{session_id[:8]}]"
        return (f"{prefix} {msg}" if prefix else msg), kwargs


def get_logger(name: str) -> ContextualLogger:
    """Logger for request-scoped service code"""
    return ContextualLogger(logging.getLogger(name), {})
