"""
Exception hierarchy for the RoomLens pipeline and its HTTP mapping
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class RoomLensError(Exception):
    """Base exception for all RoomLens errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInput(RoomLensError):
    """Raised when a request is missing required fields or is malformed."""

    status_code = status.HTTP_400_BAD_REQUEST


class ProviderNotConfigured(RoomLensError):
    """Raised when a provider credential is absent."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, credential: str) -> None:
        super().__init__(f"{credential} is not configured", {"credential": credential})


class FetchError(RoomLensError):
    """Raised when an upstream HTTP fetch returns a non-success status."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, upstream_status: Optional[int] = None, url: Optional[str] = None) -> None:
        super().__init__(message, {"upstream_status": upstream_status, "url": url})
        self.upstream_status = upstream_status


class ProviderError(RoomLensError):
    """Raised when a downstream provider call fails."""

    status_code = status.HTTP_502_BAD_GATEWAY


class EmptyModelResponse(ProviderError):
    """Raised when a model reply carries no text content."""


class UnparsableResponse(ProviderError):
    """Raised when model text cannot be turned into the expected JSON object."""

    def __init__(self, message: str, payload: str = "", details: Optional[Dict[str, Any]] = None) -> None:
        merged = {"payload": payload}
        merged.update(details or {})
        super().__init__(message, merged)
        self.payload = payload


class NoResultsFound(RoomLensError):
    """Raised when a dependent search yields zero results."""

    status_code = status.HTTP_404_NOT_FOUND


async def roomlens_exception_handler(request: Request, exc: RoomLensError) -> JSONResponse:
    """Render RoomLens exceptions as JSON with their mapped status code."""
    logger.error(
        f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
        extra={"error_type": type(exc).__name__, "details": exc.details},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "type": type(exc).__name__, "details": exc.details},
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or incomplete request bodies are client errors."""
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    logger.warning(f"Rejected request to {request.url.path}: {message}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message, "type": InvalidInput.__name__, "details": {"errors": len(errors)}},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RoomLensError, roomlens_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
