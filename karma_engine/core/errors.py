"""
Exception hierarchy for the Karma Engine.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Only input-validation errors ever reach the caller. Degraded external
dependencies (text completion) are handled inside the engine.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class KarmaEngineException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class EmptyActionTextError(KarmaEngineException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "EMPTY_ACTION_TEXT"

    def __init__(self):
        super().__init__(message="Action text is required.")


class UserNotFoundError(KarmaEngineException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "USER_NOT_FOUND"

    def __init__(self, user_id: int):
        super().__init__(
            message=f"User {user_id} not found.",
            details={"user_id": user_id},
        )


class EntryNotFoundError(KarmaEngineException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "ENTRY_NOT_FOUND"

    def __init__(self, user_id: int, entry_id: int):
        super().__init__(
            message=f"Karma entry {entry_id} not found for user {user_id}.",
            details={"user_id": user_id, "entry_id": entry_id},
        )


class InvalidPeriodTypeError(KarmaEngineException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_PERIOD_TYPE"

    def __init__(self, period_type: str):
        super().__init__(
            message=f"Unknown period type {period_type!r}. Use daily, weekly or monthly.",
            details={"period_type": period_type},
        )


class TextCompletionError(Exception):
    """
    Raised by text-completion clients on timeout, non-2xx or unreadable
    bodies. Never leaves the engine: the classifier and the insight
    generators catch it and fall back.
    """


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def karma_exception_handler(request: Request, exc: KarmaEngineException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
