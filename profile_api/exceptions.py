"""Error taxonomy and the handlers that render it as JSON."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ProfileApiError(Exception):
    """Base class for errors that map onto an HTTP status."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "PROFILE_API_ERROR",
        status_code: int = 500,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class RecordValidationError(ProfileApiError):
    """Raised when a user candidate breaks one or more schema rules."""

    def __init__(self, errors: list[dict[str, str]]) -> None:
        summary = "; ".join(f"{item['field']}: {item['reason']}" for item in errors)
        super().__init__(
            f"Validation failed: {summary}",
            code="VALIDATION_ERROR",
            status_code=400,
            details=errors,
        )
        self.errors = errors

    @property
    def fields(self) -> list[str]:
        return [item["field"] for item in self.errors]


class DuplicateEmailError(ProfileApiError):
    def __init__(self, email: str) -> None:
        super().__init__(
            "User with this email already exists",
            code="DUPLICATE_EMAIL",
            status_code=400,
            details={"email": email},
        )


class UserNotFoundError(ProfileApiError):
    def __init__(self, user_id: str) -> None:
        super().__init__(
            "User not found",
            code="USER_NOT_FOUND",
            status_code=404,
            details={"id": user_id},
        )


class StoreConnectionError(ProfileApiError):
    """Raised when the record store cannot be reached at connect time."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            f"Could not connect to record store: {reason}",
            code="STORE_CONNECTION_ERROR",
            status_code=500,
        )


class StoreUnavailableError(ProfileApiError):
    """Raised when a health ping to the record store fails."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            f"Record store unavailable: {reason}",
            code="STORE_UNAVAILABLE",
            status_code=500,
        )


async def profile_api_exception_handler(_: Request, exc: ProfileApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in error["loc"] if part != "body") or "body", "reason": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Malformed request", "code": "VALIDATION_ERROR", "details": errors},
    )


async def store_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Record store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Record store unavailable", "code": "STORE_UNAVAILABLE"},
    )


async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "code": "INTERNAL_ERROR"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers that turn domain and store failures into JSON bodies."""

    app.add_exception_handler(ProfileApiError, profile_api_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, store_exception_handler)
    app.add_exception_handler(Exception, unexpected_exception_handler)
