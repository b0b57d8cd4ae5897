"""
Custom exception hierarchy for Taskwatch.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Ownership failures on events / occurrences surface as NOT_FOUND so the API
never confirms that another user's record exists.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class TaskwatchException(Exception):
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


# --- authentication / authorization ---

class AuthenticationRequiredError(TaskwatchException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"

    def __init__(self):
        super().__init__(message="Authentication required.")


class ForbiddenError(TaskwatchException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class EditNotAllowedError(TaskwatchException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "EDIT_NOT_ALLOWED"

    def __init__(self):
        super().__init__(message="Only manual notes can be edited.")


class PostDeleteNotAllowedError(TaskwatchException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "DELETE_NOT_ALLOWED"

    def __init__(self):
        super().__init__(message="Only manual notes can be deleted.")


class MemoNotAllowedError(TaskwatchException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "MEMO_NOT_ALLOWED"

    def __init__(self):
        super().__init__(message="Only automatic timeline posts support memos.")


# --- validation ---

class ValidationFailedError(TaskwatchException):
    """Business-rule validation failure carrying a per-field detail map."""
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"

    def __init__(self, fields: dict[str, str]):
        super().__init__(
            message="Request validation failed.",
            details={"fields": fields},
        )


class InvalidRangeError(TaskwatchException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_RANGE"


class RangeTooLargeError(TaskwatchException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "RANGE_TOO_LARGE"

    def __init__(self, max_days: int):
        super().__init__(
            message=f"Requested range must be {max_days} days or less.",
            details={"max_days": max_days},
        )


class InvalidParametersError(TaskwatchException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_PARAMETERS"


class InvalidWeekStartError(TaskwatchException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_WEEK_START"

    def __init__(self, raw: str):
        super().__init__(
            message="week_start must be formatted as YYYY-MM-DD.",
            details={"week_start": raw},
        )


class InvalidTargetError(TaskwatchException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_TARGET"

    def __init__(self):
        super().__init__(message="You cannot add yourself as a friend.")


class EmptyUpdateError(TaskwatchException):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "EMPTY_UPDATE"


class NoChangesError(TaskwatchException):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "NO_CHANGES"

    def __init__(self, message: str = "No field differs from the stored value."):
        super().__init__(message=message)


class RecurrenceError(TaskwatchException):
    """Caller-supplied recurrence rule could not be parsed or is unsupported."""
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_RRULE"

    def __init__(self, message: str, rule: str | None = None):
        super().__init__(
            message=message,
            details={"rrule": rule} if rule else {},
        )


# --- conflict ---

class StatusUnchangedError(TaskwatchException):
    http_status = status.HTTP_409_CONFLICT
    code = "STATUS_UNCHANGED"

    def __init__(self, current: str):
        super().__init__(
            message=f"Occurrence is already {current}.",
            details={"status": current},
        )


class DeleteNotAllowedError(TaskwatchException):
    http_status = status.HTTP_409_CONFLICT
    code = "DELETE_NOT_ALLOWED"

    def __init__(self, occurrence_id: int):
        super().__init__(
            message="Occurrences whose scheduled time has passed must be evaluated, not deleted.",
            details={"id": occurrence_id},
        )


class RequestNotPendingError(TaskwatchException):
    http_status = status.HTTP_409_CONFLICT
    code = "REQUEST_NOT_PENDING"

    def __init__(self, current: str):
        super().__init__(
            message="Friend request is no longer pending.",
            details={"status": current},
        )


class AlreadyFriendsError(TaskwatchException):
    http_status = status.HTTP_409_CONFLICT
    code = "ALREADY_FRIENDS"

    def __init__(self):
        super().__init__(message="Friendship already exists.")


class RequestAlreadyExistsError(TaskwatchException):
    http_status = status.HTTP_409_CONFLICT
    code = "REQUEST_ALREADY_EXISTS"

    def __init__(self):
        super().__init__(message="Friend request already sent.")


# --- not found ---

class NotFoundError(TaskwatchException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    label = "Resource"

    def __init__(self, resource_id: Any = None):
        super().__init__(
            message=f"{self.label} not found.",
            details={"id": resource_id} if resource_id is not None else {},
        )


class EventNotFoundError(NotFoundError):
    code = "EVENT_NOT_FOUND"
    label = "Event"


class OccurrenceNotFoundError(NotFoundError):
    code = "OCCURRENCE_NOT_FOUND"
    label = "Occurrence"


class PostNotFoundError(NotFoundError):
    code = "POST_NOT_FOUND"
    label = "Timeline post"


class FriendRequestNotFoundError(NotFoundError):
    code = "REQUEST_NOT_FOUND"
    label = "Friend request"


class FriendshipNotFoundError(NotFoundError):
    code = "FRIENDSHIP_NOT_FOUND"
    label = "Friendship"


class UserNotFoundError(NotFoundError):
    code = "USER_NOT_FOUND"
    label = "User"


class InvalidCursorError(TaskwatchException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "INVALID_CURSOR"

    def __init__(self, cursor: Any, message: str = "Cursor does not match the current filter."):
        super().__init__(message=message, details={"cursor": cursor})


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def taskwatch_exception_handler(request: Request, exc: TaskwatchException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    fields: dict[str, str] = {}
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query", "path"))
        field_errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
        fields.setdefault(field or "body", error["msg"])
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"fields": fields, "errors": field_errors},
        },
    )


async def persistence_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception(
        "Persistence failure on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
