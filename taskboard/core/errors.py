"""
Error Taxonomy Module

Every failure the services raise is one of the exceptions below. They extend
FastAPI's HTTPException so a route can simply let them propagate; the handlers
registered in ``taskboard.main`` render them as ``{"error", "detail", "fields"}``.

Hidden resources are reported as NotFound, never Forbidden, so a caller cannot
tell "does not exist" apart from "exists but you may not see it".
"""
import logging
from typing import List, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from taskboard.core.config import settings

logger = logging.getLogger(__name__)


class TaskboardError(HTTPException):
    """Base class carrying a machine-readable error code."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "server_error"
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None, fields: Optional[List[str]] = None, headers=None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )
        self.fields = fields or []


class NotFound(TaskboardError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Resource not found"


class Forbidden(TaskboardError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "Permission denied"


class ValidationFailed(TaskboardError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_failed"
    default_detail = "Validation failed"


class NoFieldsToUpdate(ValidationFailed):
    code = "no_fields_to_update"
    default_detail = "No fields to update"


class LastAdminProtected(ValidationFailed):
    code = "last_admin_protected"
    default_detail = "Cannot remove the last active admin"


class Conflict(TaskboardError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_detail = "Resource already exists"


class Unauthorized(TaskboardError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_detail = "Not authenticated"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class TokenExpired(Unauthorized):
    code = "token_expired"
    default_detail = "Token expired"


class TokenInvalid(Unauthorized):
    code = "token_invalid"
    default_detail = "Invalid token"


def _error_body(code: str, detail: str, fields: Optional[List[str]] = None) -> dict:
    return {"error": code, "detail": detail, "fields": fields or []}


async def taskboard_error_handler(request: Request, exc: TaskboardError) -> JSONResponse:
    headers = dict(exc.headers or {})
    # A token reissued before the route failed still reaches the client
    refreshed_token = getattr(request.state, "refreshed_token", None)
    if refreshed_token:
        headers[settings.REFRESH_TOKEN_HEADER] = refreshed_token
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.detail, exc.fields),
        headers=headers or None,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI body/query validation errors as ValidationFailed."""
    fields = []
    for error in exc.errors():
        # Drop the leading "body"/"query" marker from the location
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        if location:
            fields.append(".".join(location))
    return JSONResponse(
        status_code=ValidationFailed.status_code,
        content=_error_body(ValidationFailed.code, "Validation failed", fields),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("server_error", "Internal server error"),
    )
