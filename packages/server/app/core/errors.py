"""
Error taxonomy shared by the services and the HTTP layer.

Every failure that reaches a caller is one of these, so the caller can tell
validation problems, uniqueness conflicts, and which of the identity, profile
or role writes failed. The HTTP layer renders them as ``{"error", "code"}``.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

log = structlog.get_logger()


class TaskflowError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(TaskflowError):
    status_code = 400
    code = "validation_error"


class ConflictError(TaskflowError):
    status_code = 400
    code = "conflict"


class IdentityError(TaskflowError):
    status_code = 500
    code = "identity_error"


class ProfileError(TaskflowError):
    status_code = 500
    code = "profile_error"


class RoleError(TaskflowError):
    status_code = 500
    code = "role_error"


class AuthorizationError(TaskflowError):
    status_code = 403
    code = "unauthorized"


class NotFoundError(TaskflowError):
    status_code = 404
    code = "not_found"


class StoreUnavailableError(TaskflowError):
    status_code = 500
    code = "store_error"


def _describe(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    msg = first.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(TaskflowError)
    async def _taskflow_error(request: Request, exc: TaskflowError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "code": exc.code},
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": _describe(exc), "code": ValidationError.code},
        )

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception):
        log.exception("request.unhandled_error", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "code": TaskflowError.code},
        )
