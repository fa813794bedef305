"""
app/core/errors.py
Structured errors raised by the guard, the rule engine and the handlers.

Every error carries a machine-readable ``kind`` and a human-readable
``message``. The FastAPI handlers registered in ``install_error_handlers``
render them as ``{"error": {"kind": ..., "message": ...}}`` and never expose
stack traces or internal state.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("planner.errors")


class PlannerError(Exception):
    """Base class for every error a caller can see."""

    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": {"kind": self.kind, "message": self.message}}


class Unauthenticated(PlannerError):
    kind = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "The function must be called while authenticated."):
        super().__init__(message)


class NotVerified(PlannerError):
    kind = "not-verified"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Your email address must be verified first."):
        super().__init__(message)


class InvalidArgument(PlannerError):
    kind = "invalid-argument"
    status_code = status.HTTP_400_BAD_REQUEST


class ResourceNotFound(InvalidArgument):
    """Unknown activity, risk or user id. Same kind as InvalidArgument, but a 404 on the wire."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, identifier: Any, resource: str = "activity"):
        super().__init__(f"The {resource} {identifier} doesn't exist.")
        self.resource = resource
        self.identifier = identifier


class PermissionDenied(PlannerError):
    kind = "permission-denied"
    status_code = status.HTTP_403_FORBIDDEN


class ConcurrentModification(PlannerError):
    kind = "aborted"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "The activity was changed by someone else. Reload and try again."):
        super().__init__(message)


# --------- FastAPI handlers --------- #

async def _planner_error_handler(request: Request, exc: PlannerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"The argument {where} is invalid." if where else "No parameters have been provided."
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=InvalidArgument(message).to_dict())


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = PlannerError("An internal error occurred.").to_dict()
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PlannerError, _planner_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
