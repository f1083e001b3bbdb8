"""Error taxonomy and the handlers that render it.

Every failure leaves the API as
    {"error": {"code", "message", "request_id"}, "detail": message}
with the request id echoed in the x-request-id header.
"""

import builtins
import logging
from typing import Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.requests import Request

from academy.core.logging import get_request_id

logger = logging.getLogger("academy.errors")


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id


class UnauthenticatedError(AppError):
    code = "unauthenticated"
    status_code = 401


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class PermissionError(AppError, builtins.PermissionError):
    code = "forbidden"
    status_code = 403


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class ExternalServiceError(AppError):
    """Billing, email or blob storage failed; provider details stay in logs."""
    code = "external_service_error"
    status_code = 502


# Codes for errors raised by the framework itself (routing, auth schemes)
HTTP_STATUS_CODES = {
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
}


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or uuid4().hex


def error_response(request: Request, status: int, code: str, message: str, request_id: Optional[str] = None) -> JSONResponse:
    rid = request_id or _request_id(request)
    logger.log(
        logging.ERROR if status >= 500 else logging.WARNING,
        f"request.failed {code}: {message}",
        extra={"request_id": rid, "error_code": code, "status": status, "path": request.url.path},
    )
    response = JSONResponse(
        status_code=status,
        content={"error": {"code": code, "message": message, "request_id": rid}, "detail": message},
    )
    response.headers["x-request-id"] = rid
    return response


async def app_error_handler(request: Request, exc: AppError):
    return error_response(request, exc.status_code, exc.code, exc.message, exc.request_id)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Body/query validation is a 400 naming the first offending field."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return error_response(request, 400, "validation_error", message)


async def http_error_handler(request: Request, exc: HTTPException):
    code = HTTP_STATUS_CODES.get(exc.status_code, "http_error")
    return error_response(request, exc.status_code, code, str(exc.detail or "HTTP error"))


async def integrity_error_handler(request: Request, exc: IntegrityError):
    # A unique or foreign key constraint caught what the service checks missed
    logger.warning("db.integrity_error", exc_info=exc)
    return error_response(request, 409, "conflict", "The request conflicts with existing data")


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled.exception", exc_info=exc)
    return error_response(request, 500, "internal_error", "Unexpected error")
