from __future__ import annotations

import logging
import re
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from jose import ExpiredSignatureError, JWTError  # type: ignore[import-untyped]
from library_api.core.config import settings
from library_api.core.errors import AppError
from library_api.db.session import is_unique_violation
from sqlalchemy.exc import IntegrityError, NoResultFound
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

_HTTP_ERROR_TYPES = {
    400: "BadRequestError",
    401: "AuthenticationError",
    403: "AuthorizationError",
    404: "NotFoundError",
    405: "MethodNotAllowedError",
    409: "ConflictError",
    413: "PayloadTooLargeError",
    415: "UnsupportedMediaTypeError",
    429: "RateLimitError",
}

BODY_PARSE_ERROR = "There was an error parsing the body"

# "UNIQUE constraint failed: books.isbn" (sqlite), "Key (isbn)=(...) already exists" (postgres)
_UNIQUE_FIELD_PATTERNS = (
    re.compile(r"UNIQUE constraint failed: \w+\.(\w+)"),
    re.compile(r"Key \((\w+)\)=\(.*\) already exists"),
)


def error_response(
    status_code: int,
    error_type: str,
    message: str,
    *,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    body = {"success": False, "error": {"type": error_type, "message": message, **extra}}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


def _unique_field(exc: IntegrityError) -> str:
    text = str(exc.orig)
    for pattern in _UNIQUE_FIELD_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(1)
    return "field"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return error_response(
        exc.status_code, exc.type, exc.message, headers=exc.headers, **exc.details
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if any(e.get("type") == "json_invalid" for e in errors):
        return error_response(400, "SyntaxError", "Invalid JSON in request body")

    details = [
        {
            "field": ".".join(str(p) for p in e.get("loc", ()) if p not in ("body", "query", "path")),
            "message": e.get("msg", ""),
        }
        for e in errors
    ]
    return error_response(400, "ValidationError", "Invalid data provided", details=details)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    if is_unique_violation(exc):
        field = _unique_field(exc)
        return error_response(
            409, "ConflictError", f"A record with this {field} already exists", field=field
        )
    return error_response(
        400, "ConstraintError", "Operation would violate a database constraint"
    )


async def no_result_handler(request: Request, exc: NoResultFound) -> JSONResponse:
    return error_response(404, "NotFoundError", "Record not found")


async def jwt_error_handler(request: Request, exc: JWTError) -> JSONResponse:
    if isinstance(exc, ExpiredSignatureError):
        return error_response(401, "AuthenticationError", "Access token expired")
    return error_response(401, "AuthenticationError", "Invalid access token")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Raised by FastAPI when the body cannot be decoded at all (e.g. invalid UTF-8).
    if exc.status_code == 400 and exc.detail == BODY_PARSE_ERROR:
        return error_response(400, "SyntaxError", "Invalid JSON in request body")
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route not found: {request.method} {request.url.path}"
    else:
        message = str(exc.detail)
    error_type = _HTTP_ERROR_TYPES.get(exc.status_code, "HTTPError")
    return error_response(exc.status_code, error_type, message, headers=getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if settings.is_development else "Internal server error"
    return error_response(500, "InternalServerError", message)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(NoResultFound, no_result_handler)  # type: ignore[arg-type]
    app.add_exception_handler(JWTError, jwt_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
