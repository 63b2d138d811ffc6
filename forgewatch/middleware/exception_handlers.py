"""
Exception handlers registered on the application.

Every error leaves the API as::

    {"success": false, "error": {"code", "message", "path", "details"?}, "timestamp"}

Forgejo failures that escape the engine's own recovery (it normally turns
them into empty results) are translated to gateway-style statuses.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from forgewatch.middleware.error_codes import ErrorCode, get_error_code
from forgewatch.services.forgejo.exceptions import (
    ForgejoConfigurationError,
    ForgejoError,
    HttpError,
    NetworkError,
    PatternError,
)

logger = logging.getLogger("forgewatch.exception")

# Most specific first
FORGEJO_ERROR_STATUS: List[Tuple[type, int, ErrorCode]] = [
    (NetworkError, 504, ErrorCode.UPSTREAM_UNREACHABLE),
    (HttpError, 502, ErrorCode.UPSTREAM_ERROR),
    (PatternError, 400, ErrorCode.INVALID_PATTERN),
    (ForgejoConfigurationError, 503, ErrorCode.NOT_CONFIGURED),
]


def error_response(
    request: Request,
    status_code: int,
    code: ErrorCode,
    message: str,
    details: Optional[List[Dict[str, Any]]] = None,
) -> JSONResponse:
    error: Dict[str, Any] = {"code": code.value, "message": message, "path": request.url.path}
    if details:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")
    return error_response(request, exc.status_code, get_error_code(exc.status_code), str(exc.detail))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report each invalid field as ``{"field": "body.seconds", "message": ...}``."""
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    return error_response(
        request,
        422,
        ErrorCode.VALIDATION_ERROR,
        "Request body or parameters are invalid",
        details,
    )


async def forgejo_exception_handler(request: Request, exc: ForgejoError) -> JSONResponse:
    status_code, code = 502, ErrorCode.UPSTREAM_ERROR
    for error_type, mapped_status, mapped_code in FORGEJO_ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code, code = mapped_status, mapped_code
            break

    details = None
    if isinstance(exc, HttpError):
        details = [{"upstream_status": exc.status}]

    logger.warning(f"Forgejo error on {request.url.path}: {exc}")
    return error_response(request, status_code, code, str(exc), details)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
    return error_response(
        request,
        500,
        ErrorCode.INTERNAL_ERROR,
        "An unexpected error occurred. Please try again later.",
    )
