from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tasktracker.app.middleware.access_log import CORRELATION_HEADER, correlation_id
from tasktracker.domain.errors import ConflictError, DomainError, NotFoundError, ValidationError

log = logging.getLogger("tasktracker.errors")

GENERIC_ERROR_DETAIL = "An unexpected error occurred"

_TITLES = {
    400: "Validation Failed",
    404: "Resource Not Found",
    409: "Conflict",
    500: "Internal Server Error",
}


def problem_response(request: Request, status: int, title: str, detail: str) -> JSONResponse:
    trace_id = correlation_id(request)
    body: Dict[str, Any] = {
        "type": f"https://httpstatuses.com/{status}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.url.path,
        "traceId": trace_id,
    }
    return JSONResponse(
        status_code=status,
        content=body,
        headers={CORRELATION_HEADER: trace_id},
        media_type="application/problem+json",
    )


def format_validation_errors(errors) -> str:
    """
    Flatten FastAPI/pydantic errors into one line:
    "Validation failed: title: String should have at least 1 character, priority: ..."
    """
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        msg = err.get("msg", "Invalid value")
        parts.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return f"Validation failed: {', '.join(parts)}"


def _status_for(exc: DomainError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    return 500


def setup_error_handlers(app: FastAPI, production: bool = False) -> None:
    def _server_error(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "request.failed",
            exc_info=exc,
            extra={
                "category": "http",
                "event": "request.failed",
                "correlation_id": correlation_id(request),
                "method": request.method,
                "path": request.url.path,
                "error": str(exc),
            },
        )
        detail = GENERIC_ERROR_DETAIL if production else (str(exc) or GENERIC_ERROR_DETAIL)
        return problem_response(request, 500, _TITLES[500], detail)

    @app.exception_handler(DomainError)
    async def handle_domain_error(request: Request, exc: DomainError):  # type: ignore[override]
        status = _status_for(exc)
        if status >= 500:
            return _server_error(request, exc)
        log.warning(
            "request.rejected",
            extra={
                "category": "http",
                "event": "request.rejected",
                "correlation_id": correlation_id(request),
                "path": request.url.path,
                "status_code": status,
                "error": exc.message,
            },
        )
        return problem_response(request, status, _TITLES[status], exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):  # type: ignore[override]
        detail = format_validation_errors(exc.errors())
        log.warning(
            "request.invalid",
            extra={
                "category": "http",
                "event": "request.invalid",
                "correlation_id": correlation_id(request),
                "path": request.url.path,
                "error": detail,
            },
        )
        return problem_response(request, 400, _TITLES[400], detail)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        if exc.status_code == 404 and exc.detail == "Not Found":
            return problem_response(
                request, 404, "Not Found", f"The requested resource {request.url.path} was not found"
            )
        title = _TITLES.get(exc.status_code, str(exc.detail))
        return problem_response(request, exc.status_code, title, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):  # type: ignore[override]
        return _server_error(request, exc)
