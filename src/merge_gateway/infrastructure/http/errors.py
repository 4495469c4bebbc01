# merge_gateway/infrastructure/http/errors.py
"""HTTP error shapes for the gateway.

Two shapes exist on purpose:

* Gateway-owned failures (unknown path, unhandled exception, merged document
  that cannot be encoded) use the JSON error envelope
  ``{"error": {"code", "http_status", "message", "details"?, "trace_id"?}}``.
* Write-path failures (400 invalid outbound request, 502 unreachable backend)
  answer with the bare error text as ``text/plain``. The caller of a proxied
  request expects the backend's format, not ours.
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import PlainTextResponse, Response

from merge_gateway.domain.exceptions.gateway import DomainError
from merge_gateway.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)

INTERNAL_ERROR_MESSAGE = "internal server error"


def error_envelope(
    *,
    code: str,
    http_status: int,
    message: str,
    details: dict[str, Any] | None = None,
    trace_id: str | None = None,
) -> dict[str, Any]:
    err: dict[str, Any] = {"code": code, "http_status": http_status, "message": message}
    optional = {"details": details, "trace_id": trace_id}
    err.update({key: value for key, value in optional.items() if value is not None})
    return {"error": err}


def _envelope_response(
    request: Request | None,
    *,
    code: str,
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    # The request id doubles as the envelope trace id.
    trace_id = getattr(getattr(request, "state", None), "request_id", None)
    payload = error_envelope(
        code=code,
        http_status=status_code,
        message=message,
        details=details,
        trace_id=trace_id,
    )
    return JSONResponse(status_code=status_code, content=payload, headers=headers)


def internal_error_response(request: Request | None = None) -> JSONResponse:
    """Return the 500 ``INTERNAL_ERROR`` envelope."""
    return _envelope_response(
        request, code="INTERNAL_ERROR", status_code=500, message=INTERNAL_ERROR_MESSAGE
    )


def plain_text_error(exc: DomainError) -> PlainTextResponse:
    """Return ``exc`` as a write-path error: its text, its status, ``text/plain``."""
    return PlainTextResponse(str(exc) or exc.code, status_code=exc.http_status)


async def handle_http_exception(request: Request, exc: Exception) -> Response:
    if not isinstance(exc, StarletteHTTPException):
        raise exc
    detail = exc.detail
    return _envelope_response(
        request,
        code="HTTP_ERROR",
        status_code=exc.status_code,
        message=detail if isinstance(detail, str) else "HTTP error",
        details=None if isinstance(detail, str) else {"detail": detail},
        headers=exc.headers,
    )


async def handle_unhandled_exception(request: Request, exc: Exception) -> Response:
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={"extra": {"method": request.method, "path": request.url.path}},
    )
    return internal_error_response(request)
