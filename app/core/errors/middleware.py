"""
FastAPI exception handler for SubledgerError.

Catches SubledgerError, looks up the registry, and returns a structured
JSON error response. Unknown codes get a safe fallback.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import SubledgerError, ValidationError
from app.core.errors.registry import error_registry

logger = logging.getLogger(__name__)


async def subledger_error_handler(request: Request, exc: SubledgerError) -> JSONResponse:
    """Convert SubledgerError into a structured JSON response."""
    entry = error_registry.get(exc.code)

    if entry is None:
        logger.error(
            "unregistered_error_code",
            extra={"error.code": exc.code, "error.message": exc.detail},
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": exc.code,
                    "title": "Internal error",
                    "message": "An unexpected error occurred.",
                    "detail": None,
                    "retryable": False,
                    "remediation": [],
                }
            },
        )

    log_extra = {
        "error.code": exc.code,
        "error.kind": type(exc).__name__,
        "error.message": exc.detail,
        "error.retryable": entry.retryable,
        "http.path": request.url.path,
        **{f"error.ctx.{k}": v for k, v in exc.context.items()},
    }
    logger.log(entry.log_level, entry.title, extra=log_extra)

    return JSONResponse(
        status_code=entry.http_status,
        content={
            "error": {
                "code": entry.code,
                "title": entry.title,
                "message": entry.safe_message,
                "detail": exc.detail,
                "retryable": entry.retryable,
                "remediation": list(entry.remediation),
            }
        },
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI request-validation failures in the SUB-API-002 shape."""
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return await subledger_error_handler(request, ValidationError("; ".join(problems) or None))
