"""Error envelope: every error leaves the API as ``{success: false, error, ...}``."""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(HTTPException):
    """HTTPException carrying a short ``error`` string plus optional extras.

    Usage::

        raise AppError(403, "Access denied")
        raise AppError(400, "Row limit exceeded", message="...", limit=5, submitted=8)
    """

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str | None = None,
        headers: dict[str, str] | None = None,
        **extra: Any,
    ) -> None:
        detail: dict[str, Any] = {"error": error}
        if message is not None:
            detail["message"] = message
        detail.update(extra)
        super().__init__(status_code=status_code, detail=detail, headers=headers)


def error_body(detail: Any) -> dict[str, Any]:
    """Build the envelope from an HTTPException detail (dict or string)."""
    if isinstance(detail, dict):
        body = {"success": False, **detail}
        body.setdefault("error", "Request failed")
        return body
    if isinstance(detail, str):
        return {"success": False, "error": detail}
    return {"success": False, "error": "Request failed"}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        content=error_body(exc.detail),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Field-level list so the UI can highlight the offending inputs.
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        content={"success": False, "error": "Validation failed", "errors": errors},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        content={"success": False, "error": "Internal server error"},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
