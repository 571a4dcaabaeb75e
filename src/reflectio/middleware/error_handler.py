"""JSON error bodies for every failure path.

Domain errors carry a machine-readable ``code``; a permission denial also
says whether upgrading to premium would lift it, so clients can show the
upsell instead of a plain error.
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from reflectio.errors import PermissionDeniedError, ReflectioError

logger = structlog.get_logger()


def error_body(exc: ReflectioError) -> dict[str, object]:
    body: dict[str, object] = {"detail": exc.message or exc.code, "code": exc.code}
    if isinstance(exc, PermissionDeniedError):
        body["upgrade_prompt"] = exc.upgrade_prompt
    return body


def _json(status: int, content: dict[str, Any], headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status, content=content, headers=headers)


async def _on_domain_error(request: Request, exc: ReflectioError) -> JSONResponse:
    # Upstream failures are ours to look at; the rest are client outcomes
    log = logger.error if exc.status_code >= 500 else logger.info
    log("request_rejected", path=request.url.path, status=exc.status_code, code=exc.code, detail=exc.message)
    return _json(exc.status_code, error_body(exc))


async def _on_http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _json(exc.status_code, {"detail": exc.detail}, getattr(exc, "headers", None))


async def _on_invalid_request(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return _json(422, {"detail": "Validation error", "errors": exc.errors()})


async def _on_unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", path=request.url.path, method=request.method, error=str(exc), exc_info=exc)
    return _json(500, {"detail": "Internal server error"})


def setup_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReflectioError, _on_domain_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _on_http_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _on_invalid_request)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _on_unhandled)
