"""HTTP middleware and error handling for the Reflectio API."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reflectio.config import Settings
from reflectio.middleware.error_handler import setup_error_handlers
from reflectio.middleware.logging import setup_logging
from reflectio.middleware.rate_limit import RateLimitMiddleware
from reflectio.middleware.request_id import HEADER as REQUEST_ID_HEADER
from reflectio.middleware.request_id import RequestIdMiddleware

# The web client only sends bearer tokens and JSON
_CORS_HEADERS = ["Authorization", "Content-Type", REQUEST_ID_HEADER]
_EXPOSED_HEADERS = [REQUEST_ID_HEADER, "X-RateLimit-Remaining", "X-RateLimit-Limit"]


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Wire logging, error handlers and the middleware stack.

    Starlette wraps in reverse-add order. Request-id binding runs before the
    rate limiter so a 429 is still logged with its request id, and CORS is
    outermost so browsers can read every error response.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=_CORS_HEADERS,
        expose_headers=_EXPOSED_HEADERS,
    )
