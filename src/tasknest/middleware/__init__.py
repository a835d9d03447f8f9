"""Middleware registration."""

from fastapi import FastAPI

from tasknest.config import Settings
from tasknest.middleware.cors import setup_cors
from tasknest.middleware.error_handler import setup_error_handlers
from tasknest.middleware.logging import setup_logging
from tasknest.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    Starlette runs middleware in reverse-add order, so CORS is added last to
    wrap error responses from the inner layers.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
