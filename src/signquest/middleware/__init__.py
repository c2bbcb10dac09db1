"""Middleware registration."""

from fastapi import FastAPI

from signquest.config import Settings
from signquest.middleware.error_handler import setup_error_handlers
from signquest.middleware.logging import setup_logging
from signquest.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging, register error handlers and add the request id middleware."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
