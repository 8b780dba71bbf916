"""HTTP surface: FastAPI app, routes, middleware and the exchange log."""

from spanwise.web.app import create_app
from spanwise.web.exchanges import (
    FilteringHttpExchangeRepository,
    HttpExchange,
    HttpExchangeRepository,
    InMemoryHttpExchangeRepository,
)
from spanwise.web.middleware import ExchangeRecordingMiddleware, ServerObservationMiddleware

__all__ = [
    "ExchangeRecordingMiddleware",
    "FilteringHttpExchangeRepository",
    "HttpExchange",
    "HttpExchangeRepository",
    "InMemoryHttpExchangeRepository",
    "ServerObservationMiddleware",
    "create_app",
]
