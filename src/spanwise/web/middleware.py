"""
HTTP Middleware
===============

- ServerObservationMiddleware observes every request as
  ``http.server.requests``. The observation is current while the route
  runs, so observations created by the service nest under it.
- ExchangeRecordingMiddleware appends each request/response pair to an
  HttpExchangeRepository.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from spanwise.observation import Observation, ObservationRegistry
from spanwise.web.exchanges import HttpExchange, HttpExchangeRepository

logger = logging.getLogger("spanwise.web.middleware")


def _outcome(status_code: int) -> str:
    if status_code < 200:
        return "INFORMATIONAL"
    if status_code < 300:
        return "SUCCESS"
    if status_code < 400:
        return "REDIRECTION"
    if status_code < 500:
        return "CLIENT_ERROR"
    return "SERVER_ERROR"


class ServerObservationMiddleware(BaseHTTPMiddleware):
    """Wraps each request in an observation reported to ``registry``."""

    def __init__(self, app, registry: ObservationRegistry):
        super().__init__(app)
        self.registry = registry

    async def dispatch(  # type: ignore[override]
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        observation = self.registry.observation(
            "http.server.requests",
            contextual_name=f"http {request.method.lower()}",
        )
        observation.low_cardinality_key_value("method", request.method)
        observation.high_cardinality_key_value("http.url", str(request.url))

        async with observation:
            try:
                response = await call_next(request)  # type: ignore[misc]
            except Exception:
                self._tag_response(observation, request, 500)
                raise
            self._tag_response(observation, request, response.status_code)
            return response  # type: ignore[no-any-return]

    @staticmethod
    def _tag_response(observation: Observation, request: Request, status_code: int) -> None:
        route = request.scope.get("route")
        observation.low_cardinality_key_value("uri", getattr(route, "path", "UNKNOWN"))
        observation.low_cardinality_key_value("status", status_code)
        observation.low_cardinality_key_value("outcome", _outcome(status_code))


class ExchangeRecordingMiddleware(BaseHTTPMiddleware):
    """Records method, URI, status and timing of each completed request."""

    def __init__(self, app, repository: HttpExchangeRepository):
        super().__init__(app)
        self.repository = repository

    async def dispatch(  # type: ignore[override]
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        start = time.perf_counter()
        try:
            response = await call_next(request)  # type: ignore[misc]
        except Exception:
            self._record(request, 500, start)
            raise
        self._record(request, response.status_code, start)
        return response  # type: ignore[no-any-return]

    def _record(self, request: Request, status_code: int, start: float) -> None:
        self.repository.add(
            HttpExchange(
                method=request.method,
                uri=str(request.url),
                path=request.url.path,
                status=status_code,
                time_taken_ms=(time.perf_counter() - start) * 1000,
                remote_address=request.client.host if request.client else None,
            )
        )
