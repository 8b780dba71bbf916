"""
FastAPI application factory.

Wires the user service and exchange log into the app state, installs the
observation and exchange-recording middleware and maps business
validation failures to HTTP 400.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from spanwise.observation import ObservationRegistry
from spanwise.users.service import UserService
from spanwise.web.exchanges import FilteringHttpExchangeRepository, HttpExchangeRepository
from spanwise.web.middleware import ExchangeRecordingMiddleware, ServerObservationMiddleware
from spanwise.web.routes import router

logger = logging.getLogger("spanwise.web.app")


def create_app(
    user_service: UserService,
    observation_registry: ObservationRegistry,
    exchange_repository: Optional[HttpExchangeRepository] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        user_service: Service answering ``GET /user/{user_id}``
        observation_registry: Registry receiving ``http.server.requests`` observations
        exchange_repository: Exchange log, defaults to one that skips actuator paths

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(title="spanwise", version="0.1.0")

    app.state.user_service = user_service
    app.state.observation_registry = observation_registry
    app.state.exchange_repository = exchange_repository or FilteringHttpExchangeRepository()

    # Last added runs outermost: exchanges are timed around the observation
    app.add_middleware(ServerObservationMiddleware, registry=observation_registry)
    app.add_middleware(ExchangeRecordingMiddleware, repository=app.state.exchange_repository)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=400, content={"error": str(exc)})

    app.include_router(router)

    logger.info("Application created")
    return app
