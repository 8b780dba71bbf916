"""
Application Bootstrap
=====================

Builds every long-lived object from a config dict (see ``spanwise.config``):
logging, the observation registry with its handlers, the repository, the
user service and finally the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from spanwise.config import load_config
from spanwise.observation import (
    ObservationRegistry,
    SpanCollector,
    TagLoggingHandler,
    TracingHandler,
)
from spanwise.users import InMemoryUserRepository, User, UserService
from spanwise.web import FilteringHttpExchangeRepository, InMemoryHttpExchangeRepository, create_app

logger = logging.getLogger("spanwise.bootstrap")


def configure_logging(config: dict) -> None:
    """Configure root logging from the ``logging`` section."""
    section = config["logging"]
    logging.basicConfig(
        level=getattr(logging, str(section["level"]).upper(), logging.INFO),
        format=section["format"],
        datefmt=section["datefmt"],
    )


def build_observation_registry(
    config: dict,
    span_collector: Optional[SpanCollector] = None,
) -> ObservationRegistry:
    """Create the registry and register the configured handlers in order."""
    section = config["observation"]
    registry = ObservationRegistry()

    for name in section.get("handlers", []):
        if name == "tag_logging":
            registry.register_handler(
                TagLoggingHandler(
                    tag_key=section.get("tag_key", "userType"),
                    default=section.get("tag_default", "UNKNOWN"),
                )
            )
        elif name == "tracing":
            registry.register_handler(TracingHandler(span_collector or SpanCollector()))

    common_tags = dict(section.get("common_tags") or {})
    if common_tags:
        registry.observation_config.key_value_provider(lambda context: common_tags)

    ignored = set(section.get("ignored_names") or [])
    if ignored:
        registry.observation_config.observation_predicate(
            lambda name, context: name not in ignored
        )

    logger.info(
        f"Observation registry ready with handlers {[type(h).__name__ for h in registry.handlers]}"
    )
    return registry


def build_user_service(config: dict, registry: ObservationRegistry) -> UserService:
    seed = [User(**row) for row in config["users"].get("seed", [])]
    return UserService(
        InMemoryUserRepository(seed),
        registry,
        max_delay_ms=config["service"]["max_delay_ms"],
        user_name=config["service"]["user_name"],
    )


def build_app(config: Optional[dict] = None) -> FastAPI:
    """Build the fully wired application from ``config`` (or the default config file)."""
    config = config if config is not None else load_config()
    registry = build_observation_registry(config)
    exchanges = FilteringHttpExchangeRepository(
        InMemoryHttpExchangeRepository(capacity=config["web"]["exchange_capacity"]),
        exclude=config["web"]["exchange_exclude"],
    )
    return create_app(build_user_service(config, registry), registry, exchanges)
