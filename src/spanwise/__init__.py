"""
spanwise: Observed Async Services
=================================

A small async web service instrumented with an observation layer: named,
tagged start/stop telemetry around operations, dispatched to pluggable
handlers, with the current observation carried across await points.

Core modules:
- observation: Context, handlers, registry, lifecycle, ``observed`` decorator, tracing
- config: YAML configuration loader with defaults
- users: User model, repository, observed UserService
- web: FastAPI app, routes, observation and exchange-log middleware
- bootstrap: wiring from configuration
"""

from spanwise.config import ConfigError, load_config
from spanwise.observation import (
    KeyValue,
    KeyValues,
    Observation,
    ObservationHandler,
    ObservationRegistry,
    ObservationUsageError,
    observed,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "KeyValue",
    "KeyValues",
    "Observation",
    "ObservationHandler",
    "ObservationRegistry",
    "ObservationUsageError",
    "load_config",
    "observed",
]
