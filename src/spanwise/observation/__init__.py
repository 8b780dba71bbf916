"""
spanwise Observation Layer
==========================

Instrumentation core: operations wrapped in named, tagged observations
whose start/stop/error transitions are dispatched to pluggable handlers.

- context: Context, KeyValue, KeyValues, Event
- handlers: ObservationHandler base, composites, TagLoggingHandler
- registry: ObservationRegistry, ObservationConfig
- observation: Observation lifecycle, scopes, current observation
- instrument: the ``observed`` decorator and tag specs
- tracing: span-recording handler

Usage:
    from spanwise.observation import ObservationRegistry, TagLoggingHandler, observed

    registry = ObservationRegistry()
    registry.register_handler(TagLoggingHandler())

    @observed(name="user.name", low_cardinality={"userType": "userType2"}, registry=registry)
    async def user_name(user_id: str) -> str:
        return "foo"
"""

from spanwise.observation.context import (
    Context,
    Event,
    KeyValue,
    KeyValues,
)
from spanwise.observation.errors import ObservationUsageError
from spanwise.observation.handlers import (
    AllMatchingCompositeObservationHandler,
    FirstMatchingCompositeObservationHandler,
    ObservationHandler,
    TagLoggingHandler,
)
from spanwise.observation.registry import (
    ObservationConfig,
    ObservationRegistry,
)
from spanwise.observation.observation import (
    Observation,
    ObservationScope,
    ObservationState,
    current_observation_var,
)
from spanwise.observation.instrument import (
    TagSpec,
    from_argument,
    from_result,
    literal,
    observed,
)
from spanwise.observation.tracing import (
    Span,
    SpanCollector,
    TracingHandler,
)

__all__ = [
    # Context
    "Context",
    "Event",
    "KeyValue",
    "KeyValues",
    # Errors
    "ObservationUsageError",
    # Handlers
    "AllMatchingCompositeObservationHandler",
    "FirstMatchingCompositeObservationHandler",
    "ObservationHandler",
    "TagLoggingHandler",
    # Registry
    "ObservationConfig",
    "ObservationRegistry",
    # Lifecycle
    "Observation",
    "ObservationScope",
    "ObservationState",
    "current_observation_var",
    # Instrumentation
    "TagSpec",
    "from_argument",
    "from_result",
    "literal",
    "observed",
    # Tracing
    "Span",
    "SpanCollector",
    "TracingHandler",
]
