"""
Observation Handlers
====================

Pluggable participants invoked at each observation lifecycle transition.

A handler declares which contexts it cares about through
``supports_context`` and reacts to ``on_start`` / ``on_stop`` /
``on_error`` / ``on_event`` and the scope callbacks. All callbacks default
to no-ops so a handler only overrides what it needs.

Handlers are notified in registration order for every callback, including
``on_stop``. A handler that raises is logged by the registry and skipped;
its failure never reaches sibling handlers or the observed code.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from spanwise.observation.context import Context, Event

logger = logging.getLogger("spanwise.observation.handlers")


class ObservationHandler(ABC):
    """Base class for everything that reacts to observation lifecycle events."""

    @abstractmethod
    def supports_context(self, context: Context) -> bool:
        """Return True if this handler participates for ``context``. Must be pure."""

    def on_start(self, context: Context) -> None:
        pass

    def on_error(self, context: Context) -> None:
        pass

    def on_event(self, event: Event, context: Context) -> None:
        pass

    def on_scope_opened(self, context: Context) -> None:
        pass

    def on_scope_closed(self, context: Context) -> None:
        pass

    def on_stop(self, context: Context) -> None:
        pass


class FirstMatchingCompositeObservationHandler(ObservationHandler):
    """Delegates every callback to the first contained handler that supports the context."""

    def __init__(self, *handlers: ObservationHandler):
        self.handlers: List[ObservationHandler] = list(handlers)

    def _first(self, context: Context) -> Optional[ObservationHandler]:
        for handler in self.handlers:
            if handler.supports_context(context):
                return handler
        return None

    def supports_context(self, context: Context) -> bool:
        return self._first(context) is not None

    def on_start(self, context: Context) -> None:
        handler = self._first(context)
        if handler is not None:
            handler.on_start(context)

    def on_error(self, context: Context) -> None:
        handler = self._first(context)
        if handler is not None:
            handler.on_error(context)

    def on_event(self, event: Event, context: Context) -> None:
        handler = self._first(context)
        if handler is not None:
            handler.on_event(event, context)

    def on_scope_opened(self, context: Context) -> None:
        handler = self._first(context)
        if handler is not None:
            handler.on_scope_opened(context)

    def on_scope_closed(self, context: Context) -> None:
        handler = self._first(context)
        if handler is not None:
            handler.on_scope_closed(context)

    def on_stop(self, context: Context) -> None:
        handler = self._first(context)
        if handler is not None:
            handler.on_stop(context)


class AllMatchingCompositeObservationHandler(ObservationHandler):
    """Delegates every callback to all contained handlers that support the context."""

    def __init__(self, *handlers: ObservationHandler):
        self.handlers: List[ObservationHandler] = list(handlers)

    def _matching(self, context: Context) -> List[ObservationHandler]:
        return [h for h in self.handlers if h.supports_context(context)]

    def supports_context(self, context: Context) -> bool:
        return any(h.supports_context(context) for h in self.handlers)

    def on_start(self, context: Context) -> None:
        for handler in self._matching(context):
            handler.on_start(context)

    def on_error(self, context: Context) -> None:
        for handler in self._matching(context):
            handler.on_error(context)

    def on_event(self, event: Event, context: Context) -> None:
        for handler in self._matching(context):
            handler.on_event(event, context)

    def on_scope_opened(self, context: Context) -> None:
        for handler in self._matching(context):
            handler.on_scope_opened(context)

    def on_scope_closed(self, context: Context) -> None:
        for handler in self._matching(context):
            handler.on_scope_closed(context)

    def on_stop(self, context: Context) -> None:
        for handler in self._matching(context):
            handler.on_stop(context)


class TagLoggingHandler(ObservationHandler):
    """
    Logs a line before and after every observation, including the value of
    one low-cardinality tag.

    Usage:
        registry.register_handler(TagLoggingHandler(tag_key="userType"))
    """

    def __init__(self, tag_key: str = "userType", default: str = "UNKNOWN"):
        self.tag_key = tag_key
        self.default = default

    def supports_context(self, context: Context) -> bool:
        return True

    def on_start(self, context: Context) -> None:
        if logger.isEnabledFor(logging.INFO):
            logger.info(
                "Before running the observation for context [%s], %s [%s]",
                context.name,
                self.tag_key,
                self._tag_value(context),
            )

    def on_stop(self, context: Context) -> None:
        if logger.isEnabledFor(logging.INFO):
            logger.info(
                "After running the observation for context [%s], %s [%s]",
                context.name,
                self.tag_key,
                self._tag_value(context),
            )

    def _tag_value(self, context: Context) -> str:
        return next(
            (kv.value for kv in context.low_cardinality_key_values if kv.key == self.tag_key),
            self.default,
        )
