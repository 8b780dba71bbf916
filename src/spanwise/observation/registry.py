"""
Observation Registry
====================

Explicitly constructed registry holding the ordered handler list and the
global observation configuration. Built once at startup, handed to every
component that creates observations, then only read.

Usage:
    registry = ObservationRegistry()
    registry.register_handler(TagLoggingHandler())
    registry.observation_config.key_value_provider(
        lambda ctx: {"application": "spanwise"}
    )

    with registry.observation("user.name", contextual_name="getting-user-name"):
        ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Mapping, Optional, Union

from spanwise.observation.context import Context, KeyValue, KeyValues
from spanwise.observation.handlers import ObservationHandler

if TYPE_CHECKING:
    from spanwise.observation.observation import Observation

logger = logging.getLogger("spanwise.observation.registry")

KeyValueProvider = Callable[[Context], Union[Iterable[KeyValue], Mapping[str, Any]]]
ObservationPredicate = Callable[[str, Context], bool]
ObservationFilter = Callable[[Context], Context]


class ObservationConfig:
    """
    Global observation settings shared by every observation of a registry.

    Attributes:
        handlers: Handlers in registration (and notification) order
        key_value_providers: Callbacks producing default low-cardinality tags
        predicates: Callbacks deciding whether an observation is recorded at all
        filters: Callbacks mutating the context right before ``on_stop``
    """

    def __init__(self):
        self.handlers: List[ObservationHandler] = []
        self.key_value_providers: List[KeyValueProvider] = []
        self.predicates: List[ObservationPredicate] = []
        self.filters: List[ObservationFilter] = []

    def observation_handler(self, handler: ObservationHandler) -> "ObservationConfig":
        self.handlers.append(handler)
        return self

    def key_value_provider(self, provider: KeyValueProvider) -> "ObservationConfig":
        self.key_value_providers.append(provider)
        return self

    def observation_predicate(self, predicate: ObservationPredicate) -> "ObservationConfig":
        self.predicates.append(predicate)
        return self

    def observation_filter(self, observation_filter: ObservationFilter) -> "ObservationConfig":
        self.filters.append(observation_filter)
        return self

    def apply_default_key_values(self, context: Context) -> None:
        """Run every key value provider against a freshly created context.

        A provider that raises is logged and contributes no tags.
        """
        for provider in self.key_value_providers:
            try:
                produced = provider(context)
                if isinstance(produced, Mapping):
                    produced = KeyValues.of(produced)
                context.add_low_cardinality_key_values(list(produced))
            except Exception:
                logger.exception(f"Key value provider failed for context [{context.name}]")

    def is_observation_enabled(self, name: str, context: Context) -> bool:
        """All predicates must accept; a predicate that raises counts as accepting."""
        for predicate in self.predicates:
            try:
                if not predicate(name, context):
                    return False
            except Exception:
                logger.exception(f"Observation predicate failed for [{name}]")
        return True


class ObservationRegistry:
    """
    Ordered handler dispatch plus observation factory.

    Handler mutation is expected during startup only; concurrent
    observations iterate the handler list read-only.
    """

    NOOP: "ObservationRegistry"

    def __init__(self, noop: bool = False):
        self._noop = noop
        self._config = ObservationConfig()

    @property
    def observation_config(self) -> ObservationConfig:
        return self._config

    @property
    def is_noop(self) -> bool:
        return self._noop

    def register_handler(self, handler: ObservationHandler) -> "ObservationRegistry":
        """Append a handler; it is notified after every handler registered before it."""
        if self._noop:
            raise ValueError("Handlers cannot be registered on the NOOP registry")
        self._config.observation_handler(handler)
        logger.debug(f"Registered observation handler {type(handler).__name__}")
        return self

    @property
    def handlers(self) -> List[ObservationHandler]:
        return list(self._config.handlers)

    def for_each_supporting_handler(
        self,
        context: Context,
        fn: Callable[[ObservationHandler], None],
        phase: str = "callback",
    ) -> None:
        """
        Apply ``fn`` to each handler supporting ``context``, in registration order.

        A handler raising (from ``supports_context`` or from ``fn``) is logged
        and skipped; remaining handlers are still notified.
        """
        for handler in self._config.handlers:
            try:
                if handler.supports_context(context):
                    fn(handler)
            except Exception:
                logger.exception(
                    f"Observation handler {type(handler).__name__} failed during "
                    f"{phase} for context [{context.name}]"
                )

    @property
    def current_observation(self) -> Optional["Observation"]:
        """The observation active for the current logical task, if any."""
        from spanwise.observation.observation import current_observation_var

        return current_observation_var.get()

    def observation(
        self,
        name: str,
        contextual_name: Optional[str] = None,
        parent: Optional["Observation"] = None,
        context: Optional[Context] = None,
    ) -> "Observation":
        """Create a not-yet-started observation bound to this registry."""
        from spanwise.observation.observation import Observation

        return Observation.create_not_started(
            name,
            self,
            contextual_name=contextual_name,
            parent=parent,
            context=context,
        )


ObservationRegistry.NOOP = ObservationRegistry(noop=True)
