"""
Observation Lifecycle
=====================

One instrumented execution of an operation, from start to stop.

States:
    CREATED -> STARTED -> STOPPED
    CREATED -> STARTED -> ERROR -> STOPPED

The observation active for the current logical task is tracked in a
``ContextVar``. asyncio copies the current context into every task it
creates, so nested work (including work resumed after an ``await`` on a
different event-loop iteration) resolves the right parent without relying
on thread-local state. ``Observation.wrap`` carries it into threads.

Usage:
    obs = registry.observation("user.name", contextual_name="getting-user-name")
    obs.low_cardinality_key_value("userType", "userType2")

    async with obs:
        result = await do_work()
"""

from __future__ import annotations

import asyncio
import functools
import logging
import weakref
from contextvars import ContextVar, Token
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

from spanwise.observation.context import Context, Event, KeyValue
from spanwise.observation.errors import ObservationUsageError

if TYPE_CHECKING:
    from spanwise.observation.registry import ObservationRegistry

logger = logging.getLogger("spanwise.observation")

T = TypeVar("T")

current_observation_var: ContextVar[Optional["Observation"]] = ContextVar(
    "current_observation", default=None
)

# Terminal signals that end an observation without recording an error
CANCELLATION_TYPES = (asyncio.CancelledError, GeneratorExit)


class ObservationState(str, Enum):
    CREATED = "created"
    STARTED = "started"
    ERROR = "error"
    STOPPED = "stopped"


class Observation:
    """
    Runtime instance driving one Context through its lifecycle.

    Observations created while a predicate rejects them (or from the NOOP
    registry) are no-ops: they still enforce the lifecycle but never notify
    handlers and never become the current observation.
    """

    def __init__(self, context: Context, registry: "ObservationRegistry", noop: bool = False):
        self._context = context
        self._registry = registry
        self._noop = noop
        self._state = ObservationState.CREATED
        self._parent_ref: Optional[weakref.ReferenceType] = None
        self._scope: Optional[ObservationScope] = None

    @classmethod
    def create_not_started(
        cls,
        name: str,
        registry: "ObservationRegistry",
        contextual_name: Optional[str] = None,
        parent: Optional["Observation"] = None,
        context: Optional[Context] = None,
    ) -> "Observation":
        """
        Build an observation with global default tags applied.

        Args:
            name: Metric-style identifier of the operation
            registry: Registry whose handlers and config apply
            contextual_name: Span-style display name
            parent: Enclosing observation; defaults to the current one
            context: Pre-built context to use instead of a fresh one
        """
        context = context if context is not None else Context()
        context.name = name
        if contextual_name is not None:
            context.contextual_name = contextual_name

        noop = registry.is_noop
        if not noop:
            registry.observation_config.apply_default_key_values(context)
            noop = not registry.observation_config.is_observation_enabled(name, context)

        observation = cls(context, registry, noop=noop)
        observation.set_parent(parent if parent is not None else current_observation_var.get())
        return observation

    # -- properties --------------------------------------------------------

    @property
    def context(self) -> Context:
        return self._context

    @property
    def registry(self) -> "ObservationRegistry":
        return self._registry

    @property
    def state(self) -> ObservationState:
        return self._state

    @property
    def is_noop(self) -> bool:
        return self._noop

    @property
    def parent(self) -> Optional["Observation"]:
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    # -- fluent configuration ------------------------------------------------

    def set_parent(self, parent: Optional["Observation"]) -> "Observation":
        # A no-op parent is transparent: link to the nearest recorded ancestor
        while parent is not None and parent.is_noop:
            parent = parent.parent
        self._parent_ref = weakref.ref(parent) if parent is not None else None
        self._context.parent = parent.context if parent is not None else None
        return self

    def contextual_name(self, contextual_name: str) -> "Observation":
        self._context.contextual_name = contextual_name
        return self

    def low_cardinality_key_value(self, key: str, value: Any) -> "Observation":
        self._context.add_low_cardinality_key_value(KeyValue.of(key, value))
        return self

    def high_cardinality_key_value(self, key: str, value: Any) -> "Observation":
        self._context.add_high_cardinality_key_value(KeyValue.of(key, value))
        return self

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> "Observation":
        if self._state is not ObservationState.CREATED:
            raise ObservationUsageError(
                f"Observation [{self._context.name}] cannot start from state {self._state.value}"
            )
        self._state = ObservationState.STARTED
        self._notify("on_start", lambda h: h.on_start(self._context))
        return self

    def error(self, error: BaseException) -> "Observation":
        if self._state is not ObservationState.STARTED:
            raise ObservationUsageError(
                f"Observation [{self._context.name}] cannot record an error "
                f"from state {self._state.value}"
            )
        self._context.error = error
        self._state = ObservationState.ERROR
        self._notify("on_error", lambda h: h.on_error(self._context))
        return self

    def event(self, event: Event) -> "Observation":
        if self._state not in (ObservationState.STARTED, ObservationState.ERROR):
            raise ObservationUsageError(
                f"Observation [{self._context.name}] cannot signal events "
                f"from state {self._state.value}"
            )
        self._notify("on_event", lambda h: h.on_event(event, self._context))
        return self

    def stop(self) -> None:
        if self._state is ObservationState.CREATED:
            raise ObservationUsageError(
                f"Observation [{self._context.name}] stopped before it was started"
            )
        if self._state is ObservationState.STOPPED:
            raise ObservationUsageError(
                f"Observation [{self._context.name}] was already stopped"
            )
        self._state = ObservationState.STOPPED
        if self._noop:
            return
        self._apply_filters()
        self._notify("on_stop", lambda h: h.on_stop(self._context))

    def open_scope(self) -> "ObservationScope":
        """Make this observation current until the returned scope is closed."""
        return ObservationScope(self)

    # -- helpers ---------------------------------------------------------------

    def observe(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``fn`` inside this observation (start, scope, error/stop)."""
        with self:
            return fn(*args, **kwargs)

    def wrap(self, fn: Callable[..., T]) -> Callable[..., T]:
        """Return a callable running ``fn`` with this observation current, e.g. in a thread."""

        @functools.wraps(fn)
        def wrapped(*args: Any, **kwargs: Any) -> T:
            with self.open_scope():
                return fn(*args, **kwargs)

        return wrapped

    def _apply_filters(self) -> None:
        for observation_filter in self._registry.observation_config.filters:
            try:
                self._context = observation_filter(self._context) or self._context
            except Exception:
                logger.exception(f"Observation filter failed for context [{self._context.name}]")

    def _notify(self, phase: str, fn: Callable[[Any], None]) -> None:
        if self._noop:
            return
        self._registry.for_each_supporting_handler(self._context, fn, phase=phase)

    def finish(self, exc: Optional[BaseException] = None) -> None:
        """Stop the observation, recording ``exc`` first unless it is a cancellation."""
        if exc is not None and not isinstance(exc, CANCELLATION_TYPES):
            self.error(exc)
        self.stop()

    # -- context manager protocol ------------------------------------------------

    def __enter__(self) -> "Observation":
        self.start()
        self._scope = self.open_scope()
        self._scope.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        try:
            self.finish(exc_val)
        finally:
            self._scope.__exit__(exc_type, exc_val, exc_tb)
        return False

    async def __aenter__(self) -> "Observation":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        return self.__exit__(exc_type, exc_val, exc_tb)

    def __repr__(self) -> str:
        return f"Observation(state={self._state.value}, noop={self._noop}, context={self._context!r})"


class ObservationScope:
    """Sets an observation as current and restores the previous one on close."""

    def __init__(self, observation: Observation):
        self.observation = observation
        self.previous: Optional[Observation] = None
        self._token: Optional[Token] = None

    def __enter__(self) -> "ObservationScope":
        self.previous = current_observation_var.get()
        if self.observation.is_noop:
            return self
        self._token = current_observation_var.set(self.observation)
        self.observation._notify(
            "on_scope_opened", lambda h: h.on_scope_opened(self.observation.context)
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self._token is None:
            return False
        self.observation._notify(
            "on_scope_closed", lambda h: h.on_scope_closed(self.observation.context)
        )
        current_observation_var.reset(self._token)
        self._token = None
        return False
