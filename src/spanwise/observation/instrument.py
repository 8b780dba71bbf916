"""
Declarative Instrumentation
===========================

``observed`` wraps a unit of work so every call runs inside an
Observation: tags are applied, the observation is started, made current
for the duration of the work, and stopped (after recording the error, if
any) exactly once.

Supported units of work:
- plain functions and methods; when one returns an awaitable (a future, task
  or coroutine) the observation stays open until that awaitable completes
- coroutine functions: nothing is started until the coroutine is awaited,
  so a coroutine that is never driven leaves no started observation behind;
  cancellation stops the observation without recording an error
- async generator functions: started on first iteration, current only while
  the generator body runs, stopped on exhaustion, failure or early close

Usage:
    class UserService:
        def __init__(self, registry):
            self.observation_registry = registry

        @observed(
            name="user.name",
            contextual_name="getting-user-name",
            low_cardinality=KeyValues.of("userType", "userType2"),
            high_cardinality=[from_argument("user.id", "user_id")],
        )
        async def user_name(self, user_id: str) -> str:
            ...
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from spanwise.observation.context import KeyValue, KeyValues
from spanwise.observation.errors import ObservationUsageError
from spanwise.observation.observation import Observation
from spanwise.observation.registry import ObservationRegistry

logger = logging.getLogger("spanwise.observation.instrument")

DEFAULT_OBSERVATION_NAME = "method.observed"


@dataclass(frozen=True)
class TagSpec:
    """
    Declares where a tag value comes from.

    Exactly one source is used, checked in this order: ``result`` (applied
    once the work succeeds), ``argument`` (a named call argument), ``value``
    (a literal).
    """

    key: str
    value: Optional[str] = None
    argument: Optional[str] = None
    result: Optional[Callable[[Any], Any]] = None
    convert: Callable[[Any], Any] = str

    @property
    def from_result(self) -> bool:
        return self.result is not None

    def resolve(self, arguments: Mapping[str, Any]) -> Optional[str]:
        if self.argument is not None:
            if self.argument not in arguments:
                return None
            return str(self.convert(arguments[self.argument]))
        return self.value


def literal(key: str, value: Any) -> TagSpec:
    return TagSpec(key=key, value=str(value))


def from_argument(key: str, argument: Optional[str] = None, convert: Callable[[Any], Any] = str) -> TagSpec:
    """Tag whose value is taken from the call argument named ``argument`` (default: ``key``)."""
    return TagSpec(key=key, argument=argument or key, convert=convert)


def from_result(key: str, fn: Callable[[Any], Any]) -> TagSpec:
    """Tag computed from the successful result of the work."""
    return TagSpec(key=key, result=fn)


TagSpecsLike = Union[None, Mapping[str, Any], Iterable[Union[TagSpec, KeyValue, str]]]


def _normalize(specs: TagSpecsLike) -> List[TagSpec]:
    if specs is None:
        return []
    if isinstance(specs, Mapping):
        return [literal(k, v) for k, v in specs.items()]

    items = list(specs)
    if items and all(isinstance(i, str) for i in items):
        items = list(KeyValues.of(*items))

    normalized: List[TagSpec] = []
    for item in items:
        if isinstance(item, TagSpec):
            normalized.append(item)
        elif isinstance(item, KeyValue):
            normalized.append(literal(item.key, item.value))
        else:
            raise TypeError(f"Unsupported tag specification: {item!r}")
    return normalized


def observed(
    name: str = DEFAULT_OBSERVATION_NAME,
    contextual_name: Optional[str] = None,
    low_cardinality: TagSpecsLike = None,
    high_cardinality: TagSpecsLike = None,
    registry: Optional[ObservationRegistry] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator observing every call of the wrapped function.

    Args:
        name: Observation name (metric identity)
        contextual_name: Span display name, defaults to ``Owner#method``
        low_cardinality: Tag specs for metric-safe tags
        high_cardinality: Tag specs for trace-only tags
        registry: Registry to report to. When omitted, the bound instance's
            ``observation_registry`` attribute is used at call time.

    Raises:
        ObservationUsageError: At call time, if no registry can be resolved
    """
    low_specs = _normalize(low_cardinality)
    high_specs = _normalize(high_cardinality)

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        signature = inspect.signature(fn)
        owner = fn.__qualname__.rpartition(".")[0] or fn.__module__
        display_name = contextual_name or f"{owner.rpartition('.')[2]}#{fn.__name__}"

        def resolve_registry(args: tuple) -> ObservationRegistry:
            if registry is not None:
                return registry
            candidate = getattr(args[0], "observation_registry", None) if args else None
            if isinstance(candidate, ObservationRegistry):
                return candidate
            raise ObservationUsageError(
                f"No observation registry available for {fn.__qualname__}; pass "
                f"registry= or set an 'observation_registry' attribute on the instance"
            )

        def create_observation(args: tuple, kwargs: dict) -> Observation:
            observation = resolve_registry(args).observation(name, contextual_name=display_name)
            context = observation.context
            context.put_low_cardinality("class", owner)
            context.put_low_cardinality("method", fn.__name__)

            try:
                bound = signature.bind(*args, **kwargs)
                bound.apply_defaults()
                arguments = bound.arguments
            except TypeError:
                # Let the call itself raise the argument error
                arguments = {}

            for specs, put in (
                (low_specs, context.put_low_cardinality),
                (high_specs, context.put_high_cardinality),
            ):
                for spec in specs:
                    if spec.from_result:
                        continue
                    try:
                        value = spec.resolve(arguments)
                    except Exception:
                        logger.exception(
                            f"Could not derive tag [{spec.key}] from arguments of {fn.__qualname__}"
                        )
                        continue
                    if value is not None:
                        put(spec.key, value)
            return observation

        def apply_result_tags(observation: Observation, result: Any) -> None:
            for specs, put in (
                (low_specs, observation.context.put_low_cardinality),
                (high_specs, observation.context.put_high_cardinality),
            ):
                for spec in specs:
                    if not spec.from_result:
                        continue
                    try:
                        put(spec.key, spec.convert(spec.result(result)))
                    except Exception:
                        logger.exception(
                            f"Could not derive tag [{spec.key}] from result of {fn.__qualname__}"
                        )

        if inspect.isasyncgenfunction(fn):

            @functools.wraps(fn)
            async def async_gen_wrapper(*args: Any, **kwargs: Any):
                observation = create_observation(args, kwargs)
                stream = fn(*args, **kwargs)
                observation.start()
                # Sent values and thrown exceptions are forwarded to the wrapped stream
                step, payload = stream.asend, None
                while True:
                    with observation.open_scope():
                        try:
                            item = await step(payload)
                        except StopAsyncIteration:
                            observation.stop()
                            return
                        except BaseException as exc:
                            observation.finish(exc)
                            raise
                    try:
                        sent = yield item
                    except GeneratorExit as exc:
                        # Consumer closed the stream early
                        observation.finish(exc)
                        await stream.aclose()
                        raise
                    except BaseException as exc:
                        step, payload = stream.athrow, exc
                    else:
                        step, payload = stream.asend, sent

            return async_gen_wrapper

        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                observation = create_observation(args, kwargs)
                async with observation:
                    result = await fn(*args, **kwargs)
                    apply_result_tags(observation, result)
                    return result

            return async_wrapper

        def finish_with_future(observation: Observation, future: "asyncio.Future") -> None:
            if future.cancelled():
                observation.finish(asyncio.CancelledError())
            elif future.exception() is not None:
                observation.finish(future.exception())
            else:
                apply_result_tags(observation, future.result())
                observation.stop()

        async def finish_when_awaited(observation: Observation, awaitable: Any) -> Any:
            with observation.open_scope():
                try:
                    result = await awaitable
                except BaseException as exc:
                    observation.finish(exc)
                    raise
                apply_result_tags(observation, result)
                observation.stop()
                return result

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            observation = create_observation(args, kwargs)
            observation.start()
            with observation.open_scope():
                try:
                    result = fn(*args, **kwargs)
                except BaseException as exc:
                    observation.finish(exc)
                    raise
                if asyncio.isfuture(result):
                    # Futures and tasks keep their identity; stopped once done
                    result.add_done_callback(functools.partial(finish_with_future, observation))
                    return result
                if inspect.isawaitable(result):
                    return finish_when_awaited(observation, result)
                apply_result_tags(observation, result)
                observation.stop()
                return result

        return wrapper

    return decorator
