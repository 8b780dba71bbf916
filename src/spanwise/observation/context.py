"""
Observation Context
===================

Mutable bag of identifying and tag data for one observed operation:
name, contextual (display) name, low- and high-cardinality key values,
the captured error and a weak link to the enclosing context.

Low-cardinality key values are safe as metric dimensions; high-cardinality
key values are only meant for trace attributes.

Usage:
    ctx = Context("user.name", contextual_name="getting-user-name")
    ctx.put_low_cardinality("userType", "userType2")

    user_type = next(
        (kv.value for kv in ctx.low_cardinality_key_values if kv.key == "userType"),
        "UNKNOWN",
    )
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class KeyValue:
    """An immutable tag: ``key`` -> ``value``."""

    key: str
    value: str

    @classmethod
    def of(cls, key: str, value: Any) -> "KeyValue":
        return cls(key=key, value=str(value))


class KeyValues:
    """Builders for sequences of :class:`KeyValue`."""

    @staticmethod
    def of(*pairs: Any) -> Tuple[KeyValue, ...]:
        """
        Build key values from a flat ``key, value, key, value`` sequence,
        a single mapping, or existing KeyValue instances.

        Raises:
            ValueError: If a flat sequence has an odd number of elements
        """
        if len(pairs) == 1 and isinstance(pairs[0], Mapping):
            return tuple(KeyValue.of(k, v) for k, v in pairs[0].items())

        if all(isinstance(p, KeyValue) for p in pairs):
            return tuple(pairs)

        if len(pairs) % 2 != 0:
            raise ValueError(
                f"Key values must come in key/value pairs, got {len(pairs)} elements"
            )
        return tuple(
            KeyValue.of(pairs[i], pairs[i + 1]) for i in range(0, len(pairs), 2)
        )


KeyValuesLike = Union[Iterable[KeyValue], Mapping[str, Any]]


def _as_key_values(values: KeyValuesLike) -> Iterable[KeyValue]:
    if isinstance(values, Mapping):
        return KeyValues.of(values)
    return values


class Context:
    """
    Data associated with one Observation.

    Attributes:
        name: Stable identifier for the kind of operation (metric identity)
        contextual_name: Display name for trace spans (falls back to name)
        error: Failure recorded via ``Observation.error()``, if any
    """

    def __init__(self, name: Optional[str] = None, contextual_name: Optional[str] = None):
        self.name = name
        self.contextual_name = contextual_name
        self.error: Optional[BaseException] = None
        self._low: Dict[str, KeyValue] = {}
        self._high: Dict[str, KeyValue] = {}
        self._parent_ref: Optional[weakref.ReferenceType] = None
        self._attributes: Dict[Any, Any] = {}

    # -- parent linkage ----------------------------------------------------

    @property
    def parent(self) -> Optional["Context"]:
        """The enclosing context, or None if this is a root (or it is gone)."""
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @parent.setter
    def parent(self, parent: Optional["Context"]) -> None:
        self._parent_ref = weakref.ref(parent) if parent is not None else None

    # -- key values ----------------------------------------------------------

    def add_low_cardinality_key_value(self, key_value: KeyValue) -> "Context":
        self._low[key_value.key] = key_value
        return self

    def add_high_cardinality_key_value(self, key_value: KeyValue) -> "Context":
        self._high[key_value.key] = key_value
        return self

    def add_low_cardinality_key_values(self, values: KeyValuesLike) -> "Context":
        for kv in _as_key_values(values):
            self.add_low_cardinality_key_value(kv)
        return self

    def add_high_cardinality_key_values(self, values: KeyValuesLike) -> "Context":
        for kv in _as_key_values(values):
            self.add_high_cardinality_key_value(kv)
        return self

    def put_low_cardinality(self, key: str, value: Any) -> "Context":
        return self.add_low_cardinality_key_value(KeyValue.of(key, value))

    def put_high_cardinality(self, key: str, value: Any) -> "Context":
        return self.add_high_cardinality_key_value(KeyValue.of(key, value))

    @property
    def low_cardinality_key_values(self) -> Iterator[KeyValue]:
        """Read-only iterator over low-cardinality key values, insertion ordered."""
        return iter(tuple(self._low.values()))

    @property
    def high_cardinality_key_values(self) -> Iterator[KeyValue]:
        """Read-only iterator over high-cardinality key values, insertion ordered."""
        return iter(tuple(self._high.values()))

    def get_low_cardinality_key_value(self, key: str) -> Optional[KeyValue]:
        return self._low.get(key)

    def get_high_cardinality_key_value(self, key: str) -> Optional[KeyValue]:
        return self._high.get(key)

    def all_key_values(self) -> Iterator[KeyValue]:
        """Low-cardinality values followed by high-cardinality values."""
        return iter(tuple(self._low.values()) + tuple(self._high.values()))

    # -- handler attributes --------------------------------------------------

    def put(self, key: Any, value: Any) -> "Context":
        """Store handler-private state (e.g. an open span) on the context."""
        self._attributes[key] = value
        return self

    def get(self, key: Any) -> Any:
        return self._attributes.get(key)

    def get_or_default(self, key: Any, default: Any) -> Any:
        return self._attributes.get(key, default)

    def remove(self, key: Any) -> Any:
        return self._attributes.pop(key, None)

    def __repr__(self) -> str:
        return (
            f"Context(name={self.name!r}, contextual_name={self.contextual_name!r}, "
            f"low={[(kv.key, kv.value) for kv in self._low.values()]}, "
            f"high={[(kv.key, kv.value) for kv in self._high.values()]}, "
            f"error={self.error!r})"
        )


@dataclass(frozen=True)
class Event:
    """A point-in-time occurrence signalled on a running observation."""

    name: str
    contextual_name: Optional[str] = None

    def __post_init__(self):
        if self.contextual_name is None:
            object.__setattr__(self, "contextual_name", self.name)
