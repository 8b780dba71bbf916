"""
Span Recording Handler
======================

Turns observations into trace spans. Each observation becomes one Span;
nested observations become child spans of the span opened for the parent
context, and inherit its trace id.

Low- and high-cardinality key values both end up as span attributes
(spans are the only place where high-cardinality data is safe). Finished
spans are kept in an in-memory SpanCollector for inspection; shipping them
anywhere is left to whoever reads the collector.

Usage:
    collector = SpanCollector()
    registry.register_handler(TracingHandler(collector))

    with registry.observation("user.name", contextual_name="getting-user-name"):
        ...

    spans = collector.get_all_spans()
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from spanwise.observation.context import Context, Event
from spanwise.observation.handlers import ObservationHandler

logger = logging.getLogger("spanwise.observation.tracing")

SPAN_KEY = "spanwise.tracing.span"


@dataclass
class Span:
    """
    A single unit of work in a trace.

    Attributes:
        span_id: Unique identifier for this span (hex string)
        parent_id: ID of parent span (None for root span)
        trace_id: ID of the overall trace this span belongs to
        operation: Contextual name of the observation (falls back to its name)
        name: Observation name
        start_time: Unix timestamp when span started
        end_time: Unix timestamp when span finished (None if still running)
        status: "in_progress" | "success" | "error"
        attributes: Tags copied from the observation context on stop
        events: (timestamp, event name) pairs signalled while running
    """

    span_id: str
    parent_id: Optional[str]
    trace_id: str
    operation: str
    name: str
    start_time: float
    end_time: Optional[float] = None
    status: str = "in_progress"
    attributes: Dict[str, str] = field(default_factory=dict)
    events: List[tuple] = field(default_factory=list)

    def finish(self, status: str = "success", **attributes: str):
        self.end_time = time.time()
        self.status = status
        self.attributes.update(attributes)

    @property
    def duration(self) -> Optional[float]:
        """Span duration in seconds, or None if the span hasn't finished."""
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "span_id": self.span_id,
            "parent_id": self.parent_id,
            "trace_id": self.trace_id,
            "operation": self.operation,
            "name": self.name,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "status": self.status,
            "attributes": self.attributes,
            "events": [{"timestamp": ts, "name": name} for ts, name in self.events],
        }


class SpanCollector:
    """
    In-memory store of finished spans, grouped by trace id.

    Handlers run synchronously on whichever thread drives the observation,
    so access is guarded by a ``threading.Lock``.
    """

    def __init__(self):
        self._spans: Dict[str, List[Span]] = {}  # trace_id -> [spans]
        self._lock = threading.Lock()

    def record(self, span: Span) -> None:
        with self._lock:
            self._spans.setdefault(span.trace_id, []).append(span)

    def get_trace(self, trace_id: str) -> List[Span]:
        """All finished spans of one trace, in completion order."""
        with self._lock:
            return list(self._spans.get(trace_id, []))

    def get_all_traces(self) -> Dict[str, List[Span]]:
        with self._lock:
            return {trace_id: list(spans) for trace_id, spans in self._spans.items()}

    def get_all_spans(self) -> List[Span]:
        with self._lock:
            return [span for spans in self._spans.values() for span in spans]

    def clear(self) -> None:
        """Clear all collected spans (useful for testing)."""
        with self._lock:
            self._spans.clear()


class TracingHandler(ObservationHandler):
    """Opens a Span on start and records it to the collector on stop."""

    def __init__(self, collector: SpanCollector):
        self.collector = collector

    def supports_context(self, context: Context) -> bool:
        return True

    def on_start(self, context: Context) -> None:
        parent_span = self._parent_span(context)
        span = Span(
            span_id=uuid.uuid4().hex[:16],
            parent_id=parent_span.span_id if parent_span else None,
            trace_id=parent_span.trace_id if parent_span else uuid.uuid4().hex,
            operation=context.contextual_name or context.name,
            name=context.name,
            start_time=time.time(),
        )
        context.put(SPAN_KEY, span)
        logger.debug(
            f"[TRACE] Started {span.operation} (span={span.span_id}, trace={span.trace_id})"
        )

    def on_event(self, event: Event, context: Context) -> None:
        span = context.get(SPAN_KEY)
        if span is not None:
            span.events.append((time.time(), event.contextual_name))

    def on_error(self, context: Context) -> None:
        span = context.get(SPAN_KEY)
        if span is not None and context.error is not None:
            span.attributes["error_type"] = type(context.error).__name__
            span.attributes["error_message"] = str(context.error)

    def on_stop(self, context: Context) -> None:
        span = context.get(SPAN_KEY)
        if span is None:
            return
        # Tags may have been added while running, so copy them at the end
        for kv in context.all_key_values():
            span.attributes[kv.key] = kv.value
        span.operation = context.contextual_name or context.name
        span.finish(status="error" if context.error is not None else "success")
        logger.debug(
            f"[TRACE] Finished {span.operation} ({span.duration:.3f}s, {span.status})"
        )
        self.collector.record(span)

    @staticmethod
    def _parent_span(context: Context) -> Optional[Span]:
        parent = context.parent
        while parent is not None:
            span = parent.get(SPAN_KEY)
            if span is not None:
                return span
            parent = parent.parent
        return None
