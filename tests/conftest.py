"""Shared fixtures.

Puts src/ on sys.path so ``import spanwise`` works without installing the
package, and provides a handler that records every callback it receives.
"""

import sys
from pathlib import Path
from typing import List, Tuple

import pytest

_src = str(Path(__file__).resolve().parent.parent / "src")
if _src not in sys.path:
    sys.path.insert(0, _src)

from spanwise.observation import Context, Event, ObservationHandler, ObservationRegistry  # noqa: E402


class RecordingHandler(ObservationHandler):
    """Appends ``(label, phase, context name)`` to a shared call log."""

    def __init__(self, calls: List[Tuple[str, str, str]], label: str = "recorder", supports: bool = True):
        self.calls = calls
        self.label = label
        self.supports = supports
        self.contexts: List[Context] = []

    def supports_context(self, context: Context) -> bool:
        return self.supports

    def _log(self, phase: str, context: Context) -> None:
        self.calls.append((self.label, phase, context.name))

    def on_start(self, context: Context) -> None:
        self.contexts.append(context)
        self._log("start", context)

    def on_error(self, context: Context) -> None:
        self._log("error", context)

    def on_event(self, event: Event, context: Context) -> None:
        self._log(f"event:{event.name}", context)

    def on_stop(self, context: Context) -> None:
        self._log("stop", context)

    def phases(self, name: str = None) -> List[str]:
        return [p for label, p, n in self.calls if label == self.label and (name is None or n == name)]


@pytest.fixture
def calls():
    return []


@pytest.fixture
def make_recorder(calls):
    def factory(label: str = "recorder", supports: bool = True) -> RecordingHandler:
        return RecordingHandler(calls, label=label, supports=supports)

    return factory


@pytest.fixture
def recorder(make_recorder):
    return make_recorder()


@pytest.fixture
def registry(recorder):
    """Registry with a single RecordingHandler."""
    registry = ObservationRegistry()
    registry.register_handler(recorder)
    return registry
