"""
HTTP Exchange Log
=================

Keeps the most recent request/response pairs for diagnostics. The
filtering repository drops exchanges for diagnostic endpoints themselves
(any path containing ``actuator``) so reading the log does not fill it.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Iterable, List, Optional

from pydantic import BaseModel, Field


class HttpExchange(BaseModel):
    """One recorded request/response pair."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    method: str
    uri: str
    path: str
    status: int
    time_taken_ms: float = 0.0
    remote_address: Optional[str] = None


class HttpExchangeRepository(ABC):
    @abstractmethod
    def find_all(self) -> List[HttpExchange]:
        """Recorded exchanges, newest first."""

    @abstractmethod
    def add(self, exchange: HttpExchange) -> None:
        """Record an exchange."""


class InMemoryHttpExchangeRepository(HttpExchangeRepository):
    """Bounded in-memory log; the oldest exchange is evicted once full."""

    def __init__(self, capacity: int = 100):
        self.capacity = capacity
        self._exchanges: Deque[HttpExchange] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def find_all(self) -> List[HttpExchange]:
        with self._lock:
            return list(self._exchanges)

    def add(self, exchange: HttpExchange) -> None:
        with self._lock:
            self._exchanges.appendleft(exchange)


class FilteringHttpExchangeRepository(HttpExchangeRepository):
    """Delegates to another repository, skipping exchanges whose path matches."""

    def __init__(
        self,
        delegate: Optional[HttpExchangeRepository] = None,
        exclude: Iterable[str] = ("actuator",),
    ):
        self.delegate = delegate or InMemoryHttpExchangeRepository()
        self.exclude = tuple(exclude)

    def find_all(self) -> List[HttpExchange]:
        return self.delegate.find_all()

    def add(self, exchange: HttpExchange) -> None:
        if any(fragment in exchange.path for fragment in self.exclude):
            return
        self.delegate.add(exchange)
