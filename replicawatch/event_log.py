"""Bounded, append-only history of failover events."""
from __future__ import annotations

import threading
from collections import deque

from .models import FailoverEvent

DEFAULT_CAPACITY = 100


class EventLog:
    """FIFO-bounded event history; the oldest entry is evicted on overflow."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._events: deque[FailoverEvent] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, event: FailoverEvent) -> None:
        with self._lock:
            self._events.append(event)

    def recent(self, n: int) -> list[FailoverEvent]:
        """Up to ``n`` most recent events, newest first."""
        if n <= 0:
            return []
        with self._lock:
            events = list(self._events)
        return events[::-1][:n]

    def all(self) -> list[FailoverEvent]:
        """Every retained event, oldest first."""
        with self._lock:
            return list(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
