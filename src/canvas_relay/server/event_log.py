"""Bounded replay log of drawing events."""

from __future__ import annotations

import threading
from collections import deque
from typing import Any

from canvas_relay.protocol.constants import MAX_HISTORY


class EventLog:
    """Ordered, append-only buffer with oldest-first eviction.

    Every operation runs inside one lock, and `snapshot()` copies, so a reader
    never sees a half-applied append or reset.
    """

    def __init__(self, max_history: int = MAX_HISTORY) -> None:
        if max_history < 1:
            raise ValueError("max_history must be >= 1")
        self._max_history = max_history
        self._events: deque[dict[str, Any]] = deque()
        self._lock = threading.Lock()

    @property
    def max_history(self) -> int:
        return self._max_history

    def append(self, event: dict[str, Any]) -> None:
        with self._lock:
            self._events.append(event)
            while len(self._events) > self._max_history:
                self._events.popleft()

    def reset(self) -> None:
        with self._lock:
            self._events.clear()

    def snapshot(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
