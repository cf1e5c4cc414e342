"""A thread-safe FIFO queue used to hand event data to the observation bus."""

from __future__ import annotations

import queue
from collections import deque
from typing import Any


class EventQueue:
    """Unbounded FIFO queue safe for concurrent producers and consumers."""

    def __init__(self) -> None:
        self._items: deque[Any] = deque()

    def enqueue(self, item: Any) -> None:
        self._items.append(item)

    def dequeue(self) -> Any:
        """Remove and return the oldest item; raise queue.Empty when there is none."""
        try:
            return self._items.popleft()
        except IndexError:
            raise queue.Empty from None

    def __len__(self) -> int:
        return len(self._items)