"""Thread-safe change channel with debounce coalescing."""

from __future__ import annotations

import queue
import threading
from typing import Dict, List, Optional

from ..models import ChangeEvent


class ChangeQueue:
    """Channel between the filesystem observer and the dispatcher thread.

    Producers call :meth:`put` from watchdog threads; the single consumer calls
    :meth:`next_batch`, which blocks for the first event and then keeps
    collecting until ``debounce`` seconds pass without a new one.
    """

    def __init__(self, debounce: float = 0.1) -> None:
        self.debounce = debounce
        self._queue: "queue.Queue[Optional[ChangeEvent]]" = queue.Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def put(self, event: ChangeEvent) -> None:
        if self._closed.is_set():
            return
        self._queue.put(event)

    def close(self) -> None:
        """Stop accepting events and wake the consumer."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._queue.put(None)

    def next_batch(self, timeout: float | None = None) -> Optional[List[ChangeEvent]]:
        """Return the next coalesced batch, deduplicated by path.

        Returns ``None`` once the queue is closed, and an empty list when
        ``timeout`` elapses before any event arrives.
        """
        try:
            first = self._queue.get(timeout=timeout)
        except queue.Empty:
            return []
        if first is None or self._closed.is_set():
            return None

        # Last kind wins for repeated paths; insertion order follows first sighting.
        pending: Dict[str, ChangeEvent] = {str(first.path): first}
        while True:
            try:
                event = self._queue.get(timeout=self.debounce)
            except queue.Empty:
                break
            if event is None:
                return None
            pending[str(event.path)] = event
        return list(pending.values())


__all__ = ["ChangeQueue"]
