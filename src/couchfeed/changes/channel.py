"""Event channel — broadcast change events to any number of subscribers.

Two kinds of subscriber are supported:

- listeners: plain callables invoked synchronously in attach order
- queues: an ``asyncio.Queue`` per subscriber key, filled without blocking

Subscribers see only events published after they attach; nothing is buffered
for late arrivals.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from couchfeed.changes.events import ChangeEvent

logger = logging.getLogger(__name__)


class EventChannel:
    """Multi-subscriber fan-out for ``ChangeEvent`` values.

    Usage::

        channel = EventChannel()
        q = channel.add_subscriber("audit")
        token = channel.add_listener(lambda e: print(e.doc_id))
        channel.publish(event)
        event = await q.get()
        channel.remove_listener(token)
    """

    def __init__(self) -> None:
        self._listeners: dict[int, Callable[[ChangeEvent], None]] = {}
        self._queues: dict[str, asyncio.Queue[ChangeEvent]] = {}
        self._ids = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        """Number of attached listeners and queues."""
        return len(self._listeners) + len(self._queues)

    def add_listener(self, callback: Callable[[ChangeEvent], None]) -> int:
        """Attach a callback; returns a token for ``remove_listener``."""
        token = next(self._ids)
        self._listeners[token] = callback
        return token

    def remove_listener(self, token: int) -> None:
        """Detach a callback. Unknown tokens are ignored."""
        self._listeners.pop(token, None)

    def add_subscriber(self, key: str | None = None, *, buffer: int = 0) -> asyncio.Queue[ChangeEvent]:
        """Register a queue subscriber and return its queue.

        Args:
            key: Subscriber name; generated when omitted. Re-using a key
                replaces the previous queue.
            buffer: Queue size, 0 for unbounded. A full queue drops events.
        """
        q: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=buffer)
        self._queues[key or f"subscriber-{next(self._ids)}"] = q
        return q

    def remove_subscriber(self, key: str) -> None:
        """Unregister a queue subscriber."""
        self._queues.pop(key, None)

    def publish(self, event: ChangeEvent) -> None:
        """Deliver *event* to every current subscriber."""
        for callback in list(self._listeners.values()):
            try:
                callback(event)
            except Exception:
                logger.exception("Change listener failed on %s event", event.type)
        for key, q in list(self._queues.items()):
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Subscriber %s queue full, dropping %s event", key, event.type)

    def clear(self) -> None:
        """Detach every subscriber."""
        self._listeners.clear()
        self._queues.clear()
