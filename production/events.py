# production/events.py
"""
Live change notifications for dashboard viewers (Server-Sent Events).

An event is only a wake-up signal: {"type": ..., "code": ...}. Viewers re-fetch
/api/dashboard/ when they get one instead of trusting the payload.
"""
from __future__ import annotations

import asyncio
import json
import logging
import queue
import threading
from typing import AsyncIterator, Iterator, Optional

from django.conf import settings

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = ":\n\n"
OPEN_FRAME = ": connected\n\n"


class NotificationError(Exception):
    pass


class EventBus:
    """Registry of open subscriber queues guarded by a lock."""

    def __init__(self, max_pending: Optional[int] = None):
        self._lock = threading.Lock()
        self._subscribers: set[queue.Queue] = set()
        self._max_pending = max_pending

    def _queue_size(self) -> int:
        if self._max_pending is not None:
            return self._max_pending
        return int(getattr(settings, "EVENTS_QUEUE_SIZE", 100))

    # -------- registry --------
    def subscribe(self) -> queue.Queue:
        q: queue.Queue = queue.Queue(maxsize=self._queue_size())
        with self._lock:
            self._subscribers.add(q)
        logger.debug("subscriber registered (%d open)", self.subscriber_count)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            self._subscribers.discard(q)
        logger.debug("subscriber removed (%d open)", self.subscriber_count)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    # -------- fan-out --------
    def _deliver(self, q: queue.Queue, event: dict) -> None:
        try:
            q.put_nowait(event)
        except queue.Full as exc:
            raise NotificationError("subscriber queue is full") from exc

    def publish(self, type: str, code: Optional[str] = None) -> int:
        """Send {type, code} to every open subscriber. Returns how many got it."""
        event = {"type": type, "code": code}
        with self._lock:
            targets = list(self._subscribers)

        delivered = 0
        for q in targets:
            try:
                self._deliver(q, event)
                delivered += 1
            except NotificationError as exc:
                # slow or dead viewer: it re-syncs on its next poll
                logger.warning("dropped %s event for one subscriber: %s", type, exc)
        return delivered

    # -------- SSE stream --------
    def stream(self, keepalive: Optional[float] = None) -> Iterator[str]:
        """
        Generator of SSE frames for one WSGI connection. Registers on first iteration,
        deregisters when the server closes the generator (client went away).
        """
        if keepalive is None:
            keepalive = float(getattr(settings, "EVENTS_KEEPALIVE_SECONDS", 15))

        q = self.subscribe()
        try:
            yield OPEN_FRAME
            while True:
                try:
                    event = q.get(timeout=keepalive)
                except queue.Empty:
                    yield KEEPALIVE_FRAME
                    continue
                yield f"data: {json.dumps(event)}\n\n"
        finally:
            self.unsubscribe(q)

    async def astream(self, keepalive: Optional[float] = None) -> AsyncIterator[str]:
        """
        Same frames as stream() for ASGI servers. The blocking queue wait runs in a
        worker thread so the event loop keeps serving; cancellation on disconnect
        lands in finally and deregisters.
        """
        if keepalive is None:
            keepalive = float(getattr(settings, "EVENTS_KEEPALIVE_SECONDS", 15))

        q = self.subscribe()
        try:
            yield OPEN_FRAME
            while True:
                try:
                    event = await asyncio.to_thread(q.get, True, keepalive)
                except queue.Empty:
                    yield KEEPALIVE_FRAME
                    continue
                yield f"data: {json.dumps(event)}\n\n"
        finally:
            self.unsubscribe(q)


bus = EventBus()
