"""In-process publish/subscribe used to push realtime events to WebSocket clients.

Channels:
  - ``user.{employee_id}``         private, per user
  - ``employee-actions``           public, employee create/update/delete
  - ``payroll-bulk.{batch_id}``    progress of a bulk payroll batch

Each subscriber owns a bounded ``asyncio.Queue``.  Publishing never awaits a
subscriber: when a queue is full its oldest message is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

logger = logging.getLogger(__name__)


class Broadcaster:
    """Fan-out of ``{channel, event, data}`` messages to subscriber queues."""

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, channel: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[channel].add(queue)
        return queue

    def unsubscribe(self, channel: str, queue: asyncio.Queue) -> None:
        subscribers = self._subscribers.get(channel)
        if not subscribers:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[channel]

    @asynccontextmanager
    async def subscription(self, channel: str) -> AsyncIterator[asyncio.Queue]:
        queue = self.subscribe(channel)
        try:
            yield queue
        finally:
            self.unsubscribe(channel, queue)

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))

    async def publish(self, channel: str, event: str, data: dict[str, Any]) -> int:
        """Deliver an event to every subscriber of *channel*; returns the number reached."""
        return self.publish_nowait(channel, event, data)

    def publish_nowait(self, channel: str, event: str, data: dict[str, Any]) -> int:
        message = {
            "channel": channel,
            "event": event,
            "data": data,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }
        delivered = 0
        for queue in list(self._subscribers.get(channel, ())):
            if queue.full():
                queue.get_nowait()
                logger.warning("Subscriber queue full on %s; dropped oldest message", channel)
            queue.put_nowait(message)
            delivered += 1
        logger.debug("Published %s on %s to %d subscriber(s)", event, channel, delivered)
        return delivered


broadcaster = Broadcaster()
