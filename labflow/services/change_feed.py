"""
In-process change feed for the orders table.

Every committed order mutation publishes one ``orders-changed`` event to all
subscribers. Events carry no diff; consumers re-fetch what they display.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Optional

from labflow.config import settings
from labflow.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

ORDERS_CHANGED = "orders-changed"
KEEPALIVE_SECONDS = 15


class ChangeFeed:
    """Fan-out of change events to per-subscriber bounded queues"""

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: set = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        logger.debug(f"Change feed subscriber added ({len(self._subscribers)} active)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self, event: str = ORDERS_CHANGED, order_id: Optional[str] = None) -> int:
        """Queue an event for every subscriber; returns how many received it"""
        message = {"event": event, "order_id": order_id, "at": utcnow().isoformat()}
        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Change feed subscriber queue full; dropping event")
        return delivered

    async def stream(self, queue: asyncio.Queue, is_disconnected=None) -> AsyncIterator[str]:
        """Server-sent events for one subscriber, with periodic keep-alive comments"""
        try:
            yield ": connected\n\n"
            while True:
                if is_disconnected is not None and await is_disconnected():
                    break
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield f"event: {message['event']}\ndata: {json.dumps(message)}\n\n"
        finally:
            self.unsubscribe(queue)


change_feed = ChangeFeed(queue_size=settings.change_feed_queue_size)
