"""In-process fan-out of live donation events to connected viewers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional, Protocol, Set

logger = logging.getLogger(__name__)

NEW_DONATION = "new-donation"

FeedMessage = dict[str, Any]


class Publisher(Protocol):
    """Anything able to broadcast a named event with a JSON-ready payload."""

    def publish(self, event: str, payload: dict[str, Any]) -> int: ...


class Subscription:
    """Buffered view of the feed held by a single viewer."""

    def __init__(self, max_size: int) -> None:
        self._queue: asyncio.Queue[FeedMessage] = asyncio.Queue(max_size)

    def offer(self, message: FeedMessage) -> bool:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self) -> FeedMessage:
        return await self._queue.get()

    async def listen(self) -> AsyncIterator[FeedMessage]:
        """Yield messages as they are published."""

        while True:
            yield await self._queue.get()


class LiveFeed:
    """Fire-and-forget broadcaster; missed events are not replayed."""

    def __init__(self, max_queue_size: int = 64) -> None:
        self._max_queue_size = max_queue_size
        self._subscribers: Set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: str, payload: dict[str, Any]) -> int:
        """Deliver ``payload`` to every current subscriber; returns deliveries made."""

        message: FeedMessage = {"event": event, "data": payload}
        delivered = 0
        for subscription in list(self._subscribers):
            if subscription.offer(message):
                delivered += 1
            else:
                logger.warning("feed.subscriber_lagging", extra={"event": event})
        logger.debug("feed.published", extra={"event": event, "delivered": delivered})
        return delivered

    @asynccontextmanager
    async def subscribe(self, max_queue_size: Optional[int] = None) -> AsyncIterator[Subscription]:
        subscription = Subscription(max_queue_size or self._max_queue_size)
        self._subscribers.add(subscription)
        logger.info("feed.subscribed", extra={"subscribers": len(self._subscribers)})
        try:
            yield subscription
        finally:
            self._subscribers.discard(subscription)
            logger.info("feed.unsubscribed", extra={"subscribers": len(self._subscribers)})
