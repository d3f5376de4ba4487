"""Fan job events out to every connected realtime subscriber."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from tubefetch.schemas.events import EventKind, JobEvent

logger = logging.getLogger(__name__)


class EventBroker:
    """In-process pub/sub. Each subscriber owns a bounded queue.

    A subscriber that falls behind loses its oldest pending events rather
    than blocking publishers; only the latest job state matters to clients.
    Must be used from the event loop thread.
    """

    def __init__(self, queue_size: int = 256) -> None:
        self._queue_size = queue_size
        self._subscribers: set[asyncio.Queue[JobEvent]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[JobEvent]:
        queue: asyncio.Queue[JobEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(queue)
        logger.debug("Subscriber added (%d total)", len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue[JobEvent]) -> None:
        self._subscribers.discard(queue)
        logger.debug("Subscriber removed (%d total)", len(self._subscribers))

    @asynccontextmanager
    async def subscription(self) -> AsyncIterator[asyncio.Queue[JobEvent]]:
        queue = self.subscribe()
        try:
            yield queue
        finally:
            self.unsubscribe(queue)

    def publish(self, kind: EventKind, **data: Any) -> JobEvent:
        event = JobEvent(event=kind, data=data)
        for queue in list(self._subscribers):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(event)
        return event
