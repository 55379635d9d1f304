"""EventBroadcaster — in-memory fan-out of issue change events.

Each subscriber owns a bounded asyncio.Queue. ``emit`` never blocks and
never waits for delivery: a full queue drops its oldest pending event to
make room. Subscribers that attach later see only later events.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from itertools import count
from typing import Any

import structlog

from tracksort.schemas.enums import EventKind

logger = structlog.get_logger()

DEFAULT_QUEUE_SIZE = 100


@dataclass(frozen=True)
class ChangeEvent:
    """One change pushed to subscribers."""

    kind: EventKind
    issue: dict[str, Any]

    def to_message(self) -> dict[str, Any]:
        return {"event": self.kind.value, "issue": self.issue}


@dataclass(eq=False)
class Subscription:
    """Handle returned by ``subscribe``; read events with ``get``."""

    subscriber_id: int
    queue: asyncio.Queue[ChangeEvent] = field(repr=False)
    dropped: int = 0

    async def get(self) -> ChangeEvent:
        return await self.queue.get()

    def pending(self) -> int:
        return self.queue.qsize()


class EventBroadcaster:
    """Publish/subscribe hub injected into the handlers that emit events."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[int, Subscription] = {}
        self._ids = count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        sub = Subscription(
            subscriber_id=next(self._ids),
            queue=asyncio.Queue(maxsize=self._queue_size),
        )
        self._subscribers[sub.subscriber_id] = sub
        logger.debug("Subscriber attached", subscriber_id=sub.subscriber_id)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if self._subscribers.pop(sub.subscriber_id, None) is not None:
            logger.debug(
                "Subscriber detached",
                subscriber_id=sub.subscriber_id,
                dropped=sub.dropped,
            )

    def emit(self, kind: EventKind, issue: dict[str, Any]) -> int:
        """Queue an event for every current subscriber.

        Returns the number of subscribers the event was queued for.
        """
        event = ChangeEvent(kind=kind, issue=issue)
        delivered = 0
        for sub in list(self._subscribers.values()):
            if sub.queue.full():
                try:
                    sub.queue.get_nowait()
                    sub.dropped += 1
                except asyncio.QueueEmpty:
                    pass
            try:
                sub.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                sub.dropped += 1

        logger.debug(
            "Event emitted",
            kind=kind.value,
            issue_id=issue.get("id"),
            subscribers=delivered,
        )
        return delivered
