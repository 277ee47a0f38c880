from __future__ import annotations

from typing import Awaitable, Callable, List

from loguru import logger

from ..models.events import RequestEvent

EventSink = Callable[[RequestEvent], Awaitable[None]]


class EventPublisher:
    """Fans request events out to off-ledger consumers.

    Delivery is fire-and-forget: a sink that fails is logged and skipped, and
    never undoes or fails the mutation that produced the event. The engine
    publishes while holding its write lock, so sinks see events in commit
    order and must not call back into mutating engine operations.
    """

    def __init__(self, sinks: List[EventSink] | None = None) -> None:
        self.sinks: List[EventSink] = list(sinks or [])

    def subscribe(self, sink: EventSink) -> None:
        self.sinks.append(sink)

    async def publish(self, event: RequestEvent) -> None:
        for sink in self.sinks:
            try:
                await sink(event)
            except Exception as exc:
                logger.warning("Event sink failed for {} on request {}: {}", event.event, event.id, exc)
