"""
Change notifications for the structured store.

Repositories publish a ChangeEvent after every committed write; callers
subscribe by table and equality filter and consume events as an async
iterator:

    async with feed.subscribe("chat_sessions", id=session_id) as sub:
        async for event in sub:
            ...

Delivery is in publish order within one subscription. Nothing is promised
about ordering across tables. Each subscription has a bounded queue; when it
is full the oldest undelivered event is dropped.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog

log = structlog.get_logger(__name__)


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """One committed write."""

    table: str
    change: ChangeType
    record: Dict[str, Any] = field(default_factory=dict)


_CLOSED = object()


class Subscription:
    """Queue-backed stream of events matching one table and filter set."""

    def __init__(
        self,
        feed: "ChangeFeed",
        table: str,
        filters: Dict[str, Any],
        max_queue: int = 100,
    ):
        self.table = table
        self.filters = filters
        self._feed = feed
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self.closed = False
        self.dropped = 0

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        return all(event.record.get(key) == value for key, value in self.filters.items())

    def _put(self, item: Any) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            log.warning(
                "change_feed_event_dropped",
                table=self.table,
                filters=self.filters,
                dropped=self.dropped,
            )
        self._queue.put_nowait(item)

    def deliver(self, event: ChangeEvent) -> None:
        if not self.closed:
            self._put(event)

    async def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Wait for the next event; None once closed.

        Raises:
            asyncio.TimeoutError: No event arrived within timeout
        """
        if self.closed and self._queue.empty():
            return None
        item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        if item is _CLOSED:
            return None
        return item

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed._remove(self)
        self._put(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class ChangeFeed:
    """In-process publish/subscribe hub shared by all repositories."""

    def __init__(self, max_queue: int = 100):
        self.max_queue = max_queue
        self._subscriptions: List[Subscription] = []

    def subscribe(self, table: str, **filters: Any) -> Subscription:
        subscription = Subscription(self, table, filters, max_queue=self.max_queue)
        self._subscriptions.append(subscription)
        log.debug("change_feed_subscribed", table=table, filters=filters)
        return subscription

    def publish(
        self, table: str, change: ChangeType, record: Dict[str, Any]
    ) -> int:
        """Deliver an event to every matching subscription.

        Returns:
            Number of subscriptions the event was delivered to
        """
        event = ChangeEvent(table=table, change=change, record=dict(record))
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.matches(event):
                subscription.deliver(event)
                delivered += 1
        return delivered

    def subscriber_count(self, table: Optional[str] = None) -> int:
        if table is None:
            return len(self._subscriptions)
        return sum(1 for s in self._subscriptions if s.table == table)

    def close_all(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.close()

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
