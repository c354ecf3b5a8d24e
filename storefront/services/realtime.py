"""
In-process change feed.

Services publish a small notice whenever a row changes; WebSocket clients
subscribed for the affected user receive it and re-fetch the data they
display. Events never carry row contents.
"""
import asyncio
import logging
import threading
from typing import Dict, Optional, Iterable, Set

from ..models.schemas import ChangeEvent

logger = logging.getLogger(__name__)

QUEUE_SIZE = 100


class Subscription:
    def __init__(self, loop: asyncio.AbstractEventLoop, user_id: Optional[str], tables: Optional[Set[str]]):
        self.loop = loop
        self.user_id = user_id
        self.tables = tables
        self.key: Optional[int] = None
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)

    def matches(self, event: ChangeEvent) -> bool:
        if self.tables and event.table not in self.tables:
            return False
        # Events without an owner (catalog changes) go to everyone
        return event.user_id is None or event.user_id == self.user_id

    def _deliver(self, event: ChangeEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Change feed queue full for user {self.user_id}; dropping {event.table} event")

    async def get(self) -> ChangeEvent:
        return await self.queue.get()


class ChangeFeed:
    def __init__(self):
        self._subscriptions: Dict[int, Subscription] = {}
        self._lock = threading.Lock()
        self._next_id = 0

    def subscribe(self, user_id: Optional[str] = None, tables: Optional[Iterable[str]] = None) -> Subscription:
        """Register a subscriber; must be called from inside a running event loop"""
        subscription = Subscription(asyncio.get_running_loop(), user_id, set(tables) if tables else None)
        with self._lock:
            self._next_id += 1
            self._subscriptions[self._next_id] = subscription
            subscription.key = self._next_id
        logger.info(f"Change feed subscriber added for user {user_id}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.pop(subscription.key, None)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, table: str, action: str, user_id: Optional[str] = None,
                record_id: Optional[str] = None) -> ChangeEvent:
        """
        Notify subscribers that a row changed

        Safe to call from worker threads: delivery is scheduled on each
        subscriber's own event loop.
        """
        event = ChangeEvent(table=table, action=action, user_id=user_id, record_id=record_id)
        with self._lock:
            subscriptions = list(self._subscriptions.items())

        for key, subscription in subscriptions:
            if not subscription.matches(event):
                continue
            try:
                subscription.loop.call_soon_threadsafe(subscription._deliver, event)
            except RuntimeError:
                # Loop already closed; the client went away without unsubscribing
                logger.warning(f"Dropping stale change feed subscriber {key}")
                with self._lock:
                    self._subscriptions.pop(key, None)

        return event


# Process-wide feed used by services and the WebSocket route
change_feed = ChangeFeed()
