"""In-process fan-out of newly stored messages to stream subscribers."""

import asyncio
import logging
import threading
from collections import defaultdict
from typing import Generic, TypeVar

from marketplace.core.metrics import DROPPED_STREAM_MESSAGES, OPEN_MESSAGE_STREAMS

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    """Lazy, unbounded async sequence of items published for one booking."""

    def __init__(self, broker: "MessageBroker[T]", booking_id: int, loop: asyncio.AbstractEventLoop, maxsize: int):
        self.booking_id = booking_id
        self._broker = broker
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, item: object) -> None:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            DROPPED_STREAM_MESSAGES.inc()
            logger.warning("subscriber_queue_full booking_id=%s dropped=1", self.booking_id)

    def _wake(self) -> None:
        # Unblocks a pending __anext__; a full queue ends on the closed check instead.
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass

    def deliver(self, item: T) -> None:
        if self._closed:
            return
        self._loop.call_soon_threadsafe(self._offer, item)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._broker._remove(self)
        self._loop.call_soon_threadsafe(self._wake)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def next(self, timeout: float) -> T | None:
        """Return the next item, or None on timeout or once the subscription is closed."""
        try:
            return await asyncio.wait_for(self.__anext__(), timeout=timeout)
        except (asyncio.TimeoutError, StopAsyncIteration):
            return None


class MessageBroker(Generic[T]):
    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[int, set[Subscription[T]]] = defaultdict(set)
        self._lock = threading.Lock()

    def subscribe(self, booking_id: int) -> Subscription[T]:
        """Must be called from the event loop that will consume the subscription."""
        subscription: Subscription[T] = Subscription(
            broker=self,
            booking_id=booking_id,
            loop=asyncio.get_running_loop(),
            maxsize=self._queue_size,
        )
        with self._lock:
            self._subscribers[booking_id].add(subscription)
        OPEN_MESSAGE_STREAMS.inc()
        logger.info("stream_subscribed booking_id=%s", booking_id)
        return subscription

    def publish(self, booking_id: int, item: T) -> int:
        with self._lock:
            targets = list(self._subscribers.get(booking_id, ()))
        for subscription in targets:
            subscription.deliver(item)
        return len(targets)

    def subscriber_count(self, booking_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(booking_id, ()))

    def _remove(self, subscription: Subscription[T]) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.booking_id)
            if not subscribers or subscription not in subscribers:
                return
            subscribers.discard(subscription)
            OPEN_MESSAGE_STREAMS.dec()
            if not subscribers:
                del self._subscribers[subscription.booking_id]
        logger.info("stream_unsubscribed booking_id=%s", subscription.booking_id)
