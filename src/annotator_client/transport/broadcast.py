"""
Message Broadcaster
===================

Publish/subscribe fan-out for inbound annotation messages.

Each subscriber owns a bounded queue. Publishing pushes into every
subscriber queue, dropping that subscriber's oldest item when it falls
behind, so a slow consumer never blocks the receive path.

Design Rules:
    - Late subscribers observe only messages published after subscribing
    - One broadcaster per connection lifetime; close() completes every
      subscription and the broadcaster cannot be reopened
    - Does NOT parse or modify messages
"""

import asyncio
import logging
from typing import Generic, List, TypeVar


logger = logging.getLogger(__name__)


T = TypeVar("T")

# Sentinel marking the end of a stream
_CLOSED = object()


class Subscription(Generic[T]):
    """
    One subscriber's view of a broadcast stream.

    Async-iterable; iteration ends when the broadcaster closes or when
    the subscription is cancelled.

    Example:
        async for item in broadcaster.subscribe():
            handle(item)
    """

    def __init__(self, owner: "MessageBroadcaster[T]", maxsize: int) -> None:
        self._owner = owner
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._dropped_count: int = 0
        self._closed: bool = False

    @property
    def dropped_count(self) -> int:
        """Number of items dropped because this subscriber fell behind."""
        return self._dropped_count

    @property
    def closed(self) -> bool:
        return self._closed

    def _push(self, item: object) -> None:
        if self._queue.full():
            try:
                self._queue.get_nowait()
                self._dropped_count += 1
                logger.warning(
                    f"Subscriber queue full, dropped oldest message. "
                    f"Total dropped: {self._dropped_count}"
                )
            except asyncio.QueueEmpty:
                pass
        self._queue.put_nowait(item)

    def _finish(self) -> None:
        if self._closed:
            return
        self._closed = True
        # The end marker must always fit
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def cancel(self) -> None:
        """Stop receiving and detach from the broadcaster."""
        self._owner._remove(self)
        self._finish()

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the marker so repeated iteration keeps ending
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item  # type: ignore[return-value]


class MessageBroadcaster(Generic[T]):
    """
    Subscriber registry with fan-out publishing.

    Attributes:
        subscriber_maxsize: Queue bound per subscriber
        published_count: Total items published
        closed: Whether the stream has completed

    Example:
        broadcaster = MessageBroadcaster(subscriber_maxsize=32)
        sub = broadcaster.subscribe()
        broadcaster.publish(item)
        broadcaster.close()
    """

    def __init__(self, subscriber_maxsize: int = 32) -> None:
        """
        Initialize broadcaster.

        Args:
            subscriber_maxsize: Maximum queued items per subscriber. Must be >= 1.
        """
        if subscriber_maxsize < 1:
            raise ValueError("subscriber_maxsize must be >= 1")

        self.subscriber_maxsize = subscriber_maxsize
        self._subscribers: List[Subscription[T]] = []
        self._published_count: int = 0
        self._closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def published_count(self) -> int:
        return self._published_count

    def subscribe(self) -> Subscription[T]:
        """
        Register a new subscriber.

        Subscribing to a closed broadcaster yields an already-finished
        subscription.
        """
        subscription: Subscription[T] = Subscription(self, self.subscriber_maxsize)
        if self._closed:
            subscription._finish()
            return subscription
        self._subscribers.append(subscription)
        logger.debug(f"Subscriber added ({len(self._subscribers)} active)")
        return subscription

    def publish(self, item: T) -> int:
        """
        Deliver an item to every current subscriber.

        Returns:
            Number of subscribers the item was delivered to.
        """
        if self._closed:
            logger.debug("Publish on closed broadcaster ignored")
            return 0
        self._published_count += 1
        for subscription in list(self._subscribers):
            subscription._push(item)
        return len(self._subscribers)

    def close(self) -> None:
        """Complete the stream for every subscriber."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscribers:
            subscription._finish()
        logger.debug(f"Broadcaster closed ({len(self._subscribers)} subscribers)")
        self._subscribers.clear()

    def _remove(self, subscription: Subscription[T]) -> None:
        try:
            self._subscribers.remove(subscription)
        except ValueError:
            pass

    def metrics(self) -> dict:
        """Broadcaster metrics for observability."""
        return {
            "subscribers": len(self._subscribers),
            "published": self._published_count,
            "closed": self._closed,
            "dropped": sum(s.dropped_count for s in self._subscribers),
        }

