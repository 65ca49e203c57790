from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable

from app.models.events import StreamEvent
from app.services.logger import logger


class SubscriptionConflictError(RuntimeError):
    def __init__(self, stream_id: str):
        super().__init__(f"Stream already has a subscriber: {stream_id}")
        self.stream_id = stream_id


class Subscription:
    """One subscriber's view of a stream; iterate to receive events."""

    def __init__(self, broadcaster: Broadcaster, stream_id: str):
        self.stream_id = stream_id
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue[StreamEvent] = asyncio.Queue()
        self.closed = False

    def _deliver(self, event: StreamEvent) -> None:
        self._queue.put_nowait(event)

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while not self.closed:
            event = await self._queue.get()
            yield event
            if event.is_terminal:
                break

    def unsubscribe(self) -> None:
        if not self.closed:
            self.closed = True
            self._broadcaster.unsubscribe(self.stream_id, self)


class Broadcaster:
    """Routes stream events to at most one live subscriber per stream id.

    ``publish`` is best effort: events published while nobody is subscribed
    are dropped. Producers that must not lose their first events wait on
    ``wait_for_subscriber`` before publishing.
    """

    def __init__(self):
        self._routes: dict[str, Subscription] = {}
        self._on_unsubscribe: dict[str, Callable[[str], None]] = {}
        self._attached: dict[str, asyncio.Event] = {}

    def __contains__(self, stream_id: str) -> bool:
        return stream_id in self._routes

    def _attached_event(self, stream_id: str) -> asyncio.Event:
        return self._attached.setdefault(stream_id, asyncio.Event())

    def subscribe(self, stream_id: str) -> Subscription:
        if stream_id in self._routes:
            raise SubscriptionConflictError(stream_id)
        subscription = Subscription(self, stream_id)
        self._routes[stream_id] = subscription
        self._attached_event(stream_id).set()
        logger.debug(f"Subscribed to {stream_id}")
        return subscription

    async def wait_for_subscriber(self, stream_id: str, timeout: float | None = None) -> bool:
        """Block until stream_id has a subscriber. False if timeout expires first."""
        if stream_id in self._routes:
            return True
        try:
            await asyncio.wait_for(self._attached_event(stream_id).wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def on_unsubscribe(self, stream_id: str, callback: Callable[[str], None]) -> None:
        """Register a hook fired when the subscriber of stream_id detaches."""
        self._on_unsubscribe[stream_id] = callback

    def publish(self, stream_id: str, event: StreamEvent) -> bool:
        subscription = self._routes.get(stream_id)
        if subscription is None:
            logger.debug(f"Dropped {event.event.value} for {stream_id}: no subscriber")
            return False
        subscription._deliver(event)
        return True

    def unsubscribe(self, stream_id: str, subscription: Subscription | None = None) -> None:
        current = self._routes.get(stream_id)
        if current is None or (subscription is not None and current is not subscription):
            return
        del self._routes[stream_id]
        self._attached.pop(stream_id, None)
        current.closed = True
        callback = self._on_unsubscribe.pop(stream_id, None)
        if callback is not None:
            try:
                callback(stream_id)
            except Exception as e:
                logger.error(f"Unsubscribe hook for {stream_id} failed: {e}")

    def close(self, stream_id: str) -> None:
        """Forget a finished stream without firing its unsubscribe hook."""
        self._on_unsubscribe.pop(stream_id, None)
        self._attached.pop(stream_id, None)

    @property
    def active_streams(self) -> list[str]:
        return list(self._routes)
