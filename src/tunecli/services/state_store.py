"""Playback state store and subscriber fan-out.

`StateStore` is the only shared mutable resource: it guards the current
`PlaybackState` with a lock that is never held while publishing. The
`StateBroadcaster` hands each new snapshot to every subscriber without ever
waiting; a subscriber whose buffer is full simply misses that notification
and is expected to call `get_state()` for the latest value.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Callable
from typing import Final, Union

from tunecli.services.player_control import PlaybackState

logger = logging.getLogger(__name__)

DEFAULT_SUBSCRIBER_BUFFER = 10


class _Closed:
    pass


_CLOSED: Final = _Closed()


class SubscriptionClosed(Exception):
    """Raised by `Subscription.get()` once no further snapshots will arrive."""


class Subscription:
    """Bounded per-subscriber notification buffer.

    Iterate with ``async for state in subscription`` to receive snapshots
    until the broadcaster closes.
    """

    def __init__(self, maxsize: int = DEFAULT_SUBSCRIBER_BUFFER) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self._queue: asyncio.Queue[Union[PlaybackState, _Closed]] = asyncio.Queue(
            maxsize=maxsize
        )
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, state: PlaybackState) -> bool:
        """Queue a snapshot without blocking; return False when it was dropped."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(state)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # A full buffer needs no wakeup: the reader drains it and then sees
        # the closed flag.
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass

    def get_nowait(self) -> PlaybackState | None:
        """Return the next buffered snapshot, or None when the buffer is empty."""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if isinstance(item, _Closed):
            return None
        return item

    async def get(self) -> PlaybackState:
        if self._closed and self._queue.empty():
            raise SubscriptionClosed()
        item = await self._queue.get()
        if isinstance(item, _Closed):
            raise SubscriptionClosed()
        return item

    def __aiter__(self) -> AsyncIterator[PlaybackState]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[PlaybackState]:
        while True:
            try:
                yield await self.get()
            except SubscriptionClosed:
                return


class StateBroadcaster:
    """Fans out snapshots to zero or more subscriptions."""

    def __init__(self, default_maxsize: int = DEFAULT_SUBSCRIBER_BUFFER) -> None:
        self._default_maxsize = default_maxsize
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, maxsize: int | None = None) -> Subscription:
        subscription = Subscription(maxsize or self._default_maxsize)
        with self._lock:
            if self._closed:
                subscription.close()
            else:
                self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        subscription.close()

    def publish(self, state: PlaybackState) -> None:
        with self._lock:
            if self._closed:
                return
            targets = list(self._subscriptions)
        for subscription in targets:
            if not subscription.offer(state):
                logger.debug(
                    "Subscriber buffer full; dropped notification",
                    extra={"dropped_total": subscription.dropped},
                )

    def close(self) -> None:
        """Close every subscription; later publishes are ignored."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            targets = list(self._subscriptions)
            self._subscriptions.clear()
        for subscription in targets:
            subscription.close()


class StateStore:
    """Lock-guarded current snapshot with publish-after-release updates."""

    def __init__(
        self,
        broadcaster: StateBroadcaster,
        initial: PlaybackState | None = None,
    ) -> None:
        self._broadcaster = broadcaster
        self._state = initial or PlaybackState()
        self._lock = threading.Lock()

    def get(self) -> PlaybackState:
        with self._lock:
            return self._state

    def update(
        self, mutate: Callable[[PlaybackState], PlaybackState]
    ) -> PlaybackState | None:
        """Apply `mutate` and broadcast the result if any field changed.

        Returns the new snapshot, or None when the update was a no-op.
        """
        with self._lock:
            current = self._state
            updated = mutate(current)
            if updated == current:
                return None
            self._state = updated
        self._broadcaster.publish(updated)
        return updated
