import asyncio
import itertools
import logging
import threading
from collections import deque
from typing import Deque, Optional, Set

from notify_hub.models.errors import Lagged, PublishFailure, SubscriptionClosed
from notify_hub.utilities import RING_CAPACITY

logger = logging.getLogger(__name__)


# ------------ In-memory structures ------------
class Subscription:
    '''
    A private read cursor into a Broadcaster's ring.

    Driven by exactly one consumer: concurrent recv() calls on the same
    subscription are not supported.
    '''

    def __init__(self, broadcaster: "Broadcaster", subscriber_id: int, position: int):
        self.id = subscriber_id
        self._broadcaster = broadcaster
        # absolute position of the next unread message
        self._position = position
        self._closed = False

        # bound to the event loop of the first recv(); publishers on other
        # threads hand the wake-up over with call_soon_threadsafe
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        '''Messages readable without blocking (capped at the ring capacity).'''
        return self._broadcaster._pending(self._position)

    async def recv(self) -> str:
        '''
        Return the next message and advance the cursor.

        Raises Lagged(n) without blocking when n messages were evicted before
        this cursor read them, and SubscriptionClosed once the subscription
        (or its broadcaster) is closed.
        '''
        if self._wakeup is None:
            self._wakeup = asyncio.Event()
            self._loop = asyncio.get_running_loop()

        while True:
            message = self._broadcaster._read(self)
            if message is not None:
                return message
            await self._wakeup.wait()

    def close(self) -> None:
        if not self._broadcaster._unregister(self):
            return
        logger.debug(f"[BUS] subscription {self.id} closed")
        self._notify()

    def _notify(self) -> None:
        loop, wakeup = self._loop, self._wakeup
        if loop is None or wakeup is None:
            # never waited; the next recv() checks the ring first
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            wakeup.set()
            return
        try:
            loop.call_soon_threadsafe(wakeup.set)
        except RuntimeError:
            # the consumer's loop is gone, so nobody is waiting
            logger.debug(f"[BUS] subscription {self.id} has no running loop to wake")


class Broadcaster:
    '''
    Process-wide fan-out bus.

    Holds the last `capacity` published messages. Every subscription reads the
    same ring through its own cursor, so publishers never wait for a slow
    subscriber; a subscriber that falls more than `capacity` behind gets
    Lagged(n) on its next read instead.
    '''

    def __init__(self, capacity: int = RING_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._ring: Deque[str] = deque(maxlen=capacity)
        # absolute position of the next message == messages published so far
        self._tail = 0
        self._subscribers: Set[Subscription] = set()
        self._ids = itertools.count()
        self._closed = False
        # guards ring, cursors and registry; never held across an await
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def published_count(self) -> int:
        with self._lock:
            return self._tail

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, payload: str) -> int:
        '''
        Append a message for every current subscriber.

        Returns how many subscribers were registered when it was inserted;
        zero is not an error. Raises PublishFailure after close().
        '''
        with self._lock:
            if self._closed:
                raise PublishFailure("broadcaster is shut down")
            self._ring.append(payload)
            self._tail += 1
            position = self._tail
            subscribers = list(self._subscribers)

        # wake-ups happen outside the lock
        for sub in subscribers:
            sub._notify()
        logger.debug(f"[BUS] published message #{position} to {len(subscribers)} subscribers")
        return len(subscribers)

    def subscribe(self) -> Subscription:
        '''Register a cursor that sees only messages published after this call.'''
        with self._lock:
            sub = Subscription(self, next(self._ids), self._tail)
            if self._closed:
                sub._closed = True
            else:
                self._subscribers.add(sub)
        logger.debug(f"[BUS] subscription {sub.id} opened at position {sub._position}")
        return sub

    def close(self) -> None:
        '''Shut down: reject further publishes and close every subscription.'''
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscribers = list(self._subscribers)
        for sub in subscribers:
            sub.close()
        logger.info(f"[BUS] broadcaster shut down, closed {len(subscribers)} subscriptions")

    # ------------ Cursor access ------------
    def _read(self, sub: Subscription) -> Optional[str]:
        '''
        Advance `sub` by one message, or return None when it has caught up.
        Raises SubscriptionClosed or Lagged(n) as described on recv().
        '''
        with self._lock:
            if sub._closed:
                raise SubscriptionClosed()
            oldest = self._tail - len(self._ring)
            if sub._position < oldest:
                missed = oldest - sub._position
                sub._position = oldest
                raise Lagged(missed)
            if sub._position < self._tail:
                message = self._ring[sub._position - oldest]
                sub._position += 1
                return message
            # cleared under the lock so a publish that lands after this
            # point always leaves the event set
            sub._wakeup.clear()
            return None

    def _pending(self, position: int) -> int:
        with self._lock:
            return min(self._tail - position, len(self._ring))

    def _unregister(self, sub: Subscription) -> bool:
        '''Mark `sub` closed; False if it already was.'''
        with self._lock:
            if sub._closed:
                return False
            sub._closed = True
            self._subscribers.discard(sub)
            return True
