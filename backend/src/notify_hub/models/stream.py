import asyncio
import enum
import logging
from contextlib import suppress
from typing import AsyncIterator, Optional, Union

from notify_hub.models.broadcaster import Broadcaster
from notify_hub.models.errors import Lagged, SubscriptionClosed
from notify_hub.schemas import StreamEvent

logger = logging.getLogger(__name__)


class LagPolicy(str, enum.Enum):
    GAP = "gap"          # emit a "lagged" event carrying the missed count
    RESYNC = "resync"    # log it and keep going


class EventStream:
    '''
    Projects one subscription onto a numbered event sequence for a single
    connection.

    The subscription is taken when the stream is created, so the stream sees
    only messages published from that point on. Sequence numbers start at 0
    and grow by one per emitted event. The stream ends when `cancel` is set,
    when the subscription is closed (broadcaster shutdown), or when the
    consumer stops iterating; in every case the subscription is released.
    '''

    def __init__(
        self,
        broadcaster: Broadcaster,
        cancel: Optional[asyncio.Event] = None,
        lag_policy: Union[LagPolicy, str] = LagPolicy.GAP,
    ):
        self.subscription = broadcaster.subscribe()
        self._cancel = cancel if cancel is not None else asyncio.Event()
        self._lag_policy = LagPolicy(lag_policy)
        self._sequence = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _next_sequence(self) -> int:
        sequence = self._sequence
        self._sequence += 1
        return sequence

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.subscription.close()
        logger.info(f"[SSE] stream {self.subscription.id} closed after {self._sequence} events")

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self.events()

    async def events(self) -> AsyncIterator[StreamEvent]:
        cancelled = asyncio.ensure_future(self._cancel.wait())
        receiver: Optional[asyncio.Future] = None
        try:
            while not self._closed and not self._cancel.is_set():
                receiver = asyncio.ensure_future(self.subscription.recv())
                # whichever resolves first: next message or cancellation
                await asyncio.wait({receiver, cancelled}, return_when=asyncio.FIRST_COMPLETED)
                if not receiver.done():
                    break

                try:
                    payload = receiver.result()
                except SubscriptionClosed:
                    break
                except Lagged as exc:
                    logger.warning(f"[SSE] stream {self.subscription.id} lagged, {exc.missed} messages skipped")
                    if self._lag_policy is LagPolicy.GAP:
                        yield StreamEvent(sequence=self._next_sequence(), payload=str(exc.missed), kind="lagged")
                    continue

                yield StreamEvent(sequence=self._next_sequence(), payload=payload)
        finally:
            for task in (receiver, cancelled):
                if task is not None and not task.done():
                    task.cancel()
                    with suppress(asyncio.CancelledError):
                        await task
            self.close()
