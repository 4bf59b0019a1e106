"""Price feed subscriptions.

Each subscription pairs one oracle transport with a bounded queue and a
dispatcher task:

    transport --raw JSON--> decode --PriceUpdate--> queue --> on_update

Decoding happens as messages arrive; the dispatcher drains the queue in
arrival order, so updates for a feed reach the callback in FIFO order and
slow consumers never block the transport. A malformed update is dropped
on its own; it never ends the subscription.
"""

import asyncio
import inspect
import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from pulse_core.decoding import decode_price_update, extract_price_records, DEFAULT_MANTISSA_FIELD
from pulse_core.errors import DecodeError, FeedSubscriptionError
from pulse_core.models import PriceUpdate, normalize_feed_id
from pulse_core.protocols import PriceUpdateCallback, StreamTransport, TransportFactory

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000


class PriceSubscription:
    """Handle for one open price stream."""

    def __init__(self, feed_ids: list[str], queue_size: int):
        self.feed_ids = list(feed_ids)
        self.queue: asyncio.Queue[PriceUpdate] = asyncio.Queue(maxsize=queue_size)
        self.transport: StreamTransport | None = None
        self.dispatcher: asyncio.Task | None = None
        self.closed = False

        # Normalized id -> id as subscribed
        self._ids = {normalize_feed_id(feed_id): feed_id for feed_id in feed_ids}

        # Counters
        self.received = 0
        self.dropped = 0
        self.decode_errors = 0
        self.transport_errors = 0

    def resolve(self, feed_id: str) -> str | None:
        """Map an id echoed by the oracle back to the subscribed id."""
        return self._ids.get(normalize_feed_id(feed_id))

    @property
    def is_connected(self) -> bool:
        return bool(self.transport and self.transport.is_connected)

    def stats(self) -> dict:
        return {
            "feed_ids": self.feed_ids,
            "connected": self.is_connected,
            "received": self.received,
            "dropped": self.dropped,
            "decode_errors": self.decode_errors,
            "transport_errors": self.transport_errors,
            "queued": self.queue.qsize(),
        }

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<PriceSubscription {self.feed_ids} {state}>"


class PriceFeedClient:
    """Opens and closes decoded price streams against the oracle."""

    def __init__(
        self,
        transport_factory: TransportFactory,
        mantissa_field: str = DEFAULT_MANTISSA_FIELD,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        """
        Args:
            transport_factory: Builds a stream transport for a list of feed ids
            mantissa_field: Name of the mantissa field in raw price records
            queue_size: Maximum updates buffered per subscription
        """
        if queue_size < 1:
            raise ValueError(f"queue_size must be at least 1, got {queue_size}")
        self._transport_factory = transport_factory
        self.mantissa_field = mantissa_field
        self.queue_size = queue_size

    async def subscribe(
        self,
        feed_ids: list[str],
        on_update: PriceUpdateCallback,
    ) -> PriceSubscription:
        """
        Open one stream for a set of feeds.

        Suspends until the transport reports the stream established.

        Args:
            feed_ids: Oracle feed ids to stream
            on_update: Called as on_update(feed_id, price, confidence, timestamp)
                for every decoded update; may be sync or async

        Raises:
            FeedSubscriptionError: If the stream could not be opened
        """
        if not feed_ids:
            raise ValueError("feed_ids must not be empty")

        subscription = PriceSubscription(feed_ids, self.queue_size)

        def on_message(message: Mapping[str, Any]) -> None:
            self._handle_message(subscription, message)

        def on_error(error: Exception) -> None:
            self._handle_transport_error(subscription, error)

        subscription.transport = self._transport_factory(
            subscription.feed_ids, on_message, on_error
        )
        subscription.dispatcher = asyncio.create_task(
            self._dispatch(subscription, on_update)
        )

        try:
            await subscription.transport.start()
        except Exception as e:
            subscription.closed = True
            await self._cancel_dispatcher(subscription)
            if isinstance(e, FeedSubscriptionError):
                raise
            raise FeedSubscriptionError(
                f"Failed to open price stream for {feed_ids}: {e}"
            ) from e

        logger.info(f"Price stream open for {feed_ids}")
        return subscription

    async def close(self, subscription: PriceSubscription) -> None:
        """Close a subscription. Calling it again is a no-op."""
        if subscription.closed:
            return
        subscription.closed = True

        try:
            if subscription.transport:
                await subscription.transport.stop()
        finally:
            await self._cancel_dispatcher(subscription)

        logger.info(
            f"Price stream closed for {subscription.feed_ids} "
            f"(received={subscription.received}, dropped={subscription.dropped}, "
            f"decode_errors={subscription.decode_errors})"
        )

    def _handle_message(self, subscription: PriceSubscription, message: Mapping[str, Any]) -> None:
        """Decode a raw message and queue its updates."""
        if subscription.closed:
            return

        for record in extract_price_records(message):
            try:
                update = decode_price_update(record, self.mantissa_field)
            except DecodeError as e:
                subscription.decode_errors += 1
                logger.warning(f"Dropping malformed price update: {e}")
                continue

            feed_id = subscription.resolve(update.feed_id)
            if feed_id is None:
                logger.debug(f"Ignoring update for unsubscribed feed {update.feed_id}")
                continue
            if feed_id != update.feed_id:
                update = replace(update, feed_id=feed_id)

            try:
                subscription.queue.put_nowait(update)
            except asyncio.QueueFull:
                subscription.dropped += 1
                logger.warning(
                    f"Price queue full for {feed_id}, dropping update at {update.timestamp}"
                )
                continue
            subscription.received += 1

    def _handle_transport_error(self, subscription: PriceSubscription, error: Exception) -> None:
        """Record a transport failure; the transport decides whether to recover."""
        subscription.transport_errors += 1
        logger.warning(
            f"Price stream for {subscription.feed_ids} degraded "
            f"({subscription.transport_errors} errors): {error}"
        )

    async def _dispatch(
        self,
        subscription: PriceSubscription,
        on_update: PriceUpdateCallback,
    ) -> None:
        """Deliver queued updates to the callback in arrival order."""
        while True:
            update = await subscription.queue.get()
            try:
                result = on_update(
                    update.feed_id, update.price, update.confidence, update.timestamp
                )
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Price update callback error for {update.feed_id}: {e}")
            finally:
                subscription.queue.task_done()

    async def _cancel_dispatcher(self, subscription: PriceSubscription) -> None:
        task = subscription.dispatcher
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        subscription.dispatcher = None
