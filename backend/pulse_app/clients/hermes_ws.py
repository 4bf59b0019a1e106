"""Pyth Hermes WebSocket client for streaming price updates using picows."""

import asyncio
import logging
from collections.abc import Mapping
from typing import Callable

import orjson
from picows import ws_connect, WSFrame, WSTransport, WSListener, WSMsgType, WSCloseCode

from pulse_core.errors import FeedSubscriptionError
from pulse_core.protocols import ErrorSink, MessageSink

logger = logging.getLogger(__name__)


class HermesStreamError(Exception):
    """The oracle rejected a request or dropped the stream."""


class HermesPriceListener(WSListener):
    """picows listener for the Hermes price update stream."""

    def __init__(
        self,
        feed_ids: list[str],
        on_message: MessageSink,
        on_error: ErrorSink,
        on_connected: Callable[[], None],
        on_disconnected: Callable[[], None],
        loop: asyncio.AbstractEventLoop,
    ):
        self._feed_ids = feed_ids
        self._on_message = on_message
        self._on_error = on_error
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected
        self._transport: WSTransport | None = None
        # picows callbacks may run from different threads; everything
        # downstream is handed back to this loop
        self._loop = loop

    def on_ws_connected(self, transport: WSTransport):
        """Called when WebSocket connection is established."""
        self._transport = transport
        logger.info("picows: Hermes WebSocket connected")
        self._send_subscribe(self._feed_ids)
        self._loop.call_soon_threadsafe(self._on_connected)

    def on_ws_disconnected(self, transport: WSTransport):
        """Called when WebSocket is disconnected."""
        logger.info("picows: Hermes WebSocket disconnected")
        self._transport = None
        self._loop.call_soon_threadsafe(self._on_disconnected)

    def on_ws_frame(self, transport: WSTransport, frame: WSFrame):
        """Called when a new frame is received."""
        if frame.msg_type == WSMsgType.TEXT:
            self._handle_message(frame.get_payload_as_bytes())
        elif frame.msg_type == WSMsgType.PING:
            transport.send_pong(frame.get_payload_as_bytes())

    def _send_subscribe(self, feed_ids: list[str]) -> None:
        """Send subscription request."""
        if not self._transport:
            return

        msg = {"type": "subscribe", "ids": feed_ids}
        self._transport.send(WSMsgType.TEXT, orjson.dumps(msg))
        logger.info(f"Subscribed to Hermes price feeds: {feed_ids}")

    def _handle_message(self, payload: bytes | str) -> None:
        """Parse an incoming frame and forward it to the message sink."""
        try:
            data = orjson.loads(payload)
        except orjson.JSONDecodeError as e:
            logger.warning(f"Failed to parse Hermes message: {e}")
            return

        if not isinstance(data, Mapping):
            logger.warning(f"Unexpected Hermes message: {data!r}")
            return

        # Subscription acknowledgements
        if data.get("type") == "response":
            if data.get("status") != "success":
                error = HermesStreamError(
                    f"Hermes rejected subscription: {data.get('error', data)}"
                )
                logger.error(str(error))
                self._loop.call_soon_threadsafe(self._on_error, error)
            return

        self._loop.call_soon_threadsafe(self._on_message, data)

    def disconnect(self) -> None:
        """Disconnect the WebSocket."""
        if self._transport:
            self._transport.send_close(WSCloseCode.OK)
            self._transport.disconnect()


class HermesPriceStream:
    """Streaming subscription to a set of Hermes price feeds.

    One instance owns one WebSocket connection. When ``reconnect`` is
    enabled the connection is re-established with exponential backoff
    (initial delay doubling up to the cap); otherwise a dropped stream is
    logged and stays down until ``stop()``.
    """

    WS_URL = "wss://hermes.pyth.network/ws"

    def __init__(
        self,
        feed_ids: list[str],
        on_message: MessageSink,
        on_error: ErrorSink,
        *,
        url: str = WS_URL,
        reconnect: bool = True,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        connect_timeout: float = 10.0,
    ):
        self.feed_ids = list(feed_ids)
        self._on_message = on_message
        self._on_error = on_error
        self._url = url
        self._reconnect = reconnect
        self._initial_delay = initial_delay
        self._max_delay = max_delay
        self._connect_timeout = connect_timeout

        self._running = False
        self._reconnect_delay = initial_delay
        self._task: asyncio.Task | None = None
        self._listener: HermesPriceListener | None = None
        self._connected = asyncio.Event()
        self._disconnected = asyncio.Event()

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    async def start(self) -> None:
        """Open the connection and wait until the stream is established."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run())

        waiter = asyncio.create_task(self._connected.wait())
        try:
            await asyncio.wait(
                {waiter, self._task},
                timeout=self._connect_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if not waiter.done():
                waiter.cancel()

        if not self._connected.is_set():
            await self.stop()
            raise FeedSubscriptionError(
                f"Could not establish Hermes stream for {self.feed_ids} "
                f"within {self._connect_timeout}s"
            )

    async def stop(self) -> None:
        """Stop the WebSocket connection."""
        self._running = False
        if self._listener:
            self._listener.disconnect()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._connected.clear()

    def _on_connected(self) -> None:
        """Called when connection is established."""
        self._connected.set()
        self._disconnected.clear()
        self._reconnect_delay = self._initial_delay

    def _on_disconnected(self) -> None:
        """Called when connection is lost."""
        self._connected.clear()
        self._disconnected.set()

    def next_delay(self) -> float:
        """Return the current reconnect delay and advance the backoff."""
        delay = self._reconnect_delay
        self._reconnect_delay = min(self._reconnect_delay * 2, self._max_delay)
        return delay

    async def _run(self) -> None:
        """Main WebSocket loop with optional reconnection."""
        while self._running:
            try:
                await self._connect_and_process()
                if self._running:
                    self._on_error(HermesStreamError("Hermes stream closed by server"))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"picows Hermes error for {self.feed_ids}: {e}")
                self._on_error(e)

            if not self._running:
                break

            if not self._reconnect:
                logger.warning(
                    f"Hermes stream for {self.feed_ids} is down and reconnect is disabled"
                )
                break

            delay = self.next_delay()
            logger.info(f"Reconnecting Hermes WS in {delay} seconds...")
            await asyncio.sleep(delay)

    async def _connect_and_process(self) -> None:
        """Connect to WebSocket and wait for disconnection."""
        self._disconnected.clear()

        # Capture event loop here (in async context) to pass to listener
        loop = asyncio.get_running_loop()

        def listener_factory():
            self._listener = HermesPriceListener(
                feed_ids=self.feed_ids,
                on_message=self._on_message,
                on_error=self._on_error,
                on_connected=self._on_connected,
                on_disconnected=self._on_disconnected,
                loop=loop,
            )
            return self._listener

        logger.info(f"Connecting Hermes WS to {self._url}")
        await ws_connect(
            listener_factory,
            self._url,
            enable_auto_ping=True,
            auto_ping_idle_timeout=30,
            auto_ping_reply_timeout=10,
        )

        # Wait until disconnected
        await self._disconnected.wait()


def create_stream_factory(
    url: str = HermesPriceStream.WS_URL,
    *,
    reconnect: bool = True,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    connect_timeout: float = 10.0,
) -> Callable[[list[str], MessageSink, ErrorSink], HermesPriceStream]:
    """Build a transport factory for PriceFeedClient."""

    def factory(
        feed_ids: list[str], on_message: MessageSink, on_error: ErrorSink
    ) -> HermesPriceStream:
        return HermesPriceStream(
            feed_ids,
            on_message,
            on_error,
            url=url,
            reconnect=reconnect,
            initial_delay=initial_delay,
            max_delay=max_delay,
            connect_timeout=connect_timeout,
        )

    return factory
