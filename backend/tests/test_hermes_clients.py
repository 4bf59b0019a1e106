"""Tests for the Hermes WebSocket and REST clients."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import orjson
import pytest
from picows import WSMsgType

from pulse_app.clients.hermes_rest import HermesRestClient
from pulse_app.clients.hermes_ws import (
    HermesPriceListener,
    HermesPriceStream,
    HermesStreamError,
    create_stream_factory,
)
from pulse_core.errors import FeedSubscriptionError, PriceUnavailableError

from fakes import BTC_FEED, ETH_FEED, price_message


def _parsed(feed_id: str, mantissa: int, expo: int = -8) -> dict:
    return price_message(feed_id, mantissa, expo=expo)["price_feed"]


class TestHermesPriceListener:
    """Tests for HermesPriceListener."""

    @pytest.fixture
    def sinks(self):
        return {
            "on_message": MagicMock(),
            "on_error": MagicMock(),
            "on_connected": MagicMock(),
            "on_disconnected": MagicMock(),
        }

    @pytest.mark.asyncio
    async def test_subscribes_on_connect(self, sinks):
        listener = HermesPriceListener(
            feed_ids=[BTC_FEED, ETH_FEED], loop=asyncio.get_running_loop(), **sinks
        )
        transport = MagicMock()

        listener.on_ws_connected(transport)
        await asyncio.sleep(0)

        msg_type, payload = transport.send.call_args.args
        assert msg_type == WSMsgType.TEXT
        assert orjson.loads(payload) == {"type": "subscribe", "ids": [BTC_FEED, ETH_FEED]}
        sinks["on_connected"].assert_called_once()

    @pytest.mark.asyncio
    async def test_price_update_forwarded(self, sinks):
        listener = HermesPriceListener(feed_ids=[BTC_FEED], loop=asyncio.get_running_loop(), **sinks)
        message = price_message(BTC_FEED, 685000000000)

        listener._handle_message(orjson.dumps(message))
        await asyncio.sleep(0)

        sinks["on_message"].assert_called_once_with(message)

    @pytest.mark.asyncio
    async def test_text_frame_forwarded(self, sinks):
        listener = HermesPriceListener(feed_ids=[BTC_FEED], loop=asyncio.get_running_loop(), **sinks)
        frame = MagicMock()
        frame.msg_type = WSMsgType.TEXT
        frame.get_payload_as_bytes.return_value = orjson.dumps(price_message(BTC_FEED, 1))

        listener.on_ws_frame(MagicMock(), frame)
        await asyncio.sleep(0)

        sinks["on_message"].assert_called_once()

    @pytest.mark.asyncio
    async def test_ping_answered(self, sinks):
        listener = HermesPriceListener(feed_ids=[BTC_FEED], loop=asyncio.get_running_loop(), **sinks)
        transport = MagicMock()
        frame = MagicMock()
        frame.msg_type = WSMsgType.PING
        frame.get_payload_as_bytes.return_value = b"ping"

        listener.on_ws_frame(transport, frame)

        transport.send_pong.assert_called_once_with(b"ping")

    @pytest.mark.asyncio
    async def test_successful_ack_is_ignored(self, sinks):
        listener = HermesPriceListener(feed_ids=[BTC_FEED], loop=asyncio.get_running_loop(), **sinks)

        listener._handle_message(b'{"type": "response", "status": "success"}')
        await asyncio.sleep(0)

        sinks["on_message"].assert_not_called()
        sinks["on_error"].assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_subscription_reports_error(self, sinks):
        listener = HermesPriceListener(feed_ids=[BTC_FEED], loop=asyncio.get_running_loop(), **sinks)

        listener._handle_message(
            b'{"type": "response", "status": "error", "error": "Price ids not found"}'
        )
        await asyncio.sleep(0)

        error = sinks["on_error"].call_args.args[0]
        assert isinstance(error, HermesStreamError)
        assert "Price ids not found" in str(error)

    @pytest.mark.asyncio
    async def test_invalid_json_is_dropped(self, sinks):
        listener = HermesPriceListener(feed_ids=[BTC_FEED], loop=asyncio.get_running_loop(), **sinks)

        listener._handle_message(b"{not json")
        listener._handle_message(b"[1, 2]")
        await asyncio.sleep(0)

        sinks["on_message"].assert_not_called()


class TestHermesPriceStream:
    """Tests for HermesPriceStream."""

    def test_backoff_doubles_to_cap(self):
        stream = HermesPriceStream([BTC_FEED], MagicMock(), MagicMock(), initial_delay=1.0, max_delay=8.0)
        assert [stream.next_delay() for _ in range(6)] == [1.0, 2.0, 4.0, 8.0, 8.0, 8.0]

    def test_connect_resets_backoff(self):
        stream = HermesPriceStream([BTC_FEED], MagicMock(), MagicMock(), initial_delay=1.0)
        stream.next_delay()
        stream.next_delay()
        stream._on_connected()
        assert stream.next_delay() == 1.0

    @pytest.mark.asyncio
    async def test_start_failure_without_reconnect(self):
        on_error = MagicMock()
        stream = HermesPriceStream(
            [BTC_FEED], MagicMock(), on_error, reconnect=False, connect_timeout=1.0
        )

        with patch(
            "pulse_app.clients.hermes_ws.ws_connect",
            new_callable=AsyncMock,
            side_effect=OSError("connection refused"),
        ):
            with pytest.raises(FeedSubscriptionError):
                await stream.start()

        assert isinstance(on_error.call_args.args[0], OSError)
        assert not stream.is_connected

    @pytest.mark.asyncio
    async def test_start_waits_for_connection(self):
        on_message = MagicMock()
        ws_transport = MagicMock()

        async def fake_connect(listener_factory, url, **kwargs):
            listener = listener_factory()
            listener.on_ws_connected(ws_transport)
            return ws_transport, listener

        stream = HermesPriceStream([BTC_FEED], on_message, MagicMock(), connect_timeout=1.0)
        with patch("pulse_app.clients.hermes_ws.ws_connect", side_effect=fake_connect):
            await stream.start()
            assert stream.is_connected

            subscribe = orjson.loads(ws_transport.send.call_args.args[1])
            assert subscribe["ids"] == [BTC_FEED]

            await stream.stop()

        assert not stream.is_connected
        ws_transport.disconnect.assert_called_once()

    def test_factory_builds_streams(self):
        factory = create_stream_factory("wss://example.test/ws", reconnect=False)
        stream = factory([BTC_FEED], MagicMock(), MagicMock())
        assert isinstance(stream, HermesPriceStream)
        assert stream.feed_ids == [BTC_FEED]


class TestHermesRestClient:
    """Tests for HermesRestClient."""

    @staticmethod
    def _client(handler) -> HermesRestClient:
        return HermesRestClient(
            base_url="https://hermes.test",
            calls_per_minute=60000,
            transport=httpx.MockTransport(handler),
        )

    @pytest.mark.asyncio
    async def test_get_latest_prices(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["ids"] = request.url.params.get_list("ids[]")
            captured["parsed"] = request.url.params.get("parsed")
            return httpx.Response(200, json={
                "binary": {"encoding": "hex", "data": []},
                "parsed": [_parsed(BTC_FEED, 685000000000), _parsed(ETH_FEED, 350000000000)],
            })

        client = self._client(handler)
        try:
            prices = await client.get_latest_prices([BTC_FEED, ETH_FEED])
        finally:
            await client.close()

        assert captured["path"] == "/v2/updates/price/latest"
        assert captured["ids"] == [BTC_FEED, ETH_FEED]
        assert captured["parsed"] == "true"
        # Keyed by the requested (0x-prefixed) ids
        assert prices[BTC_FEED].price == 6850.0
        assert prices[BTC_FEED].confidence == 0.5
        assert prices[ETH_FEED].price == 3500.0

    @pytest.mark.asyncio
    async def test_malformed_records_are_skipped(self):
        bad = _parsed(ETH_FEED, 1)
        del bad["price"]["conf"]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"parsed": [_parsed(BTC_FEED, 100000000), bad]})

        client = self._client(handler)
        try:
            prices = await client.get_latest_prices([BTC_FEED, ETH_FEED])
        finally:
            await client.close()

        assert list(prices) == [BTC_FEED]

    @pytest.mark.asyncio
    async def test_get_latest_price_unavailable(self):
        client = self._client(lambda request: httpx.Response(200, json={"parsed": []}))
        try:
            with pytest.raises(PriceUnavailableError):
                await client.get_latest_price(BTC_FEED)
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_empty_request_skips_http(self):
        handler = MagicMock()
        client = self._client(handler)
        assert await client.get_latest_prices([]) == {}
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_http_error_propagates(self):
        client = self._client(lambda request: httpx.Response(429, json={"error": "rate limited"}))
        try:
            with pytest.raises(httpx.HTTPStatusError):
                await client.get_latest_prices([BTC_FEED])
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_get_price_feeds(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["params"] = dict(request.url.params)
            return httpx.Response(200, json=[
                {"id": BTC_FEED[2:], "attributes": {"symbol": "Crypto.BTC/USD"}},
            ])

        client = self._client(handler)
        try:
            feeds = await client.get_price_feeds(asset_type="crypto", query="BTC")
        finally:
            await client.close()

        assert captured["params"] == {"asset_type": "crypto", "query": "BTC"}
        assert feeds[0]["attributes"]["symbol"] == "Crypto.BTC/USD"
