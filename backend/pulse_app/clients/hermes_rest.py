"""Pyth Hermes REST client for point-in-time price lookups."""

import asyncio
import logging
from dataclasses import replace
from typing import Any

import httpx

from pulse_core.decoding import decode_price_update, DEFAULT_MANTISSA_FIELD
from pulse_core.errors import DecodeError, PriceUnavailableError
from pulse_core.models import PriceUpdate, normalize_feed_id

logger = logging.getLogger(__name__)


class RateLimiter:
    """Spaces out API calls to stay under a per-minute budget."""

    def __init__(self, calls_per_minute: int = 180):
        self.calls_per_minute = calls_per_minute
        self.interval = 60.0 / calls_per_minute
        self.last_call = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect rate limit."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            wait_time = self.last_call + self.interval - loop.time()
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self.last_call = loop.time()


class HermesRestClient:
    """Hermes pull endpoint client.

    Hermes allows 30 requests per 10 seconds per IP, hence the default
    budget of 180 calls per minute.
    """

    BASE_URL = "https://hermes.pyth.network"

    def __init__(
        self,
        base_url: str = BASE_URL,
        mantissa_field: str = DEFAULT_MANTISSA_FIELD,
        calls_per_minute: int = 180,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.mantissa_field = mantissa_field
        self.rate_limiter = RateLimiter(calls_per_minute)
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, endpoint: str, params: Any = None
    ) -> Any:
        """Make an API request with rate limiting."""
        await self.rate_limiter.acquire()
        client = await self._get_client()
        response = await client.request(method, endpoint, params=params)
        response.raise_for_status()
        return response.json()

    async def get_latest_prices(self, feed_ids: list[str]) -> dict[str, PriceUpdate]:
        """
        Fetch the latest price for each feed.

        Args:
            feed_ids: Oracle feed ids (with or without the 0x prefix)

        Returns:
            Dict mapping each requested feed id to its decoded update.
            Feeds the oracle did not return, or returned malformed, are absent.
        """
        if not feed_ids:
            return {}

        params = [("ids[]", feed_id) for feed_id in feed_ids]
        params.append(("parsed", "true"))
        data = await self._request("GET", "/v2/updates/price/latest", params)

        requested = {normalize_feed_id(feed_id): feed_id for feed_id in feed_ids}
        prices: dict[str, PriceUpdate] = {}

        for record in data.get("parsed") or []:
            try:
                update = decode_price_update(record, self.mantissa_field)
            except DecodeError as e:
                logger.warning(f"Skipping malformed Hermes record: {e}")
                continue

            feed_id = requested.get(normalize_feed_id(update.feed_id))
            if feed_id is None:
                continue
            # Report under the id the caller asked for
            prices[feed_id] = replace(update, feed_id=feed_id)

        return prices

    async def get_latest_price(self, feed_id: str) -> PriceUpdate:
        """
        Fetch the latest price for a single feed.

        Raises:
            PriceUnavailableError: If the oracle returned no price for the feed.
        """
        prices = await self.get_latest_prices([feed_id])
        if feed_id not in prices:
            raise PriceUnavailableError(f"No price data available for ID: {feed_id}")
        return prices[feed_id]

    async def get_price_feeds(
        self,
        asset_type: str | None = None,
        query: str | None = None,
    ) -> list[dict]:
        """
        List the feeds published by the oracle.

        Args:
            asset_type: Filter by asset class ("crypto", "fx", "equity", "metal", "rates")
            query: Free-text filter on the feed symbol (e.g. "BTC")

        Returns:
            List of feed descriptors ({"id": ..., "attributes": {...}})
        """
        params: dict[str, Any] = {}
        if asset_type:
            params["asset_type"] = asset_type
        if query:
            params["query"] = query

        data = await self._request("GET", "/v2/price_feeds", params)
        return list(data) if isinstance(data, list) else []
