"""Interfaces for the external collaborators.

This module provides:
- StreamTransport: a push-style price stream (open/close)
- ExecutionService: the downstream trade execution service
- PriceSource: a point-in-time price lookup
- Type aliases for the callbacks that connect them
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from pulse_core.models import PriceUpdate, TradeRequest

# ---------------------------------------------------------------------------
# Callback type aliases
# ---------------------------------------------------------------------------
# Raw decoded-JSON message from the oracle transport
MessageSink = Callable[[Mapping[str, Any]], None]
# Transport-level failure (connection refused, dropped stream, ...)
ErrorSink = Callable[[Exception], None]
# Per-update callback: (feed_id, price, confidence, timestamp)
PriceUpdateCallback = Callable[[str, float, float, int], Awaitable[None] | None]


# ---------------------------------------------------------------------------
# Stream transport
# ---------------------------------------------------------------------------
@runtime_checkable
class StreamTransport(Protocol):
    """A multi-feed price stream.

    Implementations must invoke the message and error sinks on the event
    loop thread that called ``start()``.
    """

    async def start(self) -> None:
        """Open the stream; returns once it is established.

        Raises:
            FeedSubscriptionError: If the stream cannot be established.
        """
        ...

    async def stop(self) -> None:
        """Close the stream. Safe to call more than once."""
        ...

    @property
    def is_connected(self) -> bool:
        ...


# (feed_ids, on_message, on_error) -> transport
TransportFactory = Callable[[list[str], MessageSink, ErrorSink], StreamTransport]


# ---------------------------------------------------------------------------
# Execution service
# ---------------------------------------------------------------------------
@runtime_checkable
class ExecutionService(Protocol):
    """External trade execution service."""

    async def submit(self, request: TradeRequest) -> list[str]:
        """Submit a trade request and return confirmation identifiers."""
        ...

    async def close(self) -> None:
        ...


# ---------------------------------------------------------------------------
# Pull-style price source
# ---------------------------------------------------------------------------
@runtime_checkable
class PriceSource(Protocol):
    """Point-in-time latest price lookup."""

    async def get_latest_prices(self, feed_ids: list[str]) -> dict[str, PriceUpdate]:
        """Latest decoded prices keyed by the requested feed id."""
        ...
