"""Exception types shared by the feed, signal and execution layers."""


class PulseError(Exception):
    """Base class for all trader errors."""


class DecodeError(PulseError):
    """A raw oracle update could not be decoded into a price."""


class FeedSubscriptionError(PulseError):
    """A price stream could not be opened."""


class TradeRejectedError(PulseError):
    """The executor refused to build a request for this signal."""


class TradeExecutionError(PulseError):
    """The execution service failed to accept a trade request."""

    def __init__(self, message: str, *, pair_symbol: str | None = None):
        super().__init__(message)
        self.pair_symbol = pair_symbol


class PriceUnavailableError(PulseError, LookupError):
    """The oracle returned no usable price for a feed."""
