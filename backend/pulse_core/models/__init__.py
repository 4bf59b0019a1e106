"""Data models."""

from pulse_core.models.asset import AssetPair, normalize_feed_id
from pulse_core.models.config import SignalConfig
from pulse_core.models.price import PricePoint, PriceUpdate
from pulse_core.models.signal import Action, Signal
from pulse_core.models.trade import TradeRequest

__all__ = [
    # Cold path (Pydantic)
    "AssetPair",
    "SignalConfig",
    "Action",
    "Signal",
    "TradeRequest",
    # Hot path (dataclass)
    "PricePoint",
    "PriceUpdate",
    # Helpers
    "normalize_feed_id",
]
