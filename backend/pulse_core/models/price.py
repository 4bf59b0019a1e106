"""Hot path price models.

Plain slotted dataclasses: one instance is created per oracle update,
so these stay away from pydantic validation.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PricePoint:
    """One observed price sample."""

    price: float
    timestamp: int  # Unix timestamp in seconds


@dataclass(frozen=True, slots=True)
class PriceUpdate:
    """A decoded oracle update for one feed."""

    feed_id: str
    price: float
    confidence: float
    timestamp: int  # Unix timestamp in seconds (oracle publish time)

    def to_point(self) -> PricePoint:
        return PricePoint(price=self.price, timestamp=self.timestamp)
