"""Trading signal models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Action(str, Enum):
    """Directional action suggested by a signal."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class Signal(BaseModel):
    """A directional signal with a bounded confidence score.

    Produced fresh on every evaluation; never persisted.
    """

    model_config = ConfigDict(frozen=True)

    action: Action
    confidence: float = Field(ge=0.0, le=1.0)

    # Moving averages the signal was derived from (for logging)
    short_sma: float | None = None
    long_sma: float | None = None
