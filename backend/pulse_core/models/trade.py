"""Trade request model sent to the execution service."""

from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from pulse_core.models.signal import Action


class TradeRequest(BaseModel):
    """Semantic trade request.

    The execution service turns this into exchange-specific instructions;
    nothing here is chain or venue specific.
    """

    model_config = ConfigDict(frozen=True)

    base: str
    quote: str
    feed_id: str
    action: Action
    confidence: float
    amount: float = Field(gt=0)
    reference_price: float | None = None
    client_order_id: str = Field(default_factory=lambda: uuid4().hex)
