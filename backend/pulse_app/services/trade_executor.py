"""Trade execution: turn a signal into a request for the execution service."""

import logging

from pulse_core.errors import TradeExecutionError, TradeRejectedError
from pulse_core.models import Action, AssetPair, Signal, TradeRequest
from pulse_core.protocols import ExecutionService

logger = logging.getLogger(__name__)


class PaperExecutionService:
    """
    Dry-run execution service.

    Accepts every request and returns a simulated confirmation id, so the
    full pipeline can run without touching a live venue.
    """

    def __init__(self):
        self.requests: list[TradeRequest] = []

    async def submit(self, request: TradeRequest) -> list[str]:
        self.requests.append(request)
        logger.warning(
            f"Dry run - simulating {request.action.value} {request.amount} "
            f"{request.base}/{request.quote}"
        )
        return [f"SIMULATED-{request.client_order_id}"]

    async def close(self) -> None:
        pass


class TradeExecutor:
    """
    Builds trade requests from signals and submits them.

    Failures are returned to the caller as TradeExecutionError; there is no
    retry here. Nothing besides logging is mutated.
    """

    def __init__(self, service: ExecutionService, trade_amount: float = 1.0):
        """
        Args:
            service: External execution service
            trade_amount: Base-asset quantity requested per trade
        """
        if trade_amount <= 0:
            raise ValueError(f"trade_amount must be positive, got {trade_amount}")
        self.service = service
        self.trade_amount = trade_amount

    def build_request(
        self,
        pair: AssetPair,
        signal: Signal,
        reference_price: float | None = None,
    ) -> TradeRequest:
        """Build the semantic request payload for a pair and signal."""
        if signal.action == Action.HOLD:
            raise TradeRejectedError(f"Refusing to trade a HOLD signal for {pair.symbol}")

        return TradeRequest(
            base=pair.base,
            quote=pair.quote,
            feed_id=pair.feed_id,
            action=signal.action,
            confidence=signal.confidence,
            amount=self.trade_amount,
            reference_price=reference_price,
        )

    async def execute(
        self,
        pair: AssetPair,
        signal: Signal,
        reference_price: float | None = None,
    ) -> list[str]:
        """
        Submit a trade for a signal.

        Args:
            pair: Asset pair to trade
            signal: Signal that crossed the action threshold
            reference_price: Latest observed price, forwarded for slippage checks

        Returns:
            Confirmation identifiers from the execution service

        Raises:
            TradeRejectedError: If the signal is not actionable
            TradeExecutionError: If the execution service failed
        """
        request = self.build_request(pair, signal, reference_price)
        logger.info(
            f"Executing {signal.action.value} for {pair.symbol} "
            f"(confidence: {signal.confidence:.2f}, amount: {request.amount})"
        )

        try:
            confirmations = await self.service.submit(request)
        except Exception as e:
            raise TradeExecutionError(
                f"Execution service failed for {pair.symbol} {signal.action.value}: {e}",
                pair_symbol=pair.symbol,
            ) from e

        logger.info(f"Trade transaction signatures for {pair.symbol}: {', '.join(confirmations)}")
        return confirmations

    async def close(self) -> None:
        await self.service.close()
