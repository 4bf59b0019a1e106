"""Trading services."""

from pulse_app.services.price_feed import PriceFeedClient, PriceSubscription
from pulse_app.services.trade_executor import PaperExecutionService, TradeExecutor
from pulse_app.services.orchestrator import TickReport, TradeResult, TradingOrchestrator

__all__ = [
    "PriceFeedClient",
    "PriceSubscription",
    "PaperExecutionService",
    "TradeExecutor",
    "TickReport",
    "TradeResult",
    "TradingOrchestrator",
]
