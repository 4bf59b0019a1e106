"""Application entry point: wires the trading pipeline and runs it."""

import asyncio
import logging
import signal
from pathlib import Path

from pulse_app.clients import ExecutionServiceClient, HermesRestClient, create_stream_factory
from pulse_app.config import Settings, get_settings
from pulse_app.services import (
    PaperExecutionService,
    PriceFeedClient,
    TradeExecutor,
    TradingOrchestrator,
)
from pulse_app.trading_config import load_trading_config
from pulse_core.history import PriceHistoryStore
from pulse_core.protocols import ExecutionService
from pulse_core.signal_generator import SignalGenerator

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging and quiet third-party libraries."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("picows").setLevel(logging.WARNING)


def build_execution_service(settings: Settings) -> ExecutionService:
    if settings.dry_run:
        logger.warning("DRY RUN mode - trades are simulated")
        return PaperExecutionService()
    return ExecutionServiceClient(
        settings.execution_url,
        api_key=settings.execution_api_key,
    )


def build_rest_client(settings: Settings) -> HermesRestClient:
    return HermesRestClient(
        base_url=settings.hermes_rest_url,
        mantissa_field=settings.oracle_mantissa_field,
    )


def build_orchestrator(
    settings: Settings,
    config_path: Path | None = None,
    rest_client: HermesRestClient | None = None,
) -> TradingOrchestrator:
    """Build the orchestrator and its collaborators from configuration."""
    trading_config = load_trading_config(config_path)

    stream_factory = create_stream_factory(
        settings.hermes_ws_url,
        reconnect=settings.reconnect_enabled,
        initial_delay=settings.reconnect_initial_delay,
        max_delay=settings.reconnect_max_delay,
        connect_timeout=settings.connect_timeout,
    )
    feed_client = PriceFeedClient(
        stream_factory,
        mantissa_field=settings.oracle_mantissa_field,
        queue_size=settings.feed_queue_size,
    )
    executor = TradeExecutor(
        build_execution_service(settings),
        trade_amount=settings.trade_amount,
    )

    return TradingOrchestrator(
        trading_config.get_asset_pairs(),
        feed_client,
        executor,
        store=PriceHistoryStore(settings.history_capacity),
        signal_generator=SignalGenerator(settings.signal_config()),
        confidence_threshold=settings.confidence_threshold,
        tick_interval=settings.tick_interval,
        execution_mode=settings.execution_mode,
        max_concurrent_trades=settings.max_concurrent_trades,
        price_source=rest_client if settings.seed_history else None,
    )


async def run(
    duration: float | None = None,
    config_path: Path | None = None,
    settings: Settings | None = None,
) -> None:
    """
    Run the trading loop until SIGINT/SIGTERM or until ``duration`` elapses.

    Args:
        duration: Optional run time in seconds
        config_path: Path to trading.yaml (default next to the package)
        settings: Settings override (environment by default)
    """
    settings = settings or get_settings()
    rest_client = build_rest_client(settings)
    orchestrator = build_orchestrator(settings, config_path, rest_client)

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except NotImplementedError:
            # Windows event loops
            pass

    try:
        await orchestrator.start()
        logger.info("Trading service running, press Ctrl+C to stop")
        try:
            await asyncio.wait_for(shutdown.wait(), timeout=duration)
        except asyncio.TimeoutError:
            logger.info(f"Run duration of {duration}s elapsed")
    finally:
        logger.info("Shutting down...")
        await orchestrator.stop()
        await orchestrator.executor.close()
        await rest_client.close()
        logger.info("Shutdown complete")


async def print_latest_prices(
    config_path: Path | None = None,
    settings: Settings | None = None,
) -> None:
    """Print one pull-endpoint snapshot for the configured pairs."""
    settings = settings or get_settings()
    pairs = load_trading_config(config_path).get_asset_pairs()
    client = build_rest_client(settings)
    try:
        prices = await client.get_latest_prices([pair.feed_id for pair in pairs])
    finally:
        await client.close()

    for pair in pairs:
        update = prices.get(pair.feed_id)
        if update is None:
            print(f"{pair.symbol:<12} unavailable")
            continue
        print(
            f"{pair.symbol:<12} {update.price:>16.6f}  "
            f"+/- {update.confidence:.6f}  (t={update.timestamp})"
        )
