"""Trading orchestrator.

Owns the trading session:
- one price subscription per asset pair, wired into the history store
- a periodic evaluation loop (signal per pair, trade above threshold)
- start/stop lifecycle

Ticks never overlap: the loop awaits each tick before waiting out the
interval, and run_tick() itself is serialized by a lock.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Literal

from pulse_core.errors import FeedSubscriptionError
from pulse_core.history import PriceHistoryStore
from pulse_core.models import Action, AssetPair, PricePoint, Signal
from pulse_core.protocols import PriceSource
from pulse_core.signal_generator import SignalGenerator
from pulse_app.services.price_feed import PriceFeedClient, PriceSubscription
from pulse_app.services.trade_executor import TradeExecutor

logger = logging.getLogger(__name__)

ExecutionMode = Literal["sequential", "concurrent"]


@dataclass
class TradeResult:
    """Outcome of one trade attempt."""
    pair_symbol: str
    action: Action
    confidence: float
    confirmations: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class TickReport:
    """Summary of one evaluation tick."""
    tick: int
    started_at: float
    finished_at: float | None = None
    evaluated: int = 0
    signals: dict[str, Signal] = field(default_factory=dict)
    trades: list[TradeResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def failures(self) -> list[TradeResult]:
        return [t for t in self.trades if not t.ok]

    @property
    def duration(self) -> float | None:
        if self.finished_at is None:
            return None
        return self.finished_at - self.started_at


class TradingOrchestrator:
    """Runs the feed -> history -> signal -> trade pipeline."""

    def __init__(
        self,
        pairs: list[AssetPair],
        feed_client: PriceFeedClient,
        executor: TradeExecutor,
        *,
        store: PriceHistoryStore | None = None,
        signal_generator: SignalGenerator | None = None,
        confidence_threshold: float = 0.7,
        tick_interval: float = 30.0,
        execution_mode: ExecutionMode = "sequential",
        max_concurrent_trades: int = 4,
        price_source: PriceSource | None = None,
    ):
        """
        Args:
            pairs: Asset pairs to trade
            feed_client: Opens price subscriptions
            executor: Submits trades
            store: Rolling price history (a fresh one by default)
            signal_generator: Signal evaluator (default windows by default)
            confidence_threshold: Trades run only above this confidence
            tick_interval: Seconds between the end of one tick and the next
            execution_mode: "sequential" or "concurrent" trade submission
            max_concurrent_trades: Bound on in-flight trades in concurrent mode
            price_source: Optional pull source used to seed history on start
        """
        if not pairs:
            raise ValueError("At least one asset pair is required")
        if execution_mode not in ("sequential", "concurrent"):
            raise ValueError(f"Unknown execution mode: {execution_mode}")
        if max_concurrent_trades < 1:
            raise ValueError("max_concurrent_trades must be at least 1")
        if tick_interval <= 0:
            raise ValueError(f"tick_interval must be positive, got {tick_interval}")
        if not 0.0 <= confidence_threshold <= 1.0:
            raise ValueError(f"confidence_threshold must be in [0, 1], got {confidence_threshold}")

        self.pairs = list(pairs)
        self.feed_client = feed_client
        self.executor = executor
        self.store = store or PriceHistoryStore()
        self.signal_generator = signal_generator or SignalGenerator()
        self.confidence_threshold = confidence_threshold
        self.tick_interval = tick_interval
        self.execution_mode = execution_mode
        self.price_source = price_source

        self._active = False
        self._subscriptions: dict[str, PriceSubscription] = {}
        self._loop_task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._tick_lock = asyncio.Lock()
        self._trade_semaphore = asyncio.Semaphore(max_concurrent_trades)
        self._tick_count = 0
        self.last_report: TickReport | None = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def subscriptions(self) -> dict[str, PriceSubscription]:
        """Open subscriptions keyed by pair symbol."""
        return dict(self._subscriptions)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """
        Subscribe every pair and start the evaluation loop.

        No-op while already running.

        Raises:
            FeedSubscriptionError: If no subscription could be opened
        """
        if self._active:
            logger.debug("Orchestrator already running")
            return

        self._active = True
        self._stop_event = asyncio.Event()

        for pair in self.pairs:
            try:
                subscription = await self.feed_client.subscribe(
                    [pair.feed_id], partial(self._on_price_update, pair)
                )
            except Exception as e:
                logger.error(f"Failed to subscribe {pair.symbol}: {e}")
                if not self._active:
                    # stop() ran while we were subscribing
                    return
                continue

            if not self._active:
                await self.feed_client.close(subscription)
                return
            self._subscriptions[pair.symbol] = subscription

        if not self._subscriptions:
            self._active = False
            raise FeedSubscriptionError(
                f"No price subscriptions could be opened for "
                f"{[p.symbol for p in self.pairs]}"
            )

        missing = [p.symbol for p in self.pairs if p.symbol not in self._subscriptions]
        if missing:
            logger.warning(f"Running without price feeds for {missing}")

        if self.price_source is not None:
            await self._seed_history()
            if not self._active:
                return

        self._loop_task = asyncio.create_task(self._run_loop())
        logger.info(
            f"Trading started for {list(self._subscriptions)} "
            f"(interval={self.tick_interval}s, threshold={self.confidence_threshold}, "
            f"mode={self.execution_mode})"
        )

    async def stop(self) -> None:
        """
        Stop trading: close feeds, finish the in-flight tick, clear history.

        Calling it again is a no-op.
        """
        if not self._active and self._loop_task is None and not self._subscriptions:
            return

        self._active = False
        self._stop_event.set()

        subscriptions = list(self._subscriptions.items())
        self._subscriptions.clear()
        for symbol, subscription in subscriptions:
            try:
                await self.feed_client.close(subscription)
            except Exception as e:
                logger.error(f"Error closing price feed for {symbol}: {e}")

        task = self._loop_task
        self._loop_task = None
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

        # Wait out a tick started outside the loop
        async with self._tick_lock:
            pass

        self.store.clear()
        logger.info(f"Trading stopped after {self._tick_count} ticks")

    # -------------------------------------------------------------------------
    # Feed wiring
    # -------------------------------------------------------------------------

    def _on_price_update(
        self,
        pair: AssetPair,
        feed_id: str,
        price: float,
        confidence: float,
        timestamp: int,
    ) -> None:
        self.store.append(pair.feed_id, PricePoint(price=price, timestamp=timestamp))
        logger.debug(f"{pair.symbol} price {price} (+/-{confidence}) at {timestamp}")

    async def _seed_history(self) -> None:
        """Prime empty histories with one pull-endpoint snapshot."""
        try:
            prices = await self.price_source.get_latest_prices(
                [pair.feed_id for pair in self.pairs]
            )
        except Exception as e:
            logger.warning(f"Could not seed price history: {e}")
            return

        # History is discarded on stop
        if not self._active:
            return

        for pair in self.pairs:
            update = prices.get(pair.feed_id)
            if update is None or self.store.size(pair.feed_id) > 0:
                continue
            self.store.append(pair.feed_id, update.to_point())
            logger.info(f"Seeded {pair.symbol} history at {update.price}")

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    async def run_tick(self) -> TickReport:
        """Evaluate every pair once and trade on strong signals."""
        async with self._tick_lock:
            self._tick_count += 1
            report = TickReport(tick=self._tick_count, started_at=time.monotonic())
            pending: list[tuple[AssetPair, Signal, float | None]] = []

            for pair in self.pairs:
                if self._stop_event.is_set():
                    report.skipped.append(pair.symbol)
                    continue

                history = self.store.snapshot(pair.feed_id)
                report.evaluated += 1
                signal = self.signal_generator.evaluate(history)
                if signal is None:
                    logger.debug(
                        f"{pair.symbol}: {len(history)}/"
                        f"{self.signal_generator.min_history} samples, no signal"
                    )
                    continue

                report.signals[pair.symbol] = signal
                logger.info(
                    f"Signal for {pair.symbol}: {signal.action.value} "
                    f"(confidence: {signal.confidence:.4f})"
                )

                if signal.action == Action.HOLD or signal.confidence <= self.confidence_threshold:
                    continue

                reference_price = history[-1].price if history else None
                if self.execution_mode == "sequential":
                    report.trades.append(await self._trade(pair, signal, reference_price))
                else:
                    pending.append((pair, signal, reference_price))

            if pending:
                results = await asyncio.gather(
                    *(self._trade_bounded(*args) for args in pending)
                )
                report.trades.extend(results)

            report.finished_at = time.monotonic()
            self.last_report = report

            if report.failures:
                logger.warning(
                    f"Tick {report.tick}: {len(report.failures)}/{len(report.trades)} trades failed"
                )
            return report

    async def _trade(
        self,
        pair: AssetPair,
        signal: Signal,
        reference_price: float | None,
    ) -> TradeResult:
        result = TradeResult(
            pair_symbol=pair.symbol, action=signal.action, confidence=signal.confidence
        )
        try:
            result.confirmations = await self.executor.execute(
                pair, signal, reference_price=reference_price
            )
        except Exception as e:
            result.error = str(e)
            logger.error(
                f"Trade failed for {pair.symbol} ({signal.action.value}, "
                f"confidence {signal.confidence:.4f}): {e}"
            )
        return result

    async def _trade_bounded(
        self,
        pair: AssetPair,
        signal: Signal,
        reference_price: float | None,
    ) -> TradeResult:
        async with self._trade_semaphore:
            return await self._trade(pair, signal, reference_price)

    async def _run_loop(self) -> None:
        """Tick, then wait out the interval, until stopped."""
        while self._active:
            try:
                await self.run_tick()
            except Exception as e:
                logger.error(f"Tick failed: {e}")

            if not self._active:
                break

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.tick_interval)
            except asyncio.TimeoutError:
                pass
