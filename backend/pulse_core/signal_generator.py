"""Moving-average crossover signal generator.

This module is pure business logic: it reads a price window and returns
a signal, holding no state between calls.

Rules (default windows 5/20):
- short SMA above long SMA -> BUY,  strength = short / long - 1
- long SMA above short SMA -> SELL, strength = long / short - 1
- equal                    -> HOLD at 0.5
Confidence is ``min(strength * 5, 0.95)``. The orchestrator only acts on
confidence above its threshold (0.7), so the scale and cap are the
contract to preserve.
"""

import logging
from collections.abc import Sequence

from pulse_core.models import Action, PricePoint, Signal, SignalConfig

logger = logging.getLogger(__name__)


def calculate_sma(prices: Sequence[float], period: int) -> float | None:
    """Arithmetic mean of the last ``period`` prices.

    Returns None when fewer than ``period`` prices are available.
    """
    if period < 1 or len(prices) < period:
        return None
    window = prices[-period:]
    return sum(window) / period


class SignalGenerator:
    """Stateless SMA crossover evaluator."""

    def __init__(self, config: SignalConfig | None = None):
        self.config = config or SignalConfig()

    @property
    def min_history(self) -> int:
        """Number of samples needed before a signal can be computed."""
        return self.config.long_window

    def evaluate(self, history: Sequence[PricePoint]) -> Signal | None:
        """Evaluate a price window.

        Args:
            history: Price samples, oldest first.

        Returns:
            A Signal, or None when there is not enough history.
        """
        cfg = self.config
        if len(history) < cfg.long_window:
            return None

        prices = [p.price for p in history[-cfg.long_window:]]
        short_sma = calculate_sma(prices, cfg.short_window)
        long_sma = calculate_sma(prices, cfg.long_window)

        # Ratios are meaningless for non-positive averages
        if short_sma is None or long_sma is None or short_sma <= 0 or long_sma <= 0:
            logger.debug(f"Degenerate averages (short={short_sma}, long={long_sma}), no signal")
            return None

        if short_sma > long_sma:
            strength = short_sma / long_sma - 1
            return Signal(
                action=Action.BUY,
                confidence=min(strength * cfg.confidence_scale, cfg.max_confidence),
                short_sma=short_sma,
                long_sma=long_sma,
            )

        if long_sma > short_sma:
            strength = long_sma / short_sma - 1
            return Signal(
                action=Action.SELL,
                confidence=min(strength * cfg.confidence_scale, cfg.max_confidence),
                short_sma=short_sma,
                long_sma=long_sma,
            )

        return Signal(
            action=Action.HOLD,
            confidence=cfg.hold_confidence,
            short_sma=short_sma,
            long_sma=long_sma,
        )
