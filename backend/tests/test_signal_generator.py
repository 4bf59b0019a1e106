"""Tests for the SMA crossover signal generator."""

import pytest
from pydantic import ValidationError

from pulse_core.models import Action, PricePoint, Signal, SignalConfig
from pulse_core.signal_generator import SignalGenerator, calculate_sma


def _history(prices):
    return [PricePoint(price=float(p), timestamp=i) for i, p in enumerate(prices)]


class TestCalculateSma:
    def test_mean_of_last_period(self):
        assert calculate_sma([1, 2, 3, 4, 5, 6], 3) == 5.0

    def test_not_enough_prices(self):
        assert calculate_sma([1, 2], 3) is None

    def test_invalid_period(self):
        assert calculate_sma([1, 2, 3], 0) is None


class TestSignalGenerator:
    @pytest.fixture
    def generator(self):
        return SignalGenerator()

    def test_min_history_is_long_window(self, generator):
        assert generator.min_history == 20

    def test_short_history_gives_no_signal(self, generator):
        assert generator.evaluate([]) is None
        assert generator.evaluate(_history([100] * 19)) is None

    def test_flat_history_holds(self, generator):
        signal = generator.evaluate(_history([100] * 20))
        assert signal.action == Action.HOLD
        assert signal.confidence == 0.5

    def test_rising_short_average_buys(self, generator):
        signal = generator.evaluate(_history([100] * 15 + [101] * 5))

        short_sma = 101.0
        long_sma = (100 * 15 + 101 * 5) / 20
        assert signal.action == Action.BUY
        assert signal.short_sma == pytest.approx(short_sma)
        assert signal.long_sma == pytest.approx(long_sma)
        assert signal.confidence == pytest.approx((short_sma / long_sma - 1) * 5)

    def test_strictly_increasing_prices_buy(self, generator):
        signal = generator.evaluate(_history(range(1, 21)))

        short_sma = (16 + 17 + 18 + 19 + 20) / 5
        long_sma = sum(range(1, 21)) / 20
        assert signal.action == Action.BUY
        assert signal.confidence == pytest.approx(min((short_sma / long_sma - 1) * 5, 0.95))
        assert signal.confidence == 0.95

    def test_gently_increasing_prices_buy_below_cap(self, generator):
        prices = [100 + 0.01 * i for i in range(20)]
        signal = generator.evaluate(_history(prices))

        short_sma = sum(prices[-5:]) / 5
        long_sma = sum(prices) / 20
        assert signal.action == Action.BUY
        assert signal.confidence == pytest.approx((short_sma / long_sma - 1) * 5)
        assert signal.confidence < 0.95

    def test_strictly_decreasing_prices_sell(self, generator):
        prices = [200 - i for i in range(20)]
        signal = generator.evaluate(_history(prices))

        short_sma = sum(prices[-5:]) / 5
        long_sma = sum(prices) / 20
        assert signal.action == Action.SELL
        assert signal.confidence == pytest.approx(min((long_sma / short_sma - 1) * 5, 0.95))

    def test_falling_short_average_sells(self, generator):
        signal = generator.evaluate(_history([101] * 15 + [100] * 5))

        short_sma = 100.0
        long_sma = (101 * 15 + 100 * 5) / 20
        assert signal.action == Action.SELL
        assert signal.confidence == pytest.approx((long_sma / short_sma - 1) * 5)

    def test_confidence_is_capped(self, generator):
        signal = generator.evaluate(_history([100] * 15 + [200] * 5))
        assert signal.action == Action.BUY
        assert signal.confidence == 0.95

    def test_strong_move_crosses_default_threshold(self, generator):
        # (short / long - 1) * 5 > 0.7 needs roughly a 14% gap
        signal = generator.evaluate(_history([100] * 15 + [160] * 5))
        assert signal.confidence > 0.7

    def test_only_latest_window_is_used(self, generator):
        old_noise = [1, 5000, 3] * 10
        assert generator.evaluate(_history(old_noise + [100] * 20)).action == Action.HOLD

    def test_non_positive_averages_give_no_signal(self, generator):
        assert generator.evaluate(_history([0] * 20)) is None
        assert generator.evaluate(_history([-5] * 20)) is None

    def test_evaluation_is_deterministic(self, generator):
        history = _history(list(range(1, 31)))
        assert generator.evaluate(history) == generator.evaluate(history)

    def test_custom_windows(self):
        generator = SignalGenerator(SignalConfig(short_window=2, long_window=4))
        assert generator.evaluate(_history([1, 1, 1])) is None
        assert generator.evaluate(_history([1, 1, 2, 2])).action == Action.BUY


class TestSignalConfig:
    def test_defaults(self):
        config = SignalConfig()
        assert (config.short_window, config.long_window) == (5, 20)
        assert config.confidence_scale == 5.0
        assert config.max_confidence == 0.95

    def test_long_must_exceed_short(self):
        with pytest.raises(ValidationError, match="must exceed"):
            SignalConfig(short_window=20, long_window=20)

    def test_max_confidence_range(self):
        with pytest.raises(ValidationError):
            SignalConfig(max_confidence=1.5)


class TestSignalModel:
    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            Signal(action=Action.BUY, confidence=1.2)
        with pytest.raises(ValidationError):
            Signal(action=Action.SELL, confidence=-0.1)

    def test_signal_is_frozen(self):
        signal = Signal(action=Action.BUY, confidence=0.8)
        with pytest.raises(ValidationError):
            signal.confidence = 0.1
