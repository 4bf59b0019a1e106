"""Signal generator configuration."""

from pydantic import BaseModel, model_validator


class SignalConfig(BaseModel):
    """Moving-average crossover parameters.

    Defaults reproduce the production contract: 5/20 windows, confidence
    scaled by 5 and capped at 0.95, HOLD reported at 0.5.
    """

    short_window: int = 5
    long_window: int = 20

    confidence_scale: float = 5.0
    max_confidence: float = 0.95
    hold_confidence: float = 0.5

    @model_validator(mode="after")
    def _validate(self):
        if self.short_window < 1:
            raise ValueError("short_window must be at least 1")
        if self.long_window <= self.short_window:
            raise ValueError(
                f"long_window ({self.long_window}) must exceed "
                f"short_window ({self.short_window})"
            )
        if not 0.0 < self.max_confidence <= 1.0:
            raise ValueError("max_confidence must be in (0, 1]")
        if not 0.0 <= self.hold_confidence <= 1.0:
            raise ValueError("hold_confidence must be in [0, 1]")
        if self.confidence_scale <= 0:
            raise ValueError("confidence_scale must be positive")
        return self
