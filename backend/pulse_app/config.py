"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pulse_core.models import SignalConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Price oracle (Pyth Hermes)
    hermes_ws_url: str = "wss://hermes.pyth.network/ws"
    hermes_rest_url: str = "https://hermes.pyth.network"
    oracle_mantissa_field: str = "price"  # "mantissa" for the generic contract

    # Feed subscriptions
    feed_queue_size: int = Field(default=1000, ge=1)
    connect_timeout: float = 10.0
    reconnect_enabled: bool = True
    reconnect_initial_delay: float = 1.0
    reconnect_max_delay: float = 60.0
    seed_history: bool = True  # one pull-endpoint snapshot on start

    # Trade execution service
    execution_url: str = "http://localhost:8080"
    execution_api_key: str = ""
    dry_run: bool = True  # paper execution unless explicitly disabled
    trade_amount: float = Field(default=1.0, gt=0)
    execution_mode: Literal["sequential", "concurrent"] = "sequential"
    max_concurrent_trades: int = Field(default=4, ge=1)

    # Strategy parameters
    short_window: int = 5
    long_window: int = 20
    confidence_scale: float = 5.0
    max_confidence: float = 0.95
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    history_capacity: int = Field(default=100, ge=1)

    # Scheduler
    tick_interval: float = Field(default=30.0, gt=0)  # seconds between the end of a tick and the next

    # Logging
    log_level: str = "INFO"

    def signal_config(self) -> SignalConfig:
        """Build the signal generator configuration."""
        return SignalConfig(
            short_window=self.short_window,
            long_window=self.long_window,
            confidence_scale=self.confidence_scale,
            max_confidence=self.max_confidence,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
