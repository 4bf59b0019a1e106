"""Asset pairs to monitor, loaded from trading.yaml.

Supports:
- Explicit pairs with base, quote and oracle feed id
- Known pairs by symbol only (feed id resolved from the catalog below)
- Backward compatible: no YAML file = BTC, ETH and SOL against USD
"""

import logging
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, model_validator

from pulse_core.models import AssetPair, normalize_feed_id

logger = logging.getLogger(__name__)

# Pyth price feed ids for common pairs
PRICE_FEED_IDS: dict[str, str] = {
    "BTC/USD": "0xe62df6c8b4a85fe1a67db44dc12de5db330f7ac66b72dc658afedf0f4a415b43",
    "ETH/USD": "0xff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace",
    "SOL/USD": "0xef0d8b6fda2ceba41da15d4095d1da392a0d2f8ed0c6c7bc0f4cfac8c280b56d",
    "USDC/USD": "0xeaa020c61cc479712813461ce153894a96a6c00b21ed0cfc2798d1f9a9e9c94a",
    "USDT/USD": "0x2b89b9dc8fdf9f34709a5b106b472f0f39bb6ca9ce04b0fd7f2e971688e2e53b",
    "JUP/USD": "0x0a0408d619e9380abad35060f9192039ed5042fa6f82301d0e48bb52be830996",
    "BONK/USD": "0x72b021217ca3fe68922a19aaf990109cb9d84e9ad004b4d2025ad6f529314419",
}

_DEFAULT_SYMBOLS = ("BTC/USD", "ETH/USD", "SOL/USD")


class PairEntry(BaseModel):
    """A single pair entry in the YAML config."""

    base: str
    quote: str = "USD"
    feed_id: str = ""  # empty = look up in PRICE_FEED_IDS
    enabled: bool = True

    @model_validator(mode="after")
    def _resolve_feed_id(self):
        if not self.feed_id:
            symbol = f"{self.base.strip().upper()}/{self.quote.strip().upper()}"
            feed_id = PRICE_FEED_IDS.get(symbol)
            if feed_id is None:
                raise ValueError(
                    f"No known feed id for {symbol}; set 'feed_id' explicitly"
                )
            self.feed_id = feed_id
        return self

    def to_asset_pair(self) -> AssetPair:
        return AssetPair(base=self.base, quote=self.quote, feed_id=self.feed_id)


def _default_pairs() -> list[PairEntry]:
    entries = []
    for symbol in _DEFAULT_SYMBOLS:
        base, quote = symbol.split("/")
        entries.append(PairEntry(base=base, quote=quote))
    return entries


class TradingConfig(BaseModel):
    """Top-level trading.yaml configuration."""

    pairs: list[PairEntry] = []

    @model_validator(mode="after")
    def _validate(self):
        if not self.pairs:
            self.pairs = _default_pairs()

        seen: dict[str, str] = {}
        for entry in self.pairs:
            key = normalize_feed_id(entry.feed_id)
            symbol = f"{entry.base}/{entry.quote}"
            if key in seen:
                raise ValueError(
                    f"feed id {entry.feed_id} is used by both {seen[key]} and {symbol}"
                )
            seen[key] = symbol

        if not any(entry.enabled for entry in self.pairs):
            raise ValueError("at least one pair must be enabled")
        return self

    def get_asset_pairs(self) -> list[AssetPair]:
        """Return the enabled pairs as AssetPair models."""
        return [entry.to_asset_pair() for entry in self.pairs if entry.enabled]


_DEFAULT_PATH = Path(__file__).parent.parent / "trading.yaml"


def load_trading_config(path: Path | None = None) -> TradingConfig:
    """Load trading config from YAML file.

    Falls back to defaults (BTC/ETH/SOL against USD) if the file doesn't exist.
    """
    config_path = path or _DEFAULT_PATH

    # Load .env next to the config so Settings sees the same environment
    env_path = config_path.parent / ".env"
    load_dotenv(env_path, override=False)

    if not config_path.exists():
        logger.info(
            "No trading.yaml found at %s, using default pairs (%s)",
            config_path,
            ", ".join(_DEFAULT_SYMBOLS),
        )
        return TradingConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    config = TradingConfig(**raw)
    pairs = config.get_asset_pairs()
    logger.info(
        "Loaded trading config: %d pairs (%s)",
        len(pairs),
        ", ".join(p.symbol for p in pairs),
    )
    return config
