"""Asset pair identity."""

from pydantic import BaseModel, ConfigDict, field_validator


def normalize_feed_id(feed_id: str) -> str:
    """Normalize an oracle feed id for comparison.

    Hermes echoes ids lower-case and without the ``0x`` prefix, while
    configuration usually carries the prefixed form.
    """
    value = feed_id.strip().lower()
    if value.startswith("0x"):
        value = value[2:]
    return value


class AssetPair(BaseModel):
    """One tradable instrument and the oracle feed that prices it."""

    model_config = ConfigDict(frozen=True)

    base: str
    quote: str
    feed_id: str

    @field_validator("base", "quote")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("symbol must not be empty")
        return value

    @field_validator("feed_id")
    @classmethod
    def _check_feed_id(cls, value: str) -> str:
        value = value.strip()
        if not normalize_feed_id(value):
            raise ValueError("feed_id must not be empty")
        return value

    @property
    def symbol(self) -> str:
        """Display symbol, e.g. 'BTC/USD'."""
        return f"{self.base}/{self.quote}"

    @property
    def key(self) -> str:
        """Normalized feed id used for matching oracle updates."""
        return normalize_feed_id(self.feed_id)
