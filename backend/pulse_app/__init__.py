"""Live price-feed trading service."""
