"""Command line entry point.

Usage:
    python -m pulse_app                   # trade until Ctrl+C
    python -m pulse_app --duration 600    # trade for ten minutes
    python -m pulse_app --latest          # print latest oracle prices and exit
"""

import argparse
import asyncio
from pathlib import Path

from pulse_app.config import get_settings
from pulse_app.main import configure_logging, print_latest_prices, run


def main() -> None:
    parser = argparse.ArgumentParser(description="Oracle-driven SMA crossover trader")
    parser.add_argument("--config", type=Path, default=None, help="Path to trading.yaml")
    parser.add_argument("--duration", type=float, default=None, help="Stop after N seconds")
    parser.add_argument("--latest", action="store_true", help="Print latest prices and exit")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    if args.latest:
        asyncio.run(print_latest_prices(args.config, settings))
    else:
        asyncio.run(run(args.duration, args.config, settings))


if __name__ == "__main__":
    main()
