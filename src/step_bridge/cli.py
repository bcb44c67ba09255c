"""CLI entry point for the Step Bridge."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .bridge import run_bridge


def setup_logging(debug: bool = False) -> None:
    """Set up logging configuration."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Step Bridge - accelerometer step counter with FIT rewards"
    )
    parser.add_argument(
        "--config",
        required=True,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--replay",
        metavar="FILE",
        help="Replay recorded samples (NDJSON or CSV) instead of the BLE sensor",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Zero the persisted step counter before starting",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    setup_logging(args.debug)

    config_path = Path(args.config)
    if not config_path.exists():
        print(f"Error: Configuration file not found: {config_path}", file=sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(run_bridge(str(config_path), replay_file=args.replay, reset=args.reset))
    except KeyboardInterrupt:
        print("\nBridge stopped by user")
    except Exception as e:
        print(f"Bridge failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
