"""Entry point for running vallox2mqtt as a module.

Usage:
    python -m vallox2mqtt                    # Use env vars
    python -m vallox2mqtt -c /path/to/config.yaml
    python -m vallox2mqtt --help
"""

import argparse
import asyncio
import sys
from pathlib import Path

from . import __version__
from .app import run_app
from .config import ConfigError, create_default_config, get_config, print_env_help

DEFAULT_CONFIG_PATHS = [
    "/etc/vallox2mqtt/config.yaml",
    "/config/config.yaml",  # Docker default
    "config.yaml",
]


def main() -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parser = argparse.ArgumentParser(
        prog="vallox2mqtt",
        description="Vallox Digit SE RS-485 to MQTT Bridge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Environment variables (no config file needed):
  VALLOX_SERIAL_DEVICE=/dev/ttyUSB0 VALLOX_MQTT_URL=tcp://192.168.1.10:1883 vallox2mqtt

  # Config file:
  vallox2mqtt -c /etc/vallox2mqtt/config.yaml
  vallox2mqtt --generate-config > config.yaml
        """,
    )

    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to configuration file (optional if using env vars)",
    )
    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--generate-config",
        action="store_true",
        help="Print default configuration and exit",
    )
    parser.add_argument(
        "--env-help",
        action="store_true",
        help="Print environment variable help and exit",
    )

    args = parser.parse_args()

    if args.generate_config:
        print(create_default_config())
        return 0

    if args.env_help:
        print(print_env_help())
        return 0

    config_path = args.config
    if not config_path:
        for path in DEFAULT_CONFIG_PATHS:
            if Path(path).exists():
                config_path = path
                break

    try:
        config = get_config(config_path)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print("\nFor environment variable help: vallox2mqtt --env-help", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if config_path:
        print(f"Using configuration file: {config_path}")

    try:
        asyncio.run(run_app(config))
        return 0
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
