#!/usr/bin/env python3
"""
rigstat - Entry Point

Usage:
    rigstat                          # Start with default config.yaml
    rigstat --config config.json     # Use custom config file
    rigstat --dry-run                # Print config and exit
    rigstat --verbose                # Enable debug logging
"""

import argparse
import asyncio
import logging
import sys

from . import __version__
from .common.config import DEFAULT_CONFIG_PATH, AgentConfig, read_config_file
from .common.exceptions import ConfigError, SpoolError
from .common.logging_setup import configure_from_env
from .services.agent import AgentService


def print_startup_banner(config: AgentConfig) -> None:
    """Print startup information."""
    print()
    print("=" * 60)
    print(f"  RIGSTAT AGENT v{__version__}")
    print("=" * 60)
    print()
    print(f"  Server is: {config.server_host}:{config.server_port}")
    print(f"  Miner is: {config.miner_address}")
    print(f"  Querying every {config.interval} seconds")
    print(f"  Device name: {config.device_name}")
    print(f"  Spool directory: {config.spool_dir}")
    if config.health_port:
        print(f"  Health: http://127.0.0.1:{config.health_port}/health")
    print()
    print("=" * 60)
    print()


async def main_async(config: AgentConfig) -> None:
    """Run the agent until SIGINT/SIGTERM."""
    logger = logging.getLogger("rigstat.agent")
    agent = AgentService(config)
    try:
        await agent.run()
    except SpoolError as e:
        logger.critical(f"Agent failed: {e.message}")
        raise


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="rigstat",
        description="Miner telemetry agent with durable delivery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    rigstat                          # Start with default config.yaml
    rigstat -c config.json           # Legacy JSON config works too
    rigstat --dry-run                # Validate configuration and exit
    rigstat -v                       # Enable debug logging
        """,
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and exit without starting",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"rigstat v{__version__}",
    )

    args = parser.parse_args(argv)

    configure_from_env(verbose=args.verbose)

    try:
        config = read_config_file(args.config)
    except ConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print_startup_banner(config)

    if args.dry_run:
        print("Dry run mode - configuration valid")
        return 0

    print("Press Ctrl+C to stop")
    print()

    try:
        asyncio.run(main_async(config))
    except KeyboardInterrupt:
        print("\nStopped by user")
    except SpoolError as e:
        print(f"\nFatal error: {e.message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
