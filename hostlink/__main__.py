#!/usr/bin/env python3

"""
Host Link entry point

Runs a single-candidate host against the in-memory collaborators until
interrupted:

    python -m hostlink --relay-url ws://localhost:3010/relay --token secret
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any, Dict, List, Optional

from shared.functional import setup_logging

from .app import HostLinkApp
from .config import HostLinkConfig, load_config, validate_config
from .host import create_memory_services

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Host Link - relay connection for a live host application")
    parser.add_argument(
        "--config",
        help="Configuration file path (JSON)",
        default=None
    )
    parser.add_argument(
        "--relay-url",
        help="Relay WebSocket URL (default: ws://localhost:3010/relay)",
        default=None
    )
    parser.add_argument("--token", help="Relay auth token", default=None)
    parser.add_argument("--group", help="Group id (shared by co-located callers)", default=None)
    parser.add_argument("--caller", help="Caller id of this process", default=None)
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default=None
    )
    return parser.parse_args(argv)


def cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Command line values that were actually given, as config fields"""
    mapping = {
        "relay_url": args.relay_url,
        "token": args.token,
        "group_id": args.group,
        "caller_id": args.caller,
        "logging_level": args.log_level,
    }
    return {key: value for key, value in mapping.items() if value is not None}


def build_config(args: argparse.Namespace) -> HostLinkConfig:
    loaded = load_config(args.config)
    if loaded.is_failure():
        raise SystemExit(f"Configuration error: {loaded.error}")

    overrides = cli_overrides(args)
    if not overrides:
        return loaded.value

    config = HostLinkConfig.from_dict({**loaded.value.to_dict(), **overrides})
    validated = validate_config(config)
    if validated.is_failure():
        raise SystemExit(f"Configuration error: {validated.error}")
    return validated.value


async def run(config: HostLinkConfig) -> None:
    app = HostLinkApp(config, create_memory_services(config.storage_root))
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: KeyboardInterrupt ends the run instead
            logger.debug(f"Signal handler for {sig} not supported on this platform")

    await app.init()
    logger.info(f"Host link running as {config.client_id}; press Ctrl+C to stop")

    try:
        await stop.wait()
        logger.info("Shutdown signal received")
    finally:
        await app.teardown()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = build_config(args)
    setup_logging(config.logging_level, config.logging_file)

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    return 0


if __name__ == "__main__":
    sys.exit(main())
