#!/usr/bin/env python3

"""
Relay entry point

    python -m relay --port 3010 --token secret
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

import uvicorn

from shared.functional import setup_logging

from .server import create_relay_app, DEFAULT_CALL_TIMEOUT

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Host Link development relay")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=3010, help="Bind port")
    parser.add_argument(
        "--token",
        action="append",
        dest="tokens",
        help="Accepted auth token (repeatable; defaults to RELAY_TOKENS, comma separated)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_CALL_TIMEOUT,
        help="Default seconds to wait for a host reply"
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    tokens = args.tokens
    if tokens is None and os.environ.get("RELAY_TOKENS"):
        tokens = [t.strip() for t in os.environ["RELAY_TOKENS"].split(",") if t.strip()]
    if tokens is None:
        logger.warning("No tokens configured; any non-empty token is accepted")

    app = create_relay_app(tokens=tokens, default_timeout=args.timeout)

    logger.info(f"Starting relay on ws://{args.host}:{args.port}/relay")
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower()
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
