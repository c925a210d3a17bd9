"""
Lift caller entry point.

Usage:
    python -m lift_caller [--transcript TEXT ...] [--client-id ID] [--client-secret SECRET]

Transcripts come from --transcript arguments, otherwise one per line on
stdin.

Environment Variables:
    LIFT_CLIENT_ID, LIFT_CLIENT_SECRET - API credentials
    LIFT_BUILDING_ID, LIFT_GROUP_ID - Target building and lift group
    LIFT_METRICS_PORT - Prometheus exporter port (0 disables)
    LIFT_LOG_LEVEL - Log level (DEBUG, INFO, WARNING, ERROR)
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from .config import get_config, setup_logging
from .core import LiftCaller
from .metrics import get_metrics
from .websocket import ConfigurationError, SessionConnectError, TokenExchangeError

logger = setup_logging()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Call a lift by voice transcript")
    parser.add_argument(
        "--transcript",
        action="append",
        default=[],
        help="Transcript to handle (repeatable); reads stdin when omitted",
    )
    parser.add_argument("--client-id", default=None, help="Overrides LIFT_CLIENT_ID")
    parser.add_argument("--client-secret", default=None, help="Overrides LIFT_CLIENT_SECRET")
    parser.add_argument("--debug", action="store_true")
    return parser.parse_args(argv)


async def _read_lines(shutdown_event: asyncio.Event):
    """Yield stdin lines without blocking the event loop."""
    loop = asyncio.get_running_loop()
    while not shutdown_event.is_set():
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            break
        if line.strip():
            yield line.strip()


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = get_config()

    if args.client_id:
        config.client_id = args.client_id
    if args.client_secret:
        config.client_secret = args.client_secret
    if args.debug or config.debug:
        setup_logging(level="DEBUG")

    if config.metrics_port:
        get_metrics().port = config.metrics_port
        get_metrics().start()

    caller = LiftCaller(config, on_user_message=print)

    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Shutdown requested...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda s, f: signal_handler())

    try:
        await caller.connect()
    except ConfigurationError as e:
        logger.error(str(e))
        logger.error("Set LIFT_CLIENT_ID and LIFT_CLIENT_SECRET or pass --client-id/--client-secret.")
        return 1
    except (TokenExchangeError, SessionConnectError) as e:
        logger.error(f"Login failed: {e}")
        return 1

    try:
        if args.transcript:
            for transcript in args.transcript:
                outcome = await caller.handle_transcript(transcript)
                print(outcome.sentence)
        else:
            async for transcript in _read_lines(shutdown_event):
                outcome = await caller.handle_transcript(transcript)
                print(outcome.sentence)
    finally:
        await caller.disconnect()

    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
