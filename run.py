#!/usr/bin/env python3
"""
Dataset match client -- process entry point.

Connects to the dataset server, polls for events every interval, fetches the
paired series for each event and confirms every ratio that lands strictly
inside the server's (minDiv, maxDiv) bounds.

Exit codes:
  0  server said "Win" (or operator stop)
  1  server said "Lose"
  2  fatal error (bad config, connection failed or dropped)

Usage:
  python run.py
  python run.py --url wss://demoserver.dev/ws --pull-interval-ms 5000
  python run.py --log-level DEBUG --json-log run.ndjson
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from pydantic import ValidationError

from client.protocol import EXIT_FAILURE, EXIT_WIN, ProtocolClient
from client.ws import WSTransport
from config import Config, load_config
from monitor.logger import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dataset match client")
    parser.add_argument("--url", type=str, default=None, help="Server WebSocket URL (overrides WS_URL)")
    parser.add_argument("--pull-interval-ms", type=int, default=None, help="getEvents poll interval in ms (overrides PULL_INTERVAL_MS)")
    parser.add_argument("--win", type=int, default=None, help="Legacy option, accepted and ignored")
    parser.add_argument("--log-level", type=str, default=None, help="Console log level (overrides LOG_LEVEL)")
    parser.add_argument("--json-log", type=str, default=None, help="Path to JSON log file for machine-readable output")
    return parser.parse_args(argv)


def apply_overrides(cfg: Config, args: argparse.Namespace) -> Config:
    """Return cfg with any CLI flags applied. Re-validates the result."""
    update = {}
    if args.url is not None:
        update["ws_url"] = args.url
    if args.pull_interval_ms is not None:
        update["pull_interval_ms"] = args.pull_interval_ms
    if args.win is not None:
        update["win"] = args.win
    if args.log_level is not None:
        update["log_level"] = args.log_level
    if not update:
        return cfg
    # model_copy skips validation, so rebuild through the model
    return Config.model_validate({**cfg.model_dump(), **update})


def _install_signal_handlers(client: ProtocolClient) -> None:
    loop = asyncio.get_running_loop()

    def handle_signal(signum: int) -> None:
        logger.info("Received signal %d, shutting down", signum)
        client.stop(EXIT_WIN)

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, handle_signal, signum)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(signum, lambda s, _frame: loop.call_soon_threadsafe(handle_signal, s))


async def run_client(cfg: Config) -> int:
    client = ProtocolClient(
        transport=WSTransport(url=cfg.ws_url),
        poll_interval_sec=cfg.pull_interval_sec,
    )
    _install_signal_handlers(client)
    return await client.run()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        cfg = apply_overrides(load_config(), args)
    except ValidationError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error("Invalid configuration:\n%s", e)
        return EXIT_FAILURE

    try:
        log_file_path = setup_logging(cfg.log_level, json_log_file=args.json_log, log_dir=cfg.log_dir)
    except ValueError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error("Invalid configuration: %s", e)
        return EXIT_FAILURE

    logger.info("Dataset match client starting")
    logger.info("  Server:        %s", cfg.ws_url)
    logger.info("  Poll interval: %d ms", cfg.pull_interval_ms)
    logger.info("  Log file:      %s", log_file_path)
    if args.win is not None:
        logger.debug("--win=%d accepted for compatibility; it has no effect", args.win)

    exit_code = asyncio.run(run_client(cfg))
    logger.info("Exiting with code %d", exit_code)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
