"""Run the review poller and read API.

Usage
-----
::

    python -m appreviews --config config/apps.json --port 8080

Environment variables (``REVIEWS_*``, see :class:`appreviews.config.PollerConfig`)
fill anything not given on the command line.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

from aiohttp import web

from appreviews._constants import DEFAULT_APPS_FILE
from appreviews.api import create_app
from appreviews.config import PollerConfig, load_app_ids
from appreviews.exceptions import ConfigError, StoreError
from appreviews.feed import ITunesReviewsFetcher
from appreviews.poller import ReviewPoller
from appreviews.store import ReviewStore

_logger = logging.getLogger("appreviews")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Poll App Store review feeds and serve them over HTTP")
    parser.add_argument(
        "--config",
        default=None,
        help="Apps JSON file of the form {\"apps\": [...]} (default: config/apps.json if present)",
    )
    parser.add_argument("--storage-path", default=None, help="Review mirror file (default: data/reviews.json)")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between poll cycles (default: 300)")
    parser.add_argument("--country", default=None, help="App Store storefront (default: us)")
    parser.add_argument("--host", default=None, help="API bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="API port (default: 8080)")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PollerConfig:
    """Merge CLI arguments, environment and the apps file into one config."""
    overrides: dict[str, object] = {
        "storage_path": args.storage_path,
        "poll_interval": args.interval,
        "country": args.country,
        "host": args.host,
        "port": args.port,
        "log_level": args.log_level,
    }
    if args.config is not None:
        # An apps file named on the command line must exist.
        overrides["app_ids"] = load_app_ids(args.config)
    elif Path(DEFAULT_APPS_FILE).exists():
        overrides["app_ids"] = load_app_ids(DEFAULT_APPS_FILE)
    else:
        _logger.debug("No apps file at %s, using environment only", DEFAULT_APPS_FILE)
    return PollerConfig.from_env(**overrides)


async def serve(config: PollerConfig) -> None:
    """Load state, poll and serve until SIGINT/SIGTERM, then shut down cleanly."""
    store = ReviewStore(config.storage_path)
    try:
        store.load()
    except StoreError as exc:
        _logger.warning("Failed to load existing state: %s", exc)
        _logger.warning("Starting with empty state...")

    if not config.app_ids:
        _logger.warning("No app ids configured; the poller will have nothing to fetch")

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_requested.set)

    async with ITunesReviewsFetcher(country=config.country, timeout=config.fetch_timeout) as fetcher:
        poller = ReviewPoller(store, fetcher, config.app_ids, interval=config.poll_interval)
        await poller.start()

        runner = web.AppRunner(create_app(store))
        await runner.setup()
        site = web.TCPSite(runner, config.host, config.port)
        await site.start()
        _logger.info("HTTP server listening on %s:%d", config.host, config.port)

        try:
            await stop_requested.wait()
            _logger.info("Shutdown signal received, cleaning up...")
        finally:
            _logger.info("Stopping poller...")
            await poller.stop()

            _logger.info("Saving final state...")
            try:
                await asyncio.to_thread(store.persist)
            except StoreError as exc:
                _logger.error("Error saving state: %s", exc)

            await runner.cleanup()

    _logger.info("Shutdown complete")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        config = build_config(args)
    except ConfigError as exc:
        logging.basicConfig(level=logging.ERROR, format=LOG_FORMAT)
        _logger.error("Invalid configuration: %s", exc)
        return 2

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stdout,
    )
    _logger.info("Starting App Store Review Poller...")

    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        _logger.warning("Interrupted")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
