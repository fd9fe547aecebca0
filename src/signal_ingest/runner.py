"""
Polling runner.

Plays the role of the external scheduler for self-hosted deployments:
runs one ingestion cycle every POLL_INTERVAL_SECONDS and backs off
exponentially while cycles keep failing.
"""

import argparse
import asyncio
import json
import logging
import os
from collections.abc import Awaitable, Callable

from signal_ingest.bootstrap import build_ingestion_loop
from signal_ingest.config import AppConfig, config
from signal_ingest.ingestion import IngestionLoop
from signal_ingest.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def next_delay(failures: int, interval: float, max_backoff: float) -> float:
    """Seconds to wait before the next cycle after `failures` consecutive errors."""
    if failures <= 0:
        return interval
    return min(interval * (2**failures), max_backoff)


async def run_forever(
    loop: IngestionLoop,
    interval: float,
    max_backoff: float,
    max_cycles: int | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """Run cycles until cancelled, or until `max_cycles` have run."""
    failures = 0
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        cycles += 1
        try:
            summary = await loop.run_cycle()
        except Exception as e:
            failures += 1
            logger.error("Ingestion cycle failed (%d in a row): %s", failures, e)
        else:
            failures = 0
            if not summary.skipped:
                logger.debug("Cycle summary: %s", summary.to_dict())

        await sleep(next_delay(failures, interval, max_backoff))


async def run_once(app_config: AppConfig) -> dict:
    loop = await build_ingestion_loop(app_config)
    try:
        summary = await loop.run_cycle()
    finally:
        await loop.source.close()
    return summary.to_dict()


async def run_polling(app_config: AppConfig) -> None:
    loop = await build_ingestion_loop(app_config)
    logger.info(
        "Polling %s every %ss", loop.source.name, app_config.runner.poll_interval_seconds
    )
    try:
        await run_forever(
            loop,
            interval=app_config.runner.poll_interval_seconds,
            max_backoff=app_config.runner.max_backoff_seconds,
        )
    finally:
        await loop.source.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI args."""
    parser = argparse.ArgumentParser(
        prog="signal-ingest",
        description="Ingest trading signals from a Telegram channel.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run a single ingestion cycle and print its JSON summary.",
    )
    mode.add_argument(
        "--serve",
        action="store_true",
        help="Start the HTTP service instead of the polling loop.",
    )
    parser.add_argument(
        "--source",
        choices=["bot_api", "mtproto", "channel_page"],
        help="Override SIGNAL_SOURCE.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    if args.source:
        # uvicorn reload workers re-read configuration from the environment
        os.environ["SIGNAL_SOURCE"] = args.source
        config.source.kind = args.source

    if args.serve:
        import uvicorn

        uvicorn.run(
            "signal_ingest.api.main:app",
            host=config.api.host,
            port=config.api.port,
            reload=config.api.debug,
        )
        return

    setup_logging(config.log.level, config.log.file, config.log.max_mb, config.log.backups)

    if args.once:
        print(json.dumps(asyncio.run(run_once(config)), ensure_ascii=False, indent=2))
        return

    try:
        asyncio.run(run_polling(config))
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
