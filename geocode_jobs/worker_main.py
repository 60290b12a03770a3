"""CLI entrypoint and programmatic interface for the geocode worker."""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from datetime import timedelta
from typing import Optional

import aiohttp
import asyncpg

from geocode_jobs.config import GeocodeJobsConfig
from geocode_jobs.geocoder import GeocodingClient
from geocode_jobs.models import ProcessResult
from geocode_jobs.store import CustomerStore, JobStore
from geocode_jobs.worker import JobWorker, run_worker_loop


def setup_logging():
    """Setup logging configuration."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def create_db_pool(config: GeocodeJobsConfig):
    """Create database connection pool."""
    return await asyncpg.create_pool(config.db_dsn, min_size=1, max_size=10)


def build_worker(
    config: GeocodeJobsConfig,
    db_pool: asyncpg.Pool,
    session: Optional[aiohttp.ClientSession] = None,
    logger: Optional[logging.Logger] = None,
) -> JobWorker:
    """Wire a JobWorker from config and an open pool."""
    return JobWorker(
        job_store=JobStore(db_pool),
        customer_store=CustomerStore(db_pool),
        geocoder=GeocodingClient.from_config(config, session=session),
        logger=logger,
    )


async def run_worker(
    config: Optional[GeocodeJobsConfig] = None,
    db_pool=None,
    logger: Optional[logging.Logger] = None,
    shutdown_event: Optional[asyncio.Event] = None,
    idle_sleep_seconds: float = 5.0,
    once: bool = False,
) -> Optional[ProcessResult]:
    """
    Run the worker programmatically.

    Args:
        config: GeocodeJobsConfig instance. If None, will load from environment.
        db_pool: Database connection pool. If None, will create from config.
        logger: Logger instance. If None, will create default logger.
        shutdown_event: Optional asyncio.Event for graceful shutdown.
        idle_sleep_seconds: Pause between polls when the queue is empty.
        once: Process a single job and return its result instead of looping.

    Example:
        ```python
        from geocode_jobs.worker_main import run_worker
        import asyncio

        result = asyncio.run(run_worker(once=True))
        print(result.to_dict())
        ```
    """
    if config is None:
        config = GeocodeJobsConfig.from_env()

    if logger is None:
        logger = logging.getLogger(__name__)

    if shutdown_event is None:
        shutdown_event = asyncio.Event()

    config.warn_on_anonymous_user_agent(logger)

    db_pool_provided = db_pool is not None
    if db_pool is None:
        db_pool = await create_db_pool(config)

    try:
        async with aiohttp.ClientSession() as session:
            worker = build_worker(config, db_pool, session=session, logger=logger)
            if once:
                return await worker.process_one()

            stale_after = None
            if config.stale_processing_seconds:
                stale_after = timedelta(seconds=config.stale_processing_seconds)

            await run_worker_loop(
                worker=worker,
                logger=logger,
                idle_sleep_seconds=idle_sleep_seconds,
                stale_after=stale_after,
                shutdown_event=shutdown_event,
            )
            return None
    finally:
        if not db_pool_provided and db_pool:
            await db_pool.close()


def main():
    """Main entrypoint for worker."""
    setup_logging()
    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(description="Geocode Jobs Worker")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Process at most one job, print the result as JSON and exit",
    )
    parser.add_argument(
        "--idle-sleep-seconds",
        type=float,
        default=5.0,
        help="Pause between polls when no job is queued (default: 5)",
    )

    args = parser.parse_args()

    try:
        config = GeocodeJobsConfig.from_env()
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    shutdown_event = asyncio.Event()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        shutdown_event.set()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    async def run():
        """Async main function."""
        try:
            logger.info("Starting geocode worker...")
            result = await run_worker(
                config=config,
                logger=logger,
                shutdown_event=shutdown_event,
                idle_sleep_seconds=args.idle_sleep_seconds,
                once=args.once,
            )
            if result is not None:
                print(json.dumps(result.to_dict()))
        except Exception as e:
            logger.error(f"Fatal error in worker: {e}", exc_info=True)
            sys.exit(1)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == "__main__":
    main()
