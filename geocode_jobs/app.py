"""FastAPI application wiring for the geocode jobs service."""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import aiohttp
import asyncpg
import uvicorn
from fastapi import FastAPI

from geocode_jobs.config import GeocodeJobsConfig
from geocode_jobs.fastapi_router import create_jobs_router
from geocode_jobs.geocoder import GeocodingClient
from geocode_jobs.quota import QuotaTracker
from geocode_jobs.service import JobQueue
from geocode_jobs.store import CustomerStore, JobStore
from geocode_jobs.worker import JobWorker
from geocode_jobs.worker_main import create_db_pool, setup_logging

logger = logging.getLogger(__name__)


class _Resources:
    """Pool and HTTP session opened for the lifetime of the app."""

    db_pool: Optional[asyncpg.Pool] = None
    http_session: Optional[aiohttp.ClientSession] = None


def create_app(config: Optional[GeocodeJobsConfig] = None) -> FastAPI:
    """Build the FastAPI app. Config is loaded from the environment when omitted."""
    if config is None:
        config = GeocodeJobsConfig.from_env()

    resources = _Resources()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config.warn_on_anonymous_user_agent(logger)
        resources.db_pool = await create_db_pool(config)
        resources.http_session = aiohttp.ClientSession()
        logger.info("Database pool and geocoder session initialized")
        try:
            yield
        finally:
            await resources.http_session.close()
            await resources.db_pool.close()
            logger.info("Database pool closed")

    def _pool() -> asyncpg.Pool:
        if resources.db_pool is None:
            raise RuntimeError("Application not initialized")
        return resources.db_pool

    def get_geocoder() -> GeocodingClient:
        return GeocodingClient.from_config(config, session=resources.http_session)

    def get_job_queue() -> JobQueue:
        store = JobStore(_pool())
        return JobQueue(store, QuotaTracker(store, limit=config.monthly_limit))

    def get_job_worker() -> JobWorker:
        pool = _pool()
        return JobWorker(JobStore(pool), CustomerStore(pool), get_geocoder())

    app = FastAPI(title="Geocode Jobs API", version="0.1.0", lifespan=lifespan)
    app.include_router(
        create_jobs_router(
            job_queue_factory=get_job_queue,
            job_worker_factory=get_job_worker,
            geocoder_factory=get_geocoder,
            worker_token=config.worker_token,
        ),
        prefix="/api",
    )
    return app


def main():
    """Run the API under uvicorn."""
    setup_logging()
    uvicorn.run(
        create_app(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
