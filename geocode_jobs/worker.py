"""Worker logic for geocoding jobs."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from geocode_jobs.errors import GeocodeJobsError, StoreError
from geocode_jobs.geocoder import GeocodingClient
from geocode_jobs.models import (
    Customer,
    FailureResult,
    NoOpResult,
    ProcessResult,
    SuccessResult,
)
from geocode_jobs.service import utcnow
from geocode_jobs.store import CustomerStore, JobStore

ALREADY_TAKEN = "already taken"


class JobWorker:
    """Claims and resolves one queued job per invocation."""

    def __init__(
        self,
        job_store: JobStore,
        customer_store: CustomerStore,
        geocoder: GeocodingClient,
        logger: Optional[logging.Logger] = None,
    ):
        self.job_store = job_store
        self.customer_store = customer_store
        self.geocoder = geocoder
        self.logger = logger or logging.getLogger(__name__)

    async def process_one(self, now: Optional[datetime] = None) -> ProcessResult:
        """
        Process at most one job.

        Errors before the claim (StoreError on select or claim) propagate and
        leave every job untouched. Anything that goes wrong after the claim
        marks the job failed and is reported as a FailureResult instead of
        being raised.

        Returns:
            NoOpResult, SuccessResult or FailureResult
        """
        if now is None:
            now = utcnow()

        selected, job = await self.job_store.claim_oldest_queued(now)
        if selected is None:
            self.logger.debug("No queued jobs")
            return NoOpResult()
        if job is None:
            self.logger.info(f"Job {selected.id} was claimed by another worker")
            return NoOpResult(skipped=ALREADY_TAKEN)

        self.logger.info(f"Claimed job {job.id} (attempt={job.attempts})")

        try:
            geo = await self.geocoder.geocode(job.address)
            customer = Customer.from_job(job, geo)
            await self.job_store.complete_job(job.id, customer, self.customer_store, now)
        except Exception as e:
            message = str(e) or type(e).__name__
            if isinstance(e, GeocodeJobsError):
                self.logger.warning(f"Job {job.id} failed: {message}")
            else:
                self.logger.error(f"Job {job.id} failed: {message}", exc_info=True)
            await self._mark_failed(job.id, message, now)
            return FailureResult(job.id, message)

        self.logger.info(f"Job {job.id} done ({geo.lat}, {geo.lng})")
        return SuccessResult(job.id, geo.lat, geo.lng)

    async def _mark_failed(self, job_id, message: str, now: datetime) -> None:
        try:
            await self.job_store.mark_failed(job_id, message, now)
        except StoreError as e:
            self.logger.error(
                f"Could not record failure for job {job_id}: {str(e)}", exc_info=True
            )

    async def fail_stale_processing(
        self, stale_after: timedelta, now: Optional[datetime] = None
    ) -> int:
        """Fail jobs stuck in processing for longer than ``stale_after``."""
        if now is None:
            now = utcnow()
        count = await self.job_store.fail_stale_processing(now - stale_after, now)
        if count > 0:
            self.logger.warning(f"Failed {count} jobs stuck in processing")
        return count


async def run_worker_loop(
    worker: JobWorker,
    logger: logging.Logger,
    idle_sleep_seconds: float = 5.0,
    error_sleep_seconds: float = 5.0,
    stale_after: Optional[timedelta] = None,
    stale_check_interval_seconds: int = 60,
    shutdown_event: Optional[asyncio.Event] = None,
) -> None:
    """
    Call ``process_one`` until shutdown.

    Args:
        worker: JobWorker instance
        logger: Logger instance
        idle_sleep_seconds: Pause when the queue is empty or the claim was lost
        error_sleep_seconds: Pause after an error outside job processing
        stale_after: When set, periodically fail jobs processing longer than this
        stale_check_interval_seconds: Time between stale sweeps
        shutdown_event: Optional event to signal shutdown
    """
    logger.info("Starting geocode worker loop")

    last_stale_check: Optional[datetime] = None

    while True:
        if shutdown_event and shutdown_event.is_set():
            logger.info("Shutdown signal received, exiting worker loop")
            break

        try:
            now = utcnow()
            if stale_after is not None and (
                last_stale_check is None
                or (now - last_stale_check).total_seconds() >= stale_check_interval_seconds
            ):
                await worker.fail_stale_processing(stale_after, now)
                last_stale_check = now

            result = await worker.process_one()
            if result.processed == 0:
                await _sleep_or_shutdown(idle_sleep_seconds, shutdown_event)

        except Exception as e:
            logger.error(f"Error in worker loop: {str(e)}", exc_info=True)
            await _sleep_or_shutdown(error_sleep_seconds, shutdown_event)


async def _sleep_or_shutdown(
    seconds: float, shutdown_event: Optional[asyncio.Event]
) -> None:
    if shutdown_event is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(shutdown_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        pass
