"""Integration tests against a real PostgreSQL.

These tests use testcontainers to start Postgres and exercise the SQL in
JobStore and CustomerStore: the conditional claim under concurrency, the
monthly window count and the transactional completion.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import asyncpg
import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

from geocode_jobs.ddl import SCHEMA_DDL
from geocode_jobs.errors import NoResultError, StoreError
from geocode_jobs.models import Customer, GeocodeResult, JobStatus, NormalizedRow, Sex
from geocode_jobs.quota import QuotaTracker
from geocode_jobs.service import JobQueue
from geocode_jobs.store import CustomerStore, JobStore
from geocode_jobs.worker import JobWorker

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="module")
def postgres_container():
    """Create a PostgreSQL test container, skipping when Docker is unavailable."""
    postgres = PostgresContainer("postgres:15", driver=None)
    try:
        postgres.start()
    except Exception as e:
        pytest.skip(f"PostgreSQL container unavailable: {e}")
    try:
        yield postgres
    finally:
        postgres.stop()


@pytest_asyncio.fixture
async def db_pool(postgres_container):
    """Create a database connection pool with a fresh schema."""
    dsn = postgres_container.get_connection_url()
    pool = await asyncpg.create_pool(dsn, min_size=1, max_size=10)

    async with pool.acquire() as conn:
        await conn.execute("DROP TABLE IF EXISTS customer, customer_jobs")
        await conn.execute(SCHEMA_DDL)

    yield pool

    await pool.close()


@pytest.fixture
def job_store(db_pool):
    return JobStore(db_pool)


@pytest.fixture
def customer_store(db_pool):
    return CustomerStore(db_pool)


def _geocoder(result=None, error=None):
    geocoder = AsyncMock()
    geocoder.geocode = AsyncMock(
        return_value=result or GeocodeResult(35.6812, 139.7671, "Tokyo Station, Japan"),
        side_effect=error,
    )
    return geocoder


@pytest.mark.asyncio
async def test_enqueue_and_count_window(job_store):
    """Test inserted jobs are counted in their month only."""
    queue = JobQueue(job_store, QuotaTracker(job_store, limit=3))

    result = await queue.enqueue(
        "user-1",
        [{"address": "Tokyo Station", "birth": "1990-05-01", "sex": "F"}] * 5,
        NOW,
    )

    assert (result.inserted, result.skipped, result.remaining) == (3, 2, 0)
    jobs = await job_store.list_jobs("user-1")
    assert len(jobs) == 3
    assert all(j.status == JobStatus.queued and j.sex == Sex.female for j in jobs)
    assert await job_store.count_created_in_window(
        "user-1", NOW.replace(day=1), NOW.replace(month=6, day=1)
    ) == 3
    assert await job_store.count_created_in_window(
        "user-1", NOW.replace(month=6, day=1), NOW.replace(month=7, day=1)
    ) == 0


@pytest.mark.asyncio
async def test_concurrent_claims_single_winner(job_store):
    """Test only one of many concurrent claims succeeds."""
    (job_id,) = await job_store.insert_jobs("user-1", [NormalizedRow("Osaka")], NOW)

    claims = await asyncio.gather(*(job_store.claim(job_id, NOW) for _ in range(10)))

    winners = [c for c in claims if c is not None]
    assert len(winners) == 1
    job = await job_store.get_job(job_id)
    assert job.status == JobStatus.processing
    assert job.attempts == 1


@pytest.mark.asyncio
async def test_worker_success_creates_one_customer(job_store, customer_store):
    """Test a processed job is done with exactly one customer row."""
    (job_id,) = await job_store.insert_jobs("user-1", [NormalizedRow("tokyo stn")], NOW)
    worker = JobWorker(job_store, customer_store, _geocoder())

    result = await worker.process_one(NOW)

    assert result.ok is True
    assert (await job_store.get_job(job_id)).status == JobStatus.done
    assert await customer_store.count_for_job(job_id) == 1


@pytest.mark.asyncio
async def test_worker_no_result_marks_failed(job_store, customer_store):
    """Test a geocode miss leaves a failed job and no customer."""
    (job_id,) = await job_store.insert_jobs("user-1", [NormalizedRow("Nowhere")], NOW)
    worker = JobWorker(job_store, customer_store, _geocoder(error=NoResultError("Nowhere")))

    result = await worker.process_one(NOW)

    assert result.to_dict()["error"] == "No result"
    job = await job_store.get_job(job_id)
    assert job.status == JobStatus.failed
    assert job.last_error == "No result"
    assert await customer_store.count_for_job(job_id) == 0


@pytest.mark.asyncio
async def test_complete_job_rolls_back_customer_when_not_processing(job_store, customer_store):
    """Test completion of a job that is no longer processing inserts nothing."""
    (job_id,) = await job_store.insert_jobs("user-1", [NormalizedRow("Osaka")], NOW)
    job = await job_store.claim(job_id, NOW)
    await job_store.mark_failed(job_id, "gave up", NOW)

    customer = Customer.from_job(job, GeocodeResult(34.69, 135.50, "Osaka, Japan"))
    with pytest.raises(StoreError):
        await job_store.complete_job(job_id, customer, customer_store, NOW)

    assert await customer_store.count_for_job(job_id) == 0
    assert (await job_store.get_job(job_id)).status == JobStatus.failed


@pytest.mark.asyncio
async def test_fail_stale_processing(job_store):
    """Test stale processing jobs are failed and fresh ones untouched."""
    stale_id, fresh_id = await job_store.insert_jobs(
        "user-1", [NormalizedRow("a"), NormalizedRow("b")], NOW
    )
    await job_store.claim(stale_id, NOW - timedelta(hours=2))
    await job_store.claim(fresh_id, NOW)

    count = await job_store.fail_stale_processing(NOW - timedelta(hours=1), NOW)

    assert count == 1
    assert (await job_store.get_job(stale_id)).status == JobStatus.failed
    assert (await job_store.get_job(fresh_id)).status == JobStatus.processing
