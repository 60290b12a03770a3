"""Database store layer for geocode jobs."""

from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from typing import AsyncIterator, Iterator, List, Optional, Tuple
from uuid import UUID, uuid4

import asyncpg

from geocode_jobs.errors import JobNotFoundError, StoreError
from geocode_jobs.models import Customer, Job, JobStatus, NormalizedRow

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Re-raise driver and connection errors as StoreError."""
    try:
        yield
    except _DB_ERRORS as e:
        raise StoreError(operation, str(e)) from e


def _affected_rows(status: str) -> int:
    # asyncpg returns command tags such as "UPDATE 1"
    return int(status.split()[-1]) if status else 0


class _PoolBacked:
    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    @asynccontextmanager
    async def _connection(
        self, conn: Optional[asyncpg.Connection] = None
    ) -> AsyncIterator[asyncpg.Connection]:
        if conn is not None:
            yield conn
        else:
            async with self.db_pool.acquire() as acquired:
                yield acquired


class CustomerStore(_PoolBacked):
    """Database layer for resolved customer records."""

    async def insert_customer(
        self, customer: Customer, conn: Optional[asyncpg.Connection] = None
    ) -> None:
        """Insert a customer row. Pass ``conn`` to join an open transaction."""
        with _store_errors("insert_customer"):
            async with self._connection(conn) as c:
                await c.execute(
                    """
                    INSERT INTO customer (job_id, user_id, address, birth, sex, lat, lng)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                    customer.job_id,
                    customer.user_id,
                    customer.address,
                    customer.birth,
                    customer.sex.value,
                    customer.lat,
                    customer.lng,
                )

    async def count_for_job(self, job_id: UUID) -> int:
        """Count customer rows created from a job."""
        with _store_errors("count_for_job"):
            async with self.db_pool.acquire() as conn:
                return await conn.fetchval(
                    "SELECT COUNT(*) FROM customer WHERE job_id = $1", job_id
                )


class JobStore(_PoolBacked):
    """Database layer for job operations."""

    async def insert_jobs(
        self, user_id: str, rows: List[NormalizedRow], now: datetime
    ) -> List[UUID]:
        """Insert rows as queued jobs in a single transaction.

        Every row shares ``now`` as its ``created_at``.
        """
        ids = [uuid4() for _ in rows]
        records = [
            (
                job_id,
                user_id,
                row.address,
                row.birth,
                row.sex.value if row.sex else None,
                JobStatus.queued.value,
                now,
                now,
            )
            for job_id, row in zip(ids, rows)
        ]
        with _store_errors("insert_jobs"):
            async with self.db_pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(
                        """
                        INSERT INTO customer_jobs (
                            id, user_id, address, birth, sex, status,
                            attempts, created_at, updated_at
                        ) VALUES ($1, $2, $3, $4, $5, $6, 0, $7, $8)
                        """,
                        records,
                    )
        return ids

    async def get_job(self, job_id: UUID) -> Job:
        """Get a job by ID."""
        with _store_errors("get_job"):
            async with self.db_pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT * FROM customer_jobs WHERE id = $1", job_id
                )

        if not row:
            raise JobNotFoundError(str(job_id))

        return self._row_to_job(row)

    async def list_jobs(
        self,
        user_id: str,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> List[Job]:
        """List a user's jobs, newest first."""
        query = "SELECT * FROM customer_jobs WHERE user_id = $1"
        params: list = [user_id]

        if status:
            query += " AND status = $2"
            params.append(status)

        query += f" ORDER BY created_at DESC LIMIT ${len(params) + 1}"
        params.append(limit)

        with _store_errors("list_jobs"):
            async with self.db_pool.acquire() as conn:
                rows = await conn.fetch(query, *params)

        return [self._row_to_job(row) for row in rows]

    async def count_created_in_window(
        self, user_id: str, start: datetime, end: datetime
    ) -> int:
        """Count jobs of any status created by a user in ``[start, end)``."""
        with _store_errors("count_created_in_window"):
            async with self.db_pool.acquire() as conn:
                count = await conn.fetchval(
                    """
                    SELECT COUNT(*) FROM customer_jobs
                    WHERE user_id = $1 AND created_at >= $2 AND created_at < $3
                    """,
                    user_id,
                    start,
                    end,
                )
        return count or 0

    async def find_oldest_queued(self) -> Optional[Job]:
        """Return the queued job with the earliest created_at, if any."""
        with _store_errors("find_oldest_queued"):
            async with self.db_pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT * FROM customer_jobs
                    WHERE status = $1
                    ORDER BY created_at ASC, id ASC
                    LIMIT 1
                    """,
                    JobStatus.queued.value,
                )
        return self._row_to_job(row) if row else None

    async def claim(self, job_id: UUID, now: datetime) -> Optional[Job]:
        """
        Move a job from queued to processing.

        The UPDATE only matches while the row is still queued, so of any
        number of concurrent callers exactly one gets the job back; the
        others get None.
        """
        with _store_errors("claim"):
            async with self.db_pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    UPDATE customer_jobs
                    SET status = $1, attempts = attempts + 1, updated_at = $2
                    WHERE id = $3 AND status = $4
                    RETURNING *
                    """,
                    JobStatus.processing.value,
                    now,
                    job_id,
                    JobStatus.queued.value,
                )
        return self._row_to_job(row) if row else None

    async def claim_oldest_queued(
        self, now: datetime
    ) -> Tuple[Optional[Job], Optional[Job]]:
        """
        Select the oldest queued job and try to claim it.

        Returns ``(selected, claimed)``. ``selected`` is None when the queue
        is empty; ``claimed`` is None when another worker won the claim.
        """
        selected = await self.find_oldest_queued()
        if selected is None:
            return None, None
        return selected, await self.claim(selected.id, now)

    async def mark_done(
        self, job_id: UUID, now: datetime, conn: Optional[asyncpg.Connection] = None
    ) -> None:
        """Mark a processing job as done."""
        with _store_errors("mark_done"):
            async with self._connection(conn) as c:
                result = await c.execute(
                    """
                    UPDATE customer_jobs
                    SET status = $1, updated_at = $2
                    WHERE id = $3 AND status = $4
                    """,
                    JobStatus.done.value,
                    now,
                    job_id,
                    JobStatus.processing.value,
                )
        if _affected_rows(result) != 1:
            raise StoreError("mark_done", f"job {job_id} is no longer processing")

    async def mark_failed(self, job_id: UUID, error: str, now: datetime) -> None:
        """Mark a processing job as failed with an error message."""
        with _store_errors("mark_failed"):
            async with self.db_pool.acquire() as conn:
                await conn.execute(
                    """
                    UPDATE customer_jobs
                    SET status = $1, last_error = $2, updated_at = $3
                    WHERE id = $4 AND status = $5
                    """,
                    JobStatus.failed.value,
                    error,
                    now,
                    job_id,
                    JobStatus.processing.value,
                )

    async def complete_job(
        self,
        job_id: UUID,
        customer: Customer,
        customer_store: CustomerStore,
        now: datetime,
    ) -> None:
        """Insert the customer row and mark the job done in one transaction."""
        with _store_errors("complete_job"):
            async with self.db_pool.acquire() as conn:
                async with conn.transaction():
                    await customer_store.insert_customer(customer, conn=conn)
                    await self.mark_done(job_id, now, conn=conn)

    async def fail_stale_processing(self, older_than: datetime, now: datetime) -> int:
        """
        Fail jobs that have been processing since before ``older_than``.

        Used to clean up after workers that died mid-job. Stale jobs move
        to failed, never back to queued.
        """
        with _store_errors("fail_stale_processing"):
            async with self.db_pool.acquire() as conn:
                result = await conn.execute(
                    """
                    UPDATE customer_jobs
                    SET status = $1,
                        last_error = 'Processing lease expired - worker may have crashed',
                        updated_at = $2
                    WHERE status = $3 AND updated_at < $4
                    """,
                    JobStatus.failed.value,
                    now,
                    JobStatus.processing.value,
                    older_than,
                )
        return _affected_rows(result)

    def _row_to_job(self, row: asyncpg.Record) -> Job:
        """Convert a database row to a Job model."""
        return Job(
            id=row["id"],
            user_id=row["user_id"],
            address=row["address"],
            status=JobStatus(row["status"]),
            birth=row["birth"],
            sex=row["sex"],
            attempts=row["attempts"],
            last_error=row["last_error"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
