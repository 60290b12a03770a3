"""High-level service layer for submitting geocoding jobs."""

import logging
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence

from geocode_jobs.errors import QuotaExceededError, ValidationError
from geocode_jobs.models import EnqueueResult, Job, UsageReport
from geocode_jobs.normalize import normalize_rows
from geocode_jobs.quota import QuotaTracker
from geocode_jobs.store import JobStore


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobQueue:
    """High-level API for enqueueing address batches."""

    def __init__(
        self,
        store: JobStore,
        quota: QuotaTracker,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.quota = quota
        self.logger = logger or logging.getLogger(__name__)

    async def enqueue(
        self,
        user_id: str,
        rows: Optional[Sequence[Mapping[str, Any]]],
        now: Optional[datetime] = None,
    ) -> EnqueueResult:
        """
        Normalize rows and queue as many as the user's monthly quota allows.

        Rows past the remaining quota are skipped, not rejected, so a large
        batch still makes progress up to the limit.

        Args:
            user_id: Owner of the new jobs
            rows: Sequence of ``{"address", "birth"?, "sex"?}`` mappings
            now: Creation time (defaults to current UTC time)

        Returns:
            EnqueueResult with inserted/skipped counts and quota after insert

        Raises:
            ValidationError: If rows are missing or none has an address
            QuotaExceededError: If the user has no quota left this month
        """
        if now is None:
            now = utcnow()

        if not rows:
            raise ValidationError("rows is required")

        normalized = normalize_rows(rows)
        if not normalized:
            raise ValidationError("No valid rows (address is empty)")

        limit = self.quota.limit
        remaining = await self.quota.remaining(user_id, now)
        if remaining <= 0:
            raise QuotaExceededError(user_id, limit)

        to_insert = normalized[:remaining]
        await self.store.insert_jobs(user_id, to_insert, now)

        remaining_after = remaining - len(to_insert)
        result = EnqueueResult(
            inserted=len(to_insert),
            skipped=len(normalized) - len(to_insert),
            limit=limit,
            used=limit - remaining_after,
            remaining=remaining_after,
        )

        self.logger.info(
            f"Enqueued {result.inserted} jobs for user {user_id} "
            f"(skipped {result.skipped}, remaining {result.remaining})"
        )
        return result

    async def usage(self, user_id: str, now: Optional[datetime] = None) -> UsageReport:
        """Report the user's quota usage for the month containing ``now``."""
        return await self.quota.usage(user_id, now or utcnow())

    async def list_jobs(
        self, user_id: str, status: Optional[str] = None, limit: int = 50
    ) -> List[Job]:
        """List a user's jobs, newest first."""
        return await self.store.list_jobs(user_id, status=status, limit=limit)
