"""Monthly job quota accounting."""

from datetime import datetime
from typing import Tuple

from dateutil.relativedelta import relativedelta

from geocode_jobs.config import DEFAULT_MONTHLY_LIMIT
from geocode_jobs.models import UsageReport
from geocode_jobs.store import JobStore


def month_window(now: datetime) -> Tuple[datetime, datetime]:
    """Return ``[start of month, start of next month)`` in ``now``'s timezone."""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return start, start + relativedelta(months=1)


class QuotaTracker:
    """
    Counts jobs a user created in the current calendar month.

    Every job counts regardless of status, so quota spent on jobs that later
    fail is never refunded.
    """

    def __init__(self, store: JobStore, limit: int = DEFAULT_MONTHLY_LIMIT):
        self.store = store
        self.limit = limit

    async def used(self, user_id: str, now: datetime) -> int:
        start, end = month_window(now)
        return await self.store.count_created_in_window(user_id, start, end)

    async def remaining(self, user_id: str, now: datetime) -> int:
        """Jobs the user may still create this month, never below zero."""
        return max(0, self.limit - await self.used(user_id, now))

    async def usage(self, user_id: str, now: datetime) -> UsageReport:
        start, end = month_window(now)
        used = await self.store.count_created_in_window(user_id, start, end)
        return UsageReport(
            limit=self.limit,
            used=used,
            remaining=max(0, self.limit - used),
            period_start=start,
            period_next=end,
        )
