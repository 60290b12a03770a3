"""Unit tests for quota module."""

from datetime import datetime, timedelta, timezone

import pytest

from geocode_jobs.models import JobStatus
from geocode_jobs.quota import QuotaTracker, month_window


def test_month_window_mid_month(now):
    """Test window spans the calendar month containing now."""
    start, end = month_window(now)

    assert start == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert end == datetime(2024, 6, 1, tzinfo=timezone.utc)


def test_month_window_december_rolls_year():
    """Test December's window ends on January 1st of the next year."""
    start, end = month_window(datetime(2023, 12, 31, 23, 59, tzinfo=timezone.utc))

    assert start == datetime(2023, 12, 1, tzinfo=timezone.utc)
    assert end == datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_remaining_counts_every_status(job_store, quota, user_id, now):
    """Test failed and done jobs still consume quota."""
    for status in JobStatus:
        job_store.add_job(user_id, "addr", now, status=status)

    assert await quota.remaining(user_id, now) == 200 - len(JobStatus)


@pytest.mark.asyncio
async def test_remaining_ignores_other_users_and_months(job_store, quota, user_id, now):
    """Test only this user's jobs in this month are counted."""
    job_store.add_job("someone-else", "addr", now)
    job_store.add_job(user_id, "addr", now.replace(month=4))
    job_store.add_job(user_id, "addr", now.replace(month=6, day=1, hour=0))
    job_store.add_job(user_id, "addr", now.replace(day=1, hour=0))

    assert await quota.remaining(user_id, now) == 199


@pytest.mark.asyncio
async def test_remaining_floors_at_zero(job_store, user_id, now):
    """Test remaining never goes negative."""
    tracker = QuotaTracker(job_store, limit=2)
    for _ in range(3):
        job_store.add_job(user_id, "addr", now)

    assert await tracker.remaining(user_id, now) == 0


@pytest.mark.asyncio
async def test_quota_resets_in_new_month(job_store, user_id, now):
    """Test usage resets once now crosses into the next month."""
    tracker = QuotaTracker(job_store, limit=2)
    job_store.add_job(user_id, "addr", now)
    job_store.add_job(user_id, "addr", now)

    assert await tracker.remaining(user_id, now) == 0
    assert await tracker.remaining(user_id, now + timedelta(days=20)) == 2


@pytest.mark.asyncio
async def test_usage_report(job_store, quota, user_id, now):
    """Test usage report includes the period bounds."""
    job_store.add_job(user_id, "addr", now)

    report = await quota.usage(user_id, now)

    assert report.limit == 200
    assert report.used == 1
    assert report.remaining == 199
    assert report.to_dict()["period"] == {
        "start": "2024-05-01T00:00:00+00:00",
        "next": "2024-06-01T00:00:00+00:00",
    }
