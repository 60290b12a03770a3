"""Asynchronous address geocoding jobs with monthly quotas."""

from geocode_jobs.config import GeocodeJobsConfig
from geocode_jobs.ddl import CUSTOMER_JOBS_TABLE_DDL, CUSTOMER_TABLE_DDL, SCHEMA_DDL
from geocode_jobs.errors import (
    AuthTokenError,
    GeocodeJobsError,
    JobNotFoundError,
    NoResultError,
    QuotaExceededError,
    RemoteHttpError,
    StoreError,
    UpstreamError,
    ValidationError,
)
from geocode_jobs.fastapi_router import create_jobs_router
from geocode_jobs.geocoder import GeocodingClient
from geocode_jobs.http_client import GeocodeJobsHttpClient
from geocode_jobs.models import (
    Customer,
    EnqueueResult,
    FailureResult,
    GeocodeResult,
    Job,
    JobStatus,
    NoOpResult,
    ProcessResult,
    Sex,
    SuccessResult,
    UsageReport,
)
from geocode_jobs.quota import QuotaTracker, month_window
from geocode_jobs.rate_limit import FixedDelayRateLimiter, NoopRateLimiter, RateLimiter
from geocode_jobs.service import JobQueue
from geocode_jobs.store import CustomerStore, JobStore
from geocode_jobs.worker import JobWorker, run_worker_loop

__version__ = "0.1.0"

__all__ = [
    "GeocodeJobsConfig",
    "CUSTOMER_JOBS_TABLE_DDL",
    "CUSTOMER_TABLE_DDL",
    "SCHEMA_DDL",
    "AuthTokenError",
    "GeocodeJobsError",
    "JobNotFoundError",
    "NoResultError",
    "QuotaExceededError",
    "RemoteHttpError",
    "StoreError",
    "UpstreamError",
    "ValidationError",
    "create_jobs_router",
    "GeocodingClient",
    "GeocodeJobsHttpClient",
    "Customer",
    "EnqueueResult",
    "FailureResult",
    "GeocodeResult",
    "Job",
    "JobStatus",
    "NoOpResult",
    "ProcessResult",
    "Sex",
    "SuccessResult",
    "UsageReport",
    "QuotaTracker",
    "month_window",
    "FixedDelayRateLimiter",
    "NoopRateLimiter",
    "RateLimiter",
    "JobQueue",
    "CustomerStore",
    "JobStore",
    "JobWorker",
    "run_worker_loop",
]
