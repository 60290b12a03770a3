"""FastAPI router for the geocode jobs HTTP API."""

import hmac
import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query
from pydantic import BaseModel

from geocode_jobs.errors import (
    NoResultError,
    QuotaExceededError,
    StoreError,
    UpstreamError,
    ValidationError,
)
from geocode_jobs.geocoder import GeocodingClient
from geocode_jobs.service import JobQueue
from geocode_jobs.worker import JobWorker


logger = logging.getLogger(__name__)


class UploadRequest(BaseModel):
    """Request model for a batch upload.

    Rows are left untyped; ``normalize_rows`` drops or cleans malformed
    entries instead of rejecting the batch.
    """

    rows: Optional[List[Any]] = None


class UploadResponse(BaseModel):
    ok: bool
    inserted: int
    skipped: int
    limit: int
    used: int
    remaining: int


class UsagePeriod(BaseModel):
    start: str
    next: str


class UsageResponse(BaseModel):
    ok: bool
    limit: int
    used: int
    remaining: int
    period: UsagePeriod


class ProcessOneResponse(BaseModel):
    """Response model for a worker invocation."""

    ok: bool
    processed: int
    id: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    error: Optional[str] = None
    skipped: Optional[str] = None


class GeocodeResponse(BaseModel):
    lat: float
    lng: float
    displayName: str
    raw: Optional[Dict[str, Any]] = None


class JobResponse(BaseModel):
    """Response model for job details."""

    id: str
    user_id: str
    address: str
    birth: Optional[str] = None
    sex: Optional[str] = None
    status: str
    attempts: int
    last_error: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


async def user_id_from_header(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id")
) -> Optional[str]:
    """Read the user id set by the upstream authentication layer."""
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


def create_jobs_router(
    job_queue_factory: Callable[[], JobQueue],
    job_worker_factory: Callable[[], JobWorker],
    geocoder_factory: Optional[Callable[[], GeocodingClient]] = None,
    worker_token: Optional[str] = None,
    get_user_id: Callable[..., Any] = user_id_from_header,
) -> APIRouter:
    """
    Create FastAPI router for the geocode jobs API.

    Args:
        job_queue_factory: Callable that returns a JobQueue instance
        job_worker_factory: Callable that returns a JobWorker instance
        geocoder_factory: Callable that returns a GeocodingClient; enables
            ``GET /geocode`` when given
        worker_token: Shared secret required by ``POST /jobs/process-one``.
            When unset the endpoint rejects every call.
        get_user_id: Dependency resolving the authenticated user id, or None

    Returns:
        APIRouter instance
    """
    router = APIRouter()

    async def get_job_queue() -> JobQueue:
        return job_queue_factory()

    async def get_job_worker() -> JobWorker:
        return job_worker_factory()

    async def require_user(user_id: Optional[str] = Depends(get_user_id)) -> str:
        if not user_id:
            raise HTTPException(status_code=401, detail="Unauthorized")
        return user_id

    async def verify_worker_token(
        x_worker_token: Optional[str] = Header(None, alias="X-Worker-Token"),
        authorization: Optional[str] = Header(None),
    ) -> None:
        presented = x_worker_token or _bearer(authorization)
        if (
            not worker_token
            or not presented
            or not hmac.compare_digest(presented.encode(), worker_token.encode())
        ):
            raise HTTPException(status_code=401, detail="Unauthorized worker")

    @router.post("/jobs/upload", response_model=UploadResponse)
    async def upload_jobs(
        request: Optional[UploadRequest] = Body(None),
        user_id: str = Depends(require_user),
        job_queue: JobQueue = Depends(get_job_queue),
    ):
        """Queue a batch of addresses for geocoding."""
        rows: List[Any] = (request.rows if request else None) or []
        try:
            result = await job_queue.enqueue(user_id, rows)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except QuotaExceededError as e:
            raise HTTPException(status_code=429, detail=str(e)) from e
        except StoreError as e:
            logger.exception("Error enqueueing jobs")
            raise HTTPException(status_code=500, detail=str(e)) from e
        return UploadResponse(**result.to_dict())

    @router.get("/jobs/usage", response_model=UsageResponse)
    async def get_usage(
        user_id: str = Depends(require_user),
        job_queue: JobQueue = Depends(get_job_queue),
    ):
        """Report this month's job quota usage."""
        try:
            report = await job_queue.usage(user_id)
        except StoreError as e:
            logger.exception("Error reading usage")
            raise HTTPException(status_code=500, detail=str(e)) from e
        return UsageResponse(**report.to_dict())

    @router.get("/jobs", response_model=List[JobResponse])
    async def list_jobs(
        status: Optional[str] = Query(None),
        limit: int = Query(50, ge=1, le=1000),
        user_id: str = Depends(require_user),
        job_queue: JobQueue = Depends(get_job_queue),
    ):
        """List the caller's jobs."""
        try:
            jobs = await job_queue.list_jobs(user_id, status=status, limit=limit)
        except StoreError as e:
            logger.exception("Error listing jobs")
            raise HTTPException(status_code=500, detail=str(e)) from e
        return [JobResponse(**job.to_dict()) for job in jobs]

    @router.post(
        "/jobs/process-one",
        response_model=ProcessOneResponse,
        response_model_exclude_none=True,
    )
    async def process_one(
        _: None = Depends(verify_worker_token),
        worker: JobWorker = Depends(get_job_worker),
    ):
        """Claim and resolve the oldest queued job."""
        try:
            result = await worker.process_one()
        except StoreError as e:
            logger.exception("Error selecting or claiming a job")
            raise HTTPException(status_code=500, detail=str(e)) from e
        return ProcessOneResponse(**result.to_dict())

    if geocoder_factory is not None:

        @router.get(
            "/geocode",
            response_model=GeocodeResponse,
            response_model_exclude_none=True,
        )
        async def geocode(address: Optional[str] = Query(None)):
            """Resolve a single address without queueing it."""
            address = (address or "").strip()
            if not address:
                raise HTTPException(status_code=400, detail="address is required")
            try:
                result = await geocoder_factory().geocode(address)
            except NoResultError as e:
                raise HTTPException(status_code=404, detail=str(e)) from e
            except UpstreamError as e:
                raise HTTPException(status_code=502, detail=str(e)) from e
            return GeocodeResponse(**result.to_dict())

    return router
