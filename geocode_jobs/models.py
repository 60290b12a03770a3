"""Data models for geocoding jobs and customer records."""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID


class JobStatus(str, Enum):
    """Job status values."""

    queued = "queued"
    processing = "processing"
    done = "done"
    failed = "failed"


class Sex(str, Enum):
    """Sex values accepted on jobs and customer records."""

    male = "male"
    female = "female"


# Applied when building a Customer row from a job without a sex.
DEFAULT_CUSTOMER_SEX = Sex.male


class Job:
    """Represents a customer_jobs record."""

    def __init__(
        self,
        id: UUID,
        user_id: str,
        address: str,
        status: JobStatus,
        birth: Optional[str] = None,
        sex: Optional[Sex] = None,
        attempts: int = 0,
        last_error: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        self.id = id
        self.user_id = user_id
        self.address = address
        self.status = JobStatus(status) if isinstance(status, str) else status
        self.birth = birth
        self.sex = Sex(sex) if isinstance(sex, str) else sex
        self.attempts = attempts
        self.last_error = last_error
        self.created_at = created_at
        self.updated_at = updated_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert job to dictionary for JSON serialization."""
        return {
            "id": str(self.id),
            "user_id": self.user_id,
            "address": self.address,
            "birth": self.birth,
            "sex": self.sex.value if self.sex else None,
            "status": self.status.value,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class GeocodeResult:
    """First candidate returned by the geocoding provider."""

    def __init__(
        self,
        lat: float,
        lng: float,
        display_name: str,
        raw: Optional[Dict[str, Any]] = None,
    ):
        self.lat = lat
        self.lng = lng
        self.display_name = display_name
        self.raw = raw

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "lat": self.lat,
            "lng": self.lng,
            "displayName": self.display_name,
        }
        if self.raw is not None:
            data["raw"] = self.raw
        return data


class Customer:
    """Represents a resolved customer record."""

    def __init__(
        self,
        job_id: UUID,
        user_id: str,
        address: str,
        lat: float,
        lng: float,
        birth: Optional[str] = None,
        sex: Sex = DEFAULT_CUSTOMER_SEX,
    ):
        self.job_id = job_id
        self.user_id = user_id
        self.address = address
        self.lat = lat
        self.lng = lng
        self.birth = birth
        self.sex = Sex(sex) if isinstance(sex, str) else sex

    @classmethod
    def from_job(cls, job: Job, geo: GeocodeResult) -> "Customer":
        """Build the customer row for a job resolved to ``geo``."""
        return cls(
            job_id=job.id,
            user_id=job.user_id,
            address=geo.display_name,
            lat=geo.lat,
            lng=geo.lng,
            birth=job.birth,
            sex=job.sex or DEFAULT_CUSTOMER_SEX,
        )


class NormalizedRow:
    """An upload row after address, birth and sex normalization."""

    def __init__(self, address: str, birth: Optional[str] = None, sex: Optional[Sex] = None):
        self.address = address
        self.birth = birth
        self.sex = sex

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NormalizedRow):
            return NotImplemented
        return (self.address, self.birth, self.sex) == (other.address, other.birth, other.sex)

    def __repr__(self) -> str:
        return f"NormalizedRow(address={self.address!r}, birth={self.birth!r}, sex={self.sex!r})"


class EnqueueResult:
    """Counts reported after a batch upload."""

    def __init__(self, inserted: int, skipped: int, limit: int, used: int, remaining: int):
        self.inserted = inserted
        self.skipped = skipped
        self.limit = limit
        self.used = used
        self.remaining = remaining

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "inserted": self.inserted,
            "skipped": self.skipped,
            "limit": self.limit,
            "used": self.used,
            "remaining": self.remaining,
        }


class UsageReport:
    """Quota usage for one user within one calendar-month window."""

    def __init__(
        self, limit: int, used: int, remaining: int, period_start: datetime, period_next: datetime
    ):
        self.limit = limit
        self.used = used
        self.remaining = remaining
        self.period_start = period_start
        self.period_next = period_next

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "limit": self.limit,
            "used": self.used,
            "remaining": self.remaining,
            "period": {
                "start": self.period_start.isoformat(),
                "next": self.period_next.isoformat(),
            },
        }


class ProcessResult(ABC):
    """Outcome of a single worker invocation.

    Exactly one of the subclasses is returned by ``JobWorker.process_one``:
    ``NoOpResult`` when nothing was claimed, ``SuccessResult`` when the job
    reached ``done`` and ``FailureResult`` when it was marked ``failed``.
    """

    ok: bool = True
    processed: int = 0

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Render the invocation outcome as a response body."""


class NoOpResult(ProcessResult):
    """No job was claimed by this invocation."""

    def __init__(self, skipped: Optional[str] = None):
        self.skipped = skipped

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"ok": True, "processed": 0}
        if self.skipped:
            data["skipped"] = self.skipped
        return data


class SuccessResult(ProcessResult):
    """The claimed job was geocoded and its customer row created."""

    processed = 1

    def __init__(self, job_id: UUID, lat: float, lng: float):
        self.job_id = job_id
        self.lat = lat
        self.lng = lng

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "processed": 1,
            "id": str(self.job_id),
            "lat": self.lat,
            "lng": self.lng,
        }


class FailureResult(ProcessResult):
    """The claimed job ended in ``failed``."""

    ok = False
    processed = 1

    def __init__(self, job_id: UUID, error: str):
        self.job_id = job_id
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "processed": 1,
            "id": str(self.job_id),
            "error": self.error,
        }
