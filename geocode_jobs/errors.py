"""Exception types for the geocode jobs library."""

from typing import Optional


class GeocodeJobsError(Exception):
    """Base exception for all geocode jobs errors."""

    pass


class ValidationError(GeocodeJobsError):
    """Raised when submitted rows are missing or contain no usable address."""

    pass


class AuthTokenError(GeocodeJobsError):
    """Raised when a user identity or worker token is missing or invalid."""

    pass


class QuotaExceededError(GeocodeJobsError):
    """Raised when a user has no monthly job quota left."""

    def __init__(self, user_id: str, limit: int, message: Optional[str] = None):
        self.user_id = user_id
        self.limit = limit
        if message is None:
            message = f"Monthly job limit reached ({limit})."
        super().__init__(message)


class JobNotFoundError(GeocodeJobsError):
    """Raised when a job is not found."""

    def __init__(self, job_id: str, message: Optional[str] = None):
        self.job_id = job_id
        if message is None:
            message = f"Job {job_id} not found"
        super().__init__(message)


class StoreError(GeocodeJobsError):
    """Raised when the database rejects or cannot complete an operation."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class UpstreamError(GeocodeJobsError):
    """Raised when the geocoding provider is unreachable or answers with a non-success response."""

    def __init__(self, status_code: int, excerpt: str = "", message: Optional[str] = None):
        self.status_code = status_code
        self.excerpt = excerpt
        if message is None:
            message = f"Geocoder {status_code}: {excerpt}"
        super().__init__(message)


class NoResultError(GeocodeJobsError):
    """Raised when the geocoding provider returns zero candidates."""

    def __init__(self, address: str, message: str = "No result"):
        self.address = address
        super().__init__(message)


class RemoteHttpError(GeocodeJobsError):
    """Raised when an HTTP request to a remote geocode jobs service fails."""

    def __init__(self, status_code: int, message: str, response_body: Optional[str] = None):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(f"HTTP {status_code}: {message}")
