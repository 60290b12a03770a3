"""Configuration for the geocode jobs service."""

import logging
import os
from typing import Optional

DEFAULT_MONTHLY_LIMIT = 200
DEFAULT_GEOCODER_URL = "https://nominatim.openstreetmap.org"
DEFAULT_USER_AGENT = "geocode-jobs/0.1"
DEFAULT_ACCEPT_LANGUAGE = "en"
DEFAULT_GEOCODER_TIMEOUT_SECONDS = 10.0
DEFAULT_RATE_LIMIT_SECONDS = 1.1


class GeocodeJobsConfig:
    """Configuration object for geocode jobs."""

    def __init__(
        self,
        db_dsn: str,
        worker_token: Optional[str] = None,
        monthly_limit: int = DEFAULT_MONTHLY_LIMIT,
        geocoder_url: str = DEFAULT_GEOCODER_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        accept_language: str = DEFAULT_ACCEPT_LANGUAGE,
        referer: Optional[str] = None,
        geocoder_timeout_seconds: float = DEFAULT_GEOCODER_TIMEOUT_SECONDS,
        rate_limit_seconds: float = DEFAULT_RATE_LIMIT_SECONDS,
        stale_processing_seconds: Optional[int] = None,
    ):
        self.db_dsn = db_dsn
        self.worker_token = worker_token
        self.monthly_limit = monthly_limit
        self.geocoder_url = geocoder_url.rstrip("/")
        self.user_agent = user_agent
        self.accept_language = accept_language
        self.referer = referer
        self.geocoder_timeout_seconds = geocoder_timeout_seconds
        self.rate_limit_seconds = rate_limit_seconds
        self.stale_processing_seconds = stale_processing_seconds

    @classmethod
    def from_env(cls) -> "GeocodeJobsConfig":
        """Create config from environment variables."""
        db_dsn = os.getenv("GEOCODE_JOBS_DB_DSN")
        if not db_dsn:
            raise ValueError("GEOCODE_JOBS_DB_DSN environment variable is required")

        stale = os.getenv("GEOCODE_JOBS_STALE_PROCESSING_SECONDS")

        return cls(
            db_dsn=db_dsn,
            worker_token=os.getenv("GEOCODE_JOBS_WORKER_TOKEN") or None,
            monthly_limit=_int_env("GEOCODE_JOBS_MONTHLY_LIMIT", DEFAULT_MONTHLY_LIMIT),
            geocoder_url=os.getenv("GEOCODE_JOBS_GEOCODER_URL", DEFAULT_GEOCODER_URL),
            user_agent=os.getenv("GEOCODE_JOBS_USER_AGENT", DEFAULT_USER_AGENT),
            accept_language=os.getenv(
                "GEOCODE_JOBS_ACCEPT_LANGUAGE", DEFAULT_ACCEPT_LANGUAGE
            ),
            referer=os.getenv("GEOCODE_JOBS_REFERER") or None,
            geocoder_timeout_seconds=_float_env(
                "GEOCODE_JOBS_GEOCODER_TIMEOUT_SECONDS", DEFAULT_GEOCODER_TIMEOUT_SECONDS
            ),
            rate_limit_seconds=_float_env(
                "GEOCODE_JOBS_RATE_LIMIT_SECONDS", DEFAULT_RATE_LIMIT_SECONDS
            ),
            stale_processing_seconds=(
                _int_env("GEOCODE_JOBS_STALE_PROCESSING_SECONDS", 0) if stale else None
            ),
        )

    def warn_on_anonymous_user_agent(self, logger: logging.Logger) -> None:
        """Log a warning when the client identifier carries no contact details.

        Nominatim-style providers throttle or block clients that cannot be
        identified.
        """
        if "@" not in self.user_agent and "http" not in self.user_agent:
            logger.warning(
                f"Geocoder user agent {self.user_agent!r} has no contact URL or email; "
                "the provider may throttle or reject requests"
            )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"Invalid integer in {name}: {raw!r}") from e


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"Invalid number in {name}: {raw!r}") from e
