"""Client for a Nominatim-compatible geocoding service."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from geocode_jobs.config import GeocodeJobsConfig
from geocode_jobs.errors import NoResultError, UpstreamError
from geocode_jobs.models import GeocodeResult
from geocode_jobs.rate_limit import FixedDelayRateLimiter, RateLimiter

EXCERPT_LENGTH = 200

logger = logging.getLogger(__name__)


class GeocodingClient:
    """Resolve free-text addresses into coordinates."""

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        accept_language: str = "en",
        referer: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize geocoding client.

        Args:
            base_url: Provider base URL (e.g., "https://nominatim.openstreetmap.org")
            user_agent: Client identifier sent as User-Agent; should carry contact details
            accept_language: Preferred language for display names
            referer: Optional Referer header
            rate_limiter: Gate awaited before every request (defaults to a 1.1s delay)
            timeout: Request timeout in seconds
            session: Optional shared aiohttp session; a new one is opened per
                request when omitted
        """
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.accept_language = accept_language
        self.referer = referer
        self.rate_limiter = rate_limiter or FixedDelayRateLimiter()
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session

    @classmethod
    def from_config(
        cls,
        config: GeocodeJobsConfig,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> "GeocodingClient":
        return cls(
            base_url=config.geocoder_url,
            user_agent=config.user_agent,
            accept_language=config.accept_language,
            referer=config.referer,
            rate_limiter=rate_limiter
            or FixedDelayRateLimiter(config.rate_limit_seconds),
            timeout=config.geocoder_timeout_seconds,
            session=session,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
            "Accept-Language": self.accept_language,
        }
        if self.referer:
            headers["Referer"] = self.referer
        return headers

    async def geocode(self, address: str) -> GeocodeResult:
        """
        Resolve an address, taking the provider's first candidate.

        Raises:
            UpstreamError: On network failure, non-2xx status or an
                unparseable body
            NoResultError: If the provider returns no candidates
        """
        await self.rate_limiter.acquire()

        url = f"{self.base_url}/search"
        params = {
            "format": "jsonv2",
            "q": address,
            "limit": "1",
            "addressdetails": "1",
        }

        try:
            if self._session is not None:
                status, body = await self._get(self._session, url, params)
            else:
                async with aiohttp.ClientSession(timeout=self.timeout) as session:
                    status, body = await self._get(session, url, params)
        except asyncio.TimeoutError as e:
            raise UpstreamError(
                status_code=0,
                message=f"Geocoder timeout after {self.timeout.total}s",
            ) from e
        except aiohttp.ClientError as e:
            raise UpstreamError(
                status_code=0, message=f"Geocoder network error: {str(e)}"
            ) from e

        if status < 200 or status >= 300:
            excerpt = body[:EXCERPT_LENGTH]
            logger.warning(f"Geocoder returned {status} for {address!r}")
            raise UpstreamError(status_code=status, excerpt=excerpt)

        candidates = _parse_candidates(status, body)
        if not candidates:
            raise NoResultError(address)

        return _to_result(status, candidates[0])

    async def _get(self, session: aiohttp.ClientSession, url: str, params: Dict[str, str]):
        async with session.get(
            url, params=params, headers=self._headers(), timeout=self.timeout
        ) as resp:
            return resp.status, await resp.text()


def _parse_candidates(status: int, body: str) -> list:
    try:
        data = json.loads(body)
    except ValueError as e:
        raise UpstreamError(
            status_code=status,
            excerpt=body[:EXCERPT_LENGTH],
            message=f"Geocoder returned invalid JSON: {body[:EXCERPT_LENGTH]}",
        ) from e
    if not isinstance(data, list):
        raise UpstreamError(
            status_code=status,
            excerpt=body[:EXCERPT_LENGTH],
            message="Geocoder returned an unexpected payload",
        )
    return data


def _to_result(status: int, candidate: Dict[str, Any]) -> GeocodeResult:
    try:
        return GeocodeResult(
            lat=float(candidate["lat"]),
            lng=float(candidate["lon"]),
            display_name=str(candidate.get("display_name") or ""),
            raw=candidate,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise UpstreamError(
            status_code=status,
            message=f"Geocoder candidate is missing coordinates: {e}",
        ) from e
