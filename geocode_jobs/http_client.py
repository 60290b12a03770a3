"""HTTP client for calling a geocode jobs service."""

from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from geocode_jobs.errors import RemoteHttpError


class GeocodeJobsHttpClient:
    """HTTP client for calling the geocode jobs API."""

    def __init__(
        self,
        base_url: str,
        user_id: Optional[str] = None,
        worker_token: Optional[str] = None,
        timeout: float = 5.0,
    ):
        """
        Initialize HTTP client.

        Args:
            base_url: Base URL including the router prefix (e.g., "https://geo.internal/api")
            user_id: Authenticated user id sent as X-User-Id
            worker_token: Shared secret sent as X-Worker-Token for process_one
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.worker_token = worker_token
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def _user_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.user_id:
            headers["X-User-Id"] = self.user_id
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        headers: Dict[str, str],
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            try:
                async with session.request(
                    method, url, json=json_body, headers=headers
                ) as resp:
                    response_body = await resp.text()

                    if resp.status >= 400:
                        raise RemoteHttpError(
                            status_code=resp.status,
                            message=f"Failed to {action}: {response_body}",
                            response_body=response_body,
                        )

                    return await resp.json()

            except aiohttp.ClientError as e:
                raise RemoteHttpError(
                    status_code=0,
                    message=f"Network error: {str(e)}",
                ) from e

    async def upload(self, rows: List[Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Queue a batch of address rows.

        Returns:
            Counts ``{ok, inserted, skipped, limit, used, remaining}``

        Raises:
            RemoteHttpError: If the HTTP request fails (429 once quota is spent)
        """
        return await self._request(
            "POST",
            "/jobs/upload",
            "upload rows",
            self._user_headers(),
            json_body={"rows": [dict(row) for row in rows]},
        )

    async def usage(self) -> Dict[str, Any]:
        """Get this month's quota usage for the configured user."""
        return await self._request("GET", "/jobs/usage", "get usage", self._user_headers())

    async def process_one(self) -> Dict[str, Any]:
        """
        Trigger one worker invocation.

        Returns:
            ``{ok, processed, id?, lat?, lng?, error?, skipped?}``
        """
        headers = {"Content-Type": "application/json"}
        if self.worker_token:
            headers["X-Worker-Token"] = self.worker_token
        return await self._request("POST", "/jobs/process-one", "process job", headers)
