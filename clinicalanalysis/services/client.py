"""Base async client for the analysis backend services."""

import json
import logging
from typing import Any, Callable, Dict, Optional

import httpx

from ..pipeline_core.cancellation import CancellationToken
from ..pipeline_core.error_handling import ServiceError

logger = logging.getLogger(__name__)


class ServiceClient:
    """Two-call service contract shared by every analysis backend.

    ``POST {base_url}/{service}/sessions/{session_id}/{stage}`` triggers the
    computation and returns once it has finished;
    ``GET {base_url}/{service}/sessions/{session_id}/{stage}/results``
    returns the full result set. Every request is raced against the run's
    cancellation token.
    """

    service = "service"

    def __init__(self, http: httpx.AsyncClient, base_url: str, timeout: float = 600.0):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def session_url(self, session_id: str, stage: str, *parts: str) -> str:
        path = "/".join([self.service, "sessions", session_id, stage, *parts])
        return f"{self.base_url}/{path}"

    async def trigger(
        self,
        session_id: str,
        stage: str,
        payload: Dict[str, Any],
        token: Optional[CancellationToken] = None,
    ) -> Any:
        """Submit a computation and wait for the backend to finish it."""
        url = self.session_url(session_id, stage)
        logger.debug(f"POST {url}")
        return await self._request("POST", url, token, json=payload)

    async def fetch_results(
        self, session_id: str, stage: str, token: Optional[CancellationToken] = None
    ) -> Any:
        """Bulk-retrieve the computed result set for a session."""
        url = self.session_url(session_id, stage, "results")
        logger.debug(f"GET {url}")
        return await self._request("GET", url, token)

    async def stream_records(
        self,
        url: str,
        on_record: Callable[[Dict[str, Any]], None],
        token: Optional[CancellationToken] = None,
    ) -> int:
        """Stream an NDJSON body, handing each parsed line to ``on_record``.

        Lines that are not valid JSON objects are logged and skipped.

        Returns
        -------
        int
            Number of records delivered
        """
        token = token or CancellationToken()
        return await token.guard(self._consume_stream(url, on_record, token))

    async def _request(
        self, method: str, url: str, token: Optional[CancellationToken], **kwargs: Any
    ) -> Any:
        token = token or CancellationToken()
        return await token.guard(self._send(method, url, **kwargs))

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            resp = await self.http.request(method, url, timeout=self.timeout, **kwargs)
        except httpx.HTTPError as e:
            raise ServiceError(self.service, f"{method} {url} failed: {e}")

        if resp.is_error:
            raise ServiceError(self.service, self._error_detail(resp), resp.status_code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ServiceError(self.service, f"Malformed response from {url}: {e}", resp.status_code)

    async def _consume_stream(
        self,
        url: str,
        on_record: Callable[[Dict[str, Any]], None],
        token: CancellationToken,
    ) -> int:
        delivered = 0
        try:
            async with self.http.stream("GET", url, timeout=self.timeout) as resp:
                if resp.is_error:
                    await resp.aread()
                    raise ServiceError(self.service, self._error_detail(resp), resp.status_code)

                async for line in resp.aiter_lines():
                    token.raise_if_cancelled()
                    if not line.strip():
                        continue
                    try:
                        record = json.loads(line)
                    except json.JSONDecodeError as e:
                        logger.warning(f"Failed to parse streamed line from {url}: {e}")
                        continue
                    if not isinstance(record, dict):
                        logger.warning(f"Ignoring non-object streamed line from {url}")
                        continue
                    on_record(record)
                    delivered += 1
        except httpx.HTTPError as e:
            raise ServiceError(self.service, f"GET {url} failed: {e}")
        return delivered

    @staticmethod
    def _error_detail(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("detail"):
            return str(body["detail"])
        return f"HTTP {resp.status_code}: {resp.reason_phrase}"
