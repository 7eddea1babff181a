"""
Screening service client.

The result set is streamed as NDJSON, one line per record::

    {"type": "metadata", "summary": {...}, "cache_hit": true}
    {"type": "tier1", "data": {...}}
    ...
    {"type": "complete"}

The metadata line carries per-tier counts, which give the expected total
for sub-progress reporting.
"""

import logging
from typing import Any, Callable, Dict, Optional

from ..pipeline_core.cancellation import CancellationToken
from ..pipeline_core.error_handling import ServiceError
from ..results import SCREENING_TIERS, ScreeningResponse
from .client import ServiceClient

logger = logging.getLogger(__name__)


class ScreeningClient(ServiceClient):
    """Age-aware variant prioritisation service."""

    service = "screening"

    async def run_screening(
        self,
        session_id: str,
        payload: Dict[str, Any],
        token: Optional[CancellationToken] = None,
    ) -> Any:
        return await self.trigger(session_id, "screening", payload, token)

    async def stream_results(
        self,
        session_id: str,
        token: Optional[CancellationToken] = None,
        progress: Optional[Callable[[float], None]] = None,
    ) -> ScreeningResponse:
        """Stream the screening result set, reporting 0..100 as records arrive.

        Raises
        ------
        ServiceError
            If the stream fails or carries no metadata line
        """
        state: Dict[str, Any] = {"response": None, "expected": 0, "loaded": 0}

        def on_record(record: Dict[str, Any]) -> None:
            kind = record.get("type")
            if kind == "metadata":
                summary = record.get("summary") or {}
                state["response"] = ScreeningResponse(
                    summary=summary, cache_hit=bool(record.get("cache_hit", False))
                )
                state["expected"] = ScreeningResponse.expected_total(summary)
                logger.debug(
                    f"Screening metadata: {state['expected']} records expected, "
                    f"cache_hit={record.get('cache_hit', False)}"
                )
            elif kind in SCREENING_TIERS:
                response = state["response"]
                if response is None:
                    logger.warning(f"Screening {kind} record before metadata, ignoring")
                    return
                response.results_for(kind).append(record.get("data"))
                state["loaded"] += 1
                if progress is not None and state["expected"] > 0:
                    progress(min(100.0, state["loaded"] * 100.0 / state["expected"]))
            elif kind == "complete":
                logger.debug(f"Screening stream complete after {state['loaded']} records")

        url = self.session_url(session_id, "screening", "results")
        await self.stream_records(url, on_record, token)

        response = state["response"]
        if response is None:
            raise ServiceError(self.service, "No summary received from stream")
        if progress is not None:
            progress(100.0)
        logger.info(f"Screening results loaded: {response.tier_counts()}")
        return response
