"""Literature mining service client."""

import logging
from typing import Optional, Sequence

from ..pipeline_core.cancellation import CancellationToken
from ..pipeline_core.error_handling import ServiceError
from ..results import LiteratureResults
from ..run_context import HpoTerm
from .client import ServiceClient

logger = logging.getLogger(__name__)


def build_search_request(
    genes: Sequence[str],
    hpo_terms: Sequence[HpoTerm],
    limit: int = 50,
    include_evidence_details: bool = True,
) -> dict:
    """Build the literature search body for a gene worklist."""
    return {
        "patient_hpo_terms": [{"id": t.hpo_id, "name": t.name} for t in hpo_terms],
        "genes": list(genes),
        "variants": [],
        "limit": limit,
        "include_evidence_details": include_evidence_details,
    }


class LiteratureClient(ServiceClient):
    """Session-based clinical literature search."""

    service = "literature"

    async def search(
        self, session_id: str, request: dict, token: Optional[CancellationToken] = None
    ) -> None:
        logger.debug(f"Literature search for {len(request.get('genes', []))} genes")
        await self.trigger(session_id, "literature", request, token)

    async def get_results(
        self,
        session_id: str,
        genes: Sequence[str],
        token: Optional[CancellationToken] = None,
    ) -> LiteratureResults:
        payload = await self.fetch_results(session_id, "literature", token)
        try:
            return LiteratureResults.from_payload(genes, payload)
        except ValueError as e:
            raise ServiceError(self.service, str(e))
