"""Phenotype matching service client."""

import logging
from typing import List, Optional, Sequence

from ..pipeline_core.cancellation import CancellationToken
from ..pipeline_core.error_handling import ServiceError
from ..results import PhenotypeMatch, parse_phenotype_results
from .client import ServiceClient

logger = logging.getLogger(__name__)


class PhenotypeClient(ServiceClient):
    """Session-based phenotype matching: match against HPO terms, then load tiers."""

    service = "phenotype"

    async def run_matching(
        self,
        session_id: str,
        patient_hpo_ids: Sequence[str],
        token: Optional[CancellationToken] = None,
    ) -> None:
        await self.trigger(session_id, "phenotype", {"patient_hpo_ids": list(patient_hpo_ids)}, token)

    async def get_results(
        self, session_id: str, token: Optional[CancellationToken] = None
    ) -> List[PhenotypeMatch]:
        payload = await self.fetch_results(session_id, "phenotype", token)
        try:
            matches = parse_phenotype_results(payload)
        except (ValueError, KeyError, TypeError) as e:
            raise ServiceError(self.service, f"Malformed phenotype results: {e}")
        logger.debug(f"Loaded {len(matches)} phenotype records for session {session_id}")
        return matches
