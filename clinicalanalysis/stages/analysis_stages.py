"""
Clinical analysis stages.

This module contains the stages of the clinical analysis pipeline, run in
this order:
- Phenotype matching (optional, first when the patient has HPO terms)
- Clinical screening (required; its failure aborts the pipeline)
- Literature search over the genes phenotype matching ranked highest
"""

import logging
from typing import Any, Dict, List, Optional

from ..gene_worklist import DEFAULT_TIER2_LIMIT, build_gene_worklist
from ..pipeline_core import PipelineContext, Stage
from ..pipeline_core.cancellation import CancellationToken
from ..pipeline_core.stage import ProgressCallback
from ..results import LiteratureResults, PhenotypeMatch, ScreeningResponse
from ..run_context import MODULE_LITERATURE, MODULE_PHENOTYPE, MODULE_SCREENING, RunContext
from ..services import LiteratureClient, PhenotypeClient, ScreeningClient, build_search_request
from ..validators import validate_demographics

logger = logging.getLogger(__name__)

PHENOTYPE_STAGE = "phenotype"
SCREENING_STAGE = "screening"
LITERATURE_STAGE = "literature"


def phenotype_matching_enabled(run_context: RunContext) -> bool:
    """Phenotype matching runs when the module is on and the patient has HPO terms."""
    return run_context.is_enabled(MODULE_PHENOTYPE) and len(run_context.hpo_terms) > 0


def build_screening_payload(run_context: RunContext) -> Dict[str, Any]:
    """Build the screening request body from the run context."""
    demographics = run_context.demographics
    return {
        "session_id": run_context.session_id,
        "age_years": demographics.age_years if demographics else None,
        "age_days": demographics.age_days if demographics else None,
        "sex": demographics.sex if demographics else None,
        "ethnicity": run_context.ethnicity,
        "indication": run_context.indication,
        "has_family_history": run_context.has_family_history,
        "consanguinity": run_context.consanguinity,
        "screening_mode": run_context.screening_mode,
        "patient_hpo_terms": list(run_context.hpo_ids),
        "sample_type": run_context.sample_type,
        "is_pregnant": run_context.is_pregnant,
        "has_parental_samples": run_context.has_parental_samples,
        "has_affected_sibling": run_context.has_affected_sibling,
    }


class PhenotypeMatchingStage(Stage):
    """Match patient phenotypes against variant phenotypes to assign clinical tiers."""

    def __init__(self, client: PhenotypeClient):
        super().__init__()
        self.client = client

    @property
    def name(self) -> str:
        """Return the stage name."""
        return PHENOTYPE_STAGE

    @property
    def display_name(self) -> str:
        return "Phenotype Matching"

    @property
    def description(self) -> str:
        """Return a description of what this stage does."""
        return "Identifying variants matching patient phenotype"

    def is_active(self, run_context: RunContext) -> bool:
        """Run only with the phenotype module enabled and at least one HPO term."""
        return phenotype_matching_enabled(run_context)

    async def _trigger(
        self,
        context: PipelineContext,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
    ) -> None:
        hpo_ids = context.run_context.hpo_ids
        logger.info(f"Patient HPO terms: {', '.join(hpo_ids)}")
        await self.client.run_matching(context.session_id, hpo_ids, token)

    async def _fetch(
        self,
        context: PipelineContext,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
    ) -> List[PhenotypeMatch]:
        matches = await self.client.get_results(context.session_id, token)
        tier1 = sum(1 for m in matches if m.tier == 1)
        tier2 = sum(1 for m in matches if m.tier == 2)
        logger.info(f"Phenotype matching: {len(matches)} records ({tier1} Tier 1, {tier2} Tier 2)")
        return matches


class ClinicalScreeningStage(Stage):
    """Age-aware screening, boosted by phenotype tiers when they exist."""

    def __init__(self, client: ScreeningClient):
        super().__init__()
        self.client = client

    @property
    def name(self) -> str:
        """Return the stage name."""
        return SCREENING_STAGE

    @property
    def display_name(self) -> str:
        return "Clinical Screening"

    @property
    def description(self) -> str:
        """Return a description of what this stage does."""
        return "Enhanced prioritization with phenotype context"

    @property
    def fatal_on_failure(self) -> bool:
        """Screening is required; without it there is nothing to review."""
        return True

    @property
    def reports_progress(self) -> bool:
        """Return True; results are streamed with per-record progress."""
        return True

    def is_active(self, run_context: RunContext) -> bool:
        return run_context.is_enabled(MODULE_SCREENING)

    def validate_prerequisites(self, run_context: RunContext) -> None:
        """Require demographics before any request is made."""
        validate_demographics(run_context, self.name)

    async def _trigger(
        self,
        context: PipelineContext,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
    ) -> None:
        payload = build_screening_payload(context.run_context)
        logger.debug(f"Screening payload: {payload}")
        await self.client.run_screening(context.session_id, payload, token)

    async def _fetch(
        self,
        context: PipelineContext,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
    ) -> ScreeningResponse:
        return await self.client.stream_results(context.session_id, token, progress)


class LiteratureSearchStage(Stage):
    """Search clinical literature for the Tier 1/Tier 2 genes from phenotype matching.

    The stage depends on phenotype matching being enabled, not on it having
    succeeded: a failed or empty phenotype stage leaves an empty worklist and
    the stage skips itself.
    """

    def __init__(
        self,
        client: LiteratureClient,
        tier2_limit: int = DEFAULT_TIER2_LIMIT,
        limit: int = 50,
        include_evidence_details: bool = True,
    ):
        super().__init__()
        self.client = client
        self.tier2_limit = tier2_limit
        self.limit = limit
        self.include_evidence_details = include_evidence_details

    @property
    def name(self) -> str:
        """Return the stage name."""
        return LITERATURE_STAGE

    @property
    def display_name(self) -> str:
        return "Literature Analysis"

    @property
    def description(self) -> str:
        """Return a description of what this stage does."""
        return "Automated literature review"

    def is_active(self, run_context: RunContext) -> bool:
        return run_context.is_enabled(MODULE_LITERATURE) and phenotype_matching_enabled(run_context)

    def gene_worklist(self, context: PipelineContext) -> List[str]:
        return build_gene_worklist(context.get_result(PHENOTYPE_STAGE), self.tier2_limit)

    def skip_reason(self, context: PipelineContext) -> Optional[str]:
        if not context.run_context.hpo_terms:
            return "no patient HPO terms"
        if not self.gene_worklist(context):
            return "no Tier 1/Tier 2 genes to search"
        return None

    async def _trigger(
        self,
        context: PipelineContext,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
    ) -> None:
        genes = self.gene_worklist(context)
        logger.info(f"Literature search genes: {', '.join(genes)}")
        request = build_search_request(
            genes,
            context.run_context.hpo_terms,
            limit=self.limit,
            include_evidence_details=self.include_evidence_details,
        )
        await self.client.search(context.session_id, request, token)

    async def _fetch(
        self,
        context: PipelineContext,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
    ) -> LiteratureResults:
        results = await self.client.get_results(context.session_id, self.gene_worklist(context), token)
        logger.info(f"Literature search returned {len(results.results)} publications")
        return results
