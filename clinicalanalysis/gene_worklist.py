"""Inter-stage data router: phenotype output -> literature gene worklist."""

import logging
from typing import List, Optional, Sequence

from .results import PhenotypeMatch
from .tiers import is_tier1, is_tier2

logger = logging.getLogger(__name__)

DEFAULT_TIER2_LIMIT = 10


def build_gene_worklist(
    phenotype_results: Optional[Sequence[PhenotypeMatch]],
    tier2_limit: int = DEFAULT_TIER2_LIMIT,
) -> List[str]:
    """Build the ordered gene list submitted to literature search.

    All Tier-1 genes in input order, followed by the first ``tier2_limit``
    Tier-2 genes in input order. Duplicates are kept.

    Parameters
    ----------
    phenotype_results : Sequence[PhenotypeMatch] or None
        Phenotype stage output; None when that stage was skipped or failed
    tier2_limit : int
        Maximum number of Tier-2 entries

    Returns
    -------
    List[str]
        Gene symbols; empty when there is nothing to search
    """
    if not phenotype_results:
        return []

    tier1 = [r.gene_symbol for r in phenotype_results if is_tier1(r.tier)]
    tier2 = [r.gene_symbol for r in phenotype_results if is_tier2(r.tier)]
    worklist = tier1 + tier2[: max(tier2_limit, 0)]

    logger.debug(
        f"Gene worklist: {len(tier1)} Tier-1, {min(len(tier2), max(tier2_limit, 0))} "
        f"of {len(tier2)} Tier-2"
    )
    return worklist
