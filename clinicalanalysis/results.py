"""
Typed result records returned by the stage fetch phases, and their tabulation.

Phenotype records are tabulated with pandas to rank genes by their best
clinical priority score.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from .tiers import tier_number

logger = logging.getLogger(__name__)

PHENOTYPE_COLUMNS = [
    "gene_symbol",
    "clinical_tier",
    "clinical_priority_score",
    "phenotype_match_score",
]

AGGREGATED_COLUMNS = [
    "rank",
    "gene_symbol",
    "best_clinical_score",
    "best_tier",
    "best_phenotype_score",
    "variant_count",
]

SCREENING_TIERS = ("tier1", "tier2", "tier3", "tier4")


@dataclass(frozen=True)
class PhenotypeMatch:
    """One phenotype-matched variant as returned by the phenotype service."""

    gene_symbol: str
    clinical_tier: str
    clinical_priority_score: float = 0.0
    phenotype_match_score: float = 0.0
    variant_id: Optional[str] = None

    @property
    def tier(self) -> int:
        return tier_number(self.clinical_tier)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "PhenotypeMatch":
        """Build from a service record; ``tier`` is accepted for ``clinical_tier``.

        Raises
        ------
        ValueError
            If the record has no tier classification.
        """
        tier = record.get("clinical_tier", record.get("tier"))
        if tier is None:
            raise ValueError(f"Phenotype record without tier classification: {dict(record)}")
        return cls(
            gene_symbol=record.get("gene_symbol") or "Unknown",
            clinical_tier=str(tier),
            clinical_priority_score=float(record.get("clinical_priority_score") or 0.0),
            phenotype_match_score=float(record.get("phenotype_match_score") or 0.0),
            variant_id=record.get("variant_id"),
        )


def parse_phenotype_results(payload: Any) -> List[PhenotypeMatch]:
    """Parse a phenotype results payload (a list, or an object with ``results``).

    Raises
    ------
    ValueError
        If the payload is neither shape or a record is malformed.
    """
    if isinstance(payload, Mapping):
        payload = payload.get("results")
    if not isinstance(payload, list):
        raise ValueError("Phenotype results payload must be a list of records")
    return [PhenotypeMatch.from_record(record) for record in payload]


def phenotype_frame(matches: Iterable[PhenotypeMatch]) -> pd.DataFrame:
    """Tabulate phenotype matches, one row per record, in input order."""
    rows = [
        {
            "gene_symbol": m.gene_symbol,
            "clinical_tier": m.clinical_tier,
            "clinical_priority_score": m.clinical_priority_score,
            "phenotype_match_score": m.phenotype_match_score,
        }
        for m in matches
    ]
    return pd.DataFrame(rows, columns=PHENOTYPE_COLUMNS)


def aggregate_results_by_gene(matches: Iterable[PhenotypeMatch]) -> pd.DataFrame:
    """Aggregate phenotype matches by gene, ranked by best clinical score.

    For each gene the tier reported is the tier of its highest-scoring
    record (first one on ties).

    Parameters
    ----------
    matches : Iterable[PhenotypeMatch]
        Phenotype records

    Returns
    -------
    pd.DataFrame
        Columns rank, gene_symbol, best_clinical_score, best_tier,
        best_phenotype_score, variant_count
    """
    df = phenotype_frame(matches)
    if df.empty:
        return pd.DataFrame(columns=AGGREGATED_COLUMNS)

    grouped = df.groupby("gene_symbol", sort=False)
    best = df.loc[grouped["clinical_priority_score"].idxmax()].set_index("gene_symbol")
    summary = grouped.agg(
        best_phenotype_score=("phenotype_match_score", "max"),
        variant_count=("clinical_tier", "size"),
    )

    out = pd.DataFrame(
        {
            "best_clinical_score": best["clinical_priority_score"],
            "best_tier": best["clinical_tier"],
        }
    ).join(summary)
    out.index.name = "gene_symbol"
    out = out.sort_values("best_clinical_score", ascending=False, kind="stable")
    out = out.reset_index()
    out.insert(0, "rank", range(1, len(out) + 1))
    logger.debug(f"Aggregated {len(df)} phenotype records into {len(out)} genes")
    return out[AGGREGATED_COLUMNS]


@dataclass
class ScreeningResponse:
    """Screening results assembled from the streamed result set."""

    summary: Dict[str, Any]
    tier1_results: List[Dict[str, Any]] = field(default_factory=list)
    tier2_results: List[Dict[str, Any]] = field(default_factory=list)
    tier3_results: List[Dict[str, Any]] = field(default_factory=list)
    tier4_results: List[Dict[str, Any]] = field(default_factory=list)
    cache_hit: bool = False

    def results_for(self, tier: str) -> List[Dict[str, Any]]:
        return getattr(self, f"{tier}_results")

    def tier_counts(self) -> Dict[str, int]:
        return {tier: len(self.results_for(tier)) for tier in SCREENING_TIERS}

    @property
    def total_results(self) -> int:
        return sum(self.tier_counts().values())

    @staticmethod
    def expected_total(summary: Mapping[str, Any]) -> int:
        return sum(int(summary.get(f"{tier}_count") or 0) for tier in SCREENING_TIERS)


@dataclass
class LiteratureResults:
    """Literature search results for the submitted gene worklist."""

    genes: Sequence[str]
    results: List[Dict[str, Any]] = field(default_factory=list)
    query_summary: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, genes: Sequence[str], payload: Any) -> "LiteratureResults":
        if isinstance(payload, list):
            return cls(genes=list(genes), results=payload)
        if isinstance(payload, Mapping) and isinstance(payload.get("results"), list):
            return cls(
                genes=list(genes),
                results=list(payload["results"]),
                query_summary=dict(payload.get("query_summary") or {}),
            )
        raise ValueError("Literature results payload must be a list or contain 'results'")
