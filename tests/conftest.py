"""Shared pytest fixtures for all test modules."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from clinicalanalysis.config import load_config
from clinicalanalysis.pipeline_core import PipelineContext, Stage
from clinicalanalysis.run_context import Demographics, HpoTerm, RunContext


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without network access")
    config.addinivalue_line("markers", "integration: full pipeline runs against mocked backends")


class ScriptedStage(Stage):
    """Stage whose behaviour is scripted by the test.

    ``fail_in`` selects the phase that raises ("trigger" or "fetch"),
    ``gate`` is an asyncio.Event the trigger phase waits on, and
    ``ticks`` are sub-progress values reported during the fetch phase.
    """

    def __init__(
        self,
        name: str,
        result: Any = None,
        fatal: bool = False,
        active: bool = True,
        fail_in: Optional[str] = None,
        error: Optional[Exception] = None,
        progress_ticks: Optional[List[float]] = None,
        gate: Optional[asyncio.Event] = None,
        skip: Optional[str] = None,
    ):
        super().__init__()
        self._name = name
        self.result = result
        self.fatal = fatal
        self.active = active
        self.fail_in = fail_in
        self.error = error or RuntimeError(f"{name} backend unavailable")
        self.ticks = progress_ticks or []
        self.gate = gate
        self.skip = skip
        self.calls: List[str] = []
        self.seen_results: Dict[str, Any] = {}

    @property
    def name(self) -> str:
        """Return the stage name."""
        return self._name

    @property
    def fatal_on_failure(self) -> bool:
        return self.fatal

    @property
    def reports_progress(self) -> bool:
        return bool(self.ticks)

    def is_active(self, run_context: RunContext) -> bool:
        return self.active

    def skip_reason(self, context: PipelineContext) -> Optional[str]:
        return self.skip

    async def _trigger(self, context, token, progress):
        self.calls.append("trigger")
        self.seen_results = dict(context.stage_results)
        if self.gate is not None:
            await token.guard(self.gate.wait())
        if self.fail_in == "trigger":
            raise self.error

    async def _fetch(self, context, token, progress):
        self.calls.append("fetch")
        for tick in self.ticks:
            self._report(progress, tick)
            await asyncio.sleep(0)
        if self.fail_in == "fetch":
            raise self.error
        return self.result


@pytest.fixture
def config() -> Dict[str, Any]:
    """Packaged default configuration."""
    return load_config()


@pytest.fixture
def run_context() -> RunContext:
    """Run context with demographics, two HPO terms and every module enabled."""
    return RunContext(
        session_id="session-123",
        hpo_terms=(HpoTerm("HP:0001250", "Seizure"), HpoTerm("HP:0001263", "Global developmental delay")),
        demographics=Demographics(sex="female", age_years=34),
        ethnicity="european",
        indication="Epilepsy",
    )


@pytest.fixture
def clinical_profile() -> Dict[str, Any]:
    """Clinical profile document in the dashboard layout."""
    return {
        "demographics": {"age_years": 7, "sex": "male"},
        "ethnicity": {"primary": "ashkenazi_jewish"},
        "clinical_context": {
            "indication": "Developmental delay",
            "family_history": {"has_affected_relatives": True, "consanguinity": False},
        },
        "phenotype": {
            "hpo_terms": [
                {"hpo_id": "HP:0001250", "name": "Seizure"},
                "HP:0001263",
            ]
        },
        "sample_info": {"sample_type": "blood", "has_parental_samples": True},
        "reproductive": {"is_pregnant": False},
    }


@pytest.fixture
def phenotype_records() -> List[Dict[str, Any]]:
    """Phenotype service records covering every tier, with a repeated gene."""
    return [
        {"gene_symbol": "SCN1A", "clinical_tier": "Tier 1 - Actionable",
         "clinical_priority_score": 92.5, "phenotype_match_score": 0.91},
        {"gene_symbol": "KCNQ2", "clinical_tier": "Tier 2 - Potentially Actionable",
         "clinical_priority_score": 71.0, "phenotype_match_score": 0.64},
        {"gene_symbol": "BRCA2", "clinical_tier": "IF - Incidental Finding",
         "clinical_priority_score": 55.0, "phenotype_match_score": 0.0},
        {"gene_symbol": "SCN1A", "clinical_tier": "Tier 2 - Potentially Actionable",
         "clinical_priority_score": 60.0, "phenotype_match_score": 0.95},
        {"gene_symbol": "TTN", "clinical_tier": "Tier 4 - Unlikely",
         "clinical_priority_score": 5.0, "phenotype_match_score": 0.1},
    ]
