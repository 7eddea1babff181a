# File: clinicalanalysis/pipelines.py
# Location: clinicalanalysis/clinicalanalysis/pipelines.py

"""
Named pipeline assemblies.

Three pipelines run on the same PipelineRunner:
- clinical: phenotype matching -> clinical screening -> literature search
- processing: VCF processing -> variant loading
- reprocess: session reprocessing -> variant loading
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

import httpx

from .config import get_service_url
from .pipeline_core import PipelineRunner, Stage
from .run_context import RunContext
from .services import LiteratureClient, PhenotypeClient, ScreeningClient, TaskClient, VariantsClient
from .stages import (
    ClinicalScreeningStage,
    LiteratureSearchStage,
    PhenotypeMatchingStage,
    SessionReprocessStage,
    VariantLoadingStage,
    VcfProcessingStage,
)
from .stages.stage_registry import (
    CLINICAL_PIPELINE,
    PROCESSING_PIPELINE,
    REPROCESS_PIPELINE,
    get_registry,
)

logger = logging.getLogger(__name__)


@dataclass
class ServiceClients:
    """The backend clients a pipeline's stages talk to."""

    phenotype: PhenotypeClient
    screening: ScreeningClient
    literature: LiteratureClient
    tasks: TaskClient
    variants: VariantsClient

    @classmethod
    def from_config(cls, http: httpx.AsyncClient, config: Mapping[str, Any]) -> "ServiceClients":
        """Create every client against the base URLs in ``config``."""
        timeout = float(config.get("request_timeout", 600.0))
        return cls(
            phenotype=PhenotypeClient(http, get_service_url(config, "phenotype"), timeout),
            screening=ScreeningClient(http, get_service_url(config, "screening"), timeout),
            literature=LiteratureClient(http, get_service_url(config, "literature"), timeout),
            tasks=TaskClient(
                http,
                get_service_url(config, "tasks"),
                timeout,
                poll_interval=float(config.get("task_poll_interval", 2.0)),
            ),
            variants=VariantsClient(http, get_service_url(config, "variants"), timeout),
        )


def _stage_factories(
    clients: ServiceClients, config: Mapping[str, Any]
) -> Dict[Type[Stage], Callable[[], Stage]]:
    """Map each registered stage class to a constructor bound to its client."""
    literature = config.get("literature", {})
    return {
        PhenotypeMatchingStage: lambda: PhenotypeMatchingStage(clients.phenotype),
        ClinicalScreeningStage: lambda: ClinicalScreeningStage(clients.screening),
        LiteratureSearchStage: lambda: LiteratureSearchStage(
            clients.literature,
            tier2_limit=config.get("worklist", {}).get("tier2_limit", 10),
            limit=literature.get("limit", 50),
            include_evidence_details=literature.get("include_evidence_details", True),
        ),
        VcfProcessingStage: lambda: VcfProcessingStage(clients.tasks),
        SessionReprocessStage: lambda: SessionReprocessStage(clients.tasks),
        VariantLoadingStage: lambda: VariantLoadingStage(clients.variants),
    }


PIPELINES = (CLINICAL_PIPELINE, PROCESSING_PIPELINE, REPROCESS_PIPELINE)


def build_stages(pipeline: str, clients: ServiceClients, config: Mapping[str, Any]) -> List[Stage]:
    """Build the stage sequence of a named pipeline.

    The order comes from the stage registry, so ``clinicalanalysis stages``
    lists exactly what a run executes.

    Raises
    ------
    ValueError
        If ``pipeline`` is not a known pipeline name
    """
    if pipeline not in PIPELINES:
        raise ValueError(
            f"Unknown pipeline '{pipeline}'. Choose one of: {', '.join(sorted(PIPELINES))}"
        )
    factories = _stage_factories(clients, config)
    return [factories[info.class_ref]() for info in get_registry().get_pipeline_stages(pipeline)]


def create_runner(
    pipeline: str,
    clients: ServiceClients,
    config: Dict[str, Any],
    **runner_kwargs: Any,
) -> PipelineRunner:
    """Create a fresh runner for one run of ``pipeline``.

    Parameters
    ----------
    pipeline : str
        One of ``PIPELINES``
    clients : ServiceClients
        Backend clients for the stages
    config : dict
        Loaded configuration
    **runner_kwargs
        Passed through to PipelineRunner (on_complete, on_error, sink)

    Returns
    -------
    PipelineRunner
        A runner that has not been started
    """
    stages = build_stages(pipeline, clients, config)
    logger.debug(f"Assembled {pipeline} pipeline: {[stage.name for stage in stages]}")
    return PipelineRunner(stages, config=config, pipeline_name=pipeline, **runner_kwargs)


def build_run_context(
    session_id: str,
    profile: Mapping[str, Any],
    config: Mapping[str, Any],
    modules: Optional[List[str]] = None,
) -> RunContext:
    """Snapshot a RunContext, taking screening mode and filtering preset from config."""
    return RunContext.from_profile(
        session_id,
        profile,
        enabled_modules=modules,
        screening_mode=config.get("screening", {}).get("mode"),
        filtering_preset=config.get("processing", {}).get("filtering_preset"),
    )
