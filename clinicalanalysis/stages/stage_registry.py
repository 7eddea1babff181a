"""
Stage Registry - The set of stages each pipeline can run.

This module provides a central registry of the available stages, their
display metadata and failure policy, and the pipelines (categories) they
belong to, in execution order. The CLI uses it to list stages and to
resolve stage names and aliases.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Type

from ..pipeline_core.stage import Stage

logger = logging.getLogger(__name__)

CLINICAL_PIPELINE = "clinical"
PROCESSING_PIPELINE = "processing"
REPROCESS_PIPELINE = "reprocess"


@dataclass
class StageInfo:
    """Information about a pipeline stage."""

    name: str
    class_ref: Type[Stage]
    display_name: str
    description: str
    fatal_on_failure: bool
    reports_progress: bool
    pipelines: List[str] = field(default_factory=list)
    aliases: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate stage info after initialization."""
        if not self.name:
            raise ValueError("Stage name cannot be empty")
        if not issubclass(self.class_ref, Stage):
            raise ValueError(f"Class {self.class_ref} must inherit from Stage")

    @property
    def policy(self) -> str:
        return "fatal" if self.fatal_on_failure else "non-fatal"


class StageRegistry:
    """Central registry for all pipeline stages."""

    def __init__(self):
        """Initialize the stage registry."""
        self._stages: Dict[str, StageInfo] = {}
        self._pipelines: Dict[str, List[str]] = defaultdict(list)
        self._aliases: Dict[str, str] = {}
        self._initialized = False

    def register_stage(
        self,
        stage_class: Type[Stage],
        pipelines: List[str],
        aliases: Optional[List[str]] = None,
    ) -> None:
        """Register a stage with the registry.

        Parameters
        ----------
        stage_class : Type[Stage]
            The stage class to register; its constructor takes the service
            client as first argument
        pipelines : List[str]
            Pipelines the stage runs in, appended in registration order
        aliases : Optional[List[str]]
            Alternative names for the stage
        """
        if not issubclass(stage_class, Stage):
            raise ValueError(f"Class {stage_class} must inherit from Stage")

        # Metadata is read from an instance without a client
        instance = stage_class(None)
        stage_name = instance.name

        if stage_name in self._stages:
            raise ValueError(f"Stage '{stage_name}' is already registered")

        aliases = aliases or []
        for alias in aliases:
            if alias in self._aliases:
                existing_stage = self._aliases[alias]
                raise ValueError(f"Alias '{alias}' already maps to stage '{existing_stage}'")
            if alias in self._stages:
                raise ValueError(f"Alias '{alias}' conflicts with stage name")

        self._stages[stage_name] = StageInfo(
            name=stage_name,
            class_ref=stage_class,
            display_name=instance.display_name,
            description=instance.description,
            fatal_on_failure=instance.fatal_on_failure,
            reports_progress=instance.reports_progress,
            pipelines=list(pipelines),
            aliases=aliases,
        )
        for pipeline in pipelines:
            self._pipelines[pipeline].append(stage_name)
        for alias in aliases:
            self._aliases[alias] = stage_name

        logger.debug(f"Registered stage '{stage_name}' in pipelines {pipelines} with aliases {aliases}")

    def get_stage_info(self, stage_name: str) -> Optional[StageInfo]:
        """Get information about a stage.

        Parameters
        ----------
        stage_name : str
            Name or alias of the stage

        Returns
        -------
        Optional[StageInfo]
            Stage information or None if not found
        """
        canonical = self.resolve_stage_name(stage_name)
        return self._stages[canonical] if canonical else None

    def resolve_stage_name(self, stage_name: str) -> Optional[str]:
        """Resolve an alias to the canonical stage name."""
        if stage_name in self._stages:
            return stage_name
        return self._aliases.get(stage_name)

    def get_pipeline_stages(self, pipeline: str) -> List[StageInfo]:
        """Get the stages of a pipeline in execution order.

        Raises
        ------
        KeyError
            If no stage is registered for ``pipeline``
        """
        if pipeline not in self._pipelines:
            raise KeyError(f"Unknown pipeline '{pipeline}'")
        return [self._stages[name] for name in self._pipelines[pipeline]]

    def get_pipelines(self) -> List[str]:
        return list(self._pipelines.keys())

    def stage_exists(self, stage_name: str) -> bool:
        return self.resolve_stage_name(stage_name) is not None

    def get_stage_summary(self, pipeline: Optional[str] = None) -> str:
        """Get a human-readable summary of the registered stages.

        Parameters
        ----------
        pipeline : str, optional
            Restrict the summary to one pipeline

        Returns
        -------
        str
            One block per pipeline, one line per stage
        """
        pipelines = [pipeline] if pipeline else self.get_pipelines()
        lines = ["Stage Registry Summary:"]
        for name in pipelines:
            stages = self.get_pipeline_stages(name)
            lines.append(f"  {name}: {len(stages)} stages")
            for info in stages:
                aliases_str = f" (aliases: {', '.join(info.aliases)})" if info.aliases else ""
                lines.append(
                    f"    - {info.name:18s} {info.display_name:22s} [{info.policy}] "
                    f"{info.description}{aliases_str}"
                )
        return "\n".join(lines)


# Global registry instance
_registry = StageRegistry()


def get_registry() -> StageRegistry:
    """Get the global stage registry, initializing it on first use.

    Returns
    -------
    StageRegistry
        The global registry instance
    """
    initialize_registry()
    return _registry


def initialize_registry() -> None:
    """Initialize the registry with all available stages."""
    if _registry._initialized:
        return

    _register_analysis_stages()
    _register_processing_stages()

    _registry._initialized = True
    logger.debug(f"Stage registry initialized with {len(_registry._stages)} stages")


def _register_analysis_stages():
    """Register the clinical analysis stages in execution order."""
    from .analysis_stages import ClinicalScreeningStage, LiteratureSearchStage, PhenotypeMatchingStage

    _registry.register_stage(PhenotypeMatchingStage, [CLINICAL_PIPELINE], ["phenotype_matching"])
    _registry.register_stage(ClinicalScreeningStage, [CLINICAL_PIPELINE], ["clinical_screening"])
    _registry.register_stage(LiteratureSearchStage, [CLINICAL_PIPELINE], ["literature_search"])


def _register_processing_stages():
    """Register the VCF processing and reprocess stages in execution order."""
    from .processing_stages import SessionReprocessStage, VariantLoadingStage, VcfProcessingStage

    _registry.register_stage(VcfProcessingStage, [PROCESSING_PIPELINE], ["processing"])
    _registry.register_stage(SessionReprocessStage, [REPROCESS_PIPELINE], ["reprocess"])
    _registry.register_stage(
        VariantLoadingStage, [PROCESSING_PIPELINE, REPROCESS_PIPELINE], ["loading"]
    )
