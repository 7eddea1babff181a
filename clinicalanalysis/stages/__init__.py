"""
Pipeline stages for clinicalanalysis.

This package contains all stage implementations organized by pipeline:
- analysis_stages: Phenotype matching, clinical screening and literature search
- processing_stages: VCF processing, session reprocessing and variant loading
- stage_registry: Display metadata and pipeline membership of every stage
"""

from .analysis_stages import (
    ClinicalScreeningStage,
    LiteratureSearchStage,
    PhenotypeMatchingStage,
    build_screening_payload,
)
from .processing_stages import SessionReprocessStage, VariantLoadingStage, VcfProcessingStage
from .stage_registry import StageInfo, StageRegistry, get_registry

__all__ = [
    "ClinicalScreeningStage",
    "LiteratureSearchStage",
    "PhenotypeMatchingStage",
    "SessionReprocessStage",
    "StageInfo",
    "StageRegistry",
    "VariantLoadingStage",
    "VcfProcessingStage",
    "build_screening_payload",
    "get_registry",
]
