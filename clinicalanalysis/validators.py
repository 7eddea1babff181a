# File: clinicalanalysis/validators.py
# Location: clinicalanalysis/clinicalanalysis/validators.py

"""
Validation module for clinicalanalysis.

This module provides functions to validate the RunContext fields a stage
needs before any network call is made:
- Demographics (sex plus an age) for clinical screening
- A VCF path for VCF processing

Failures raise PreconditionError, which the runner always treats as fatal.
"""

import logging

from .pipeline_core.error_handling import PreconditionError
from .run_context import RunContext

logger = logging.getLogger(__name__)


def validate_demographics(run_context: RunContext, stage: str) -> None:
    """
    Validate that the run context carries the demographics screening needs.

    Parameters
    ----------
    run_context : RunContext
        Snapshot to validate.
    stage : str
        Name of the stage requiring the fields, for error reporting.

    Raises
    ------
    PreconditionError
        If demographics are absent, sex is missing, or no age is given.
    """
    demographics = run_context.demographics
    if demographics is None:
        raise PreconditionError("Demographics data is required", "demographics", stage)
    if not demographics.sex:
        raise PreconditionError("Patient sex is required for screening", "demographics.sex", stage)
    if demographics.age_years is None and demographics.age_days is None:
        raise PreconditionError(
            "Patient age (years or days) is required for screening", "demographics.age", stage
        )
    logger.debug(f"Demographics validated for session {run_context.session_id}")


def validate_vcf_path(run_context: RunContext, stage: str) -> None:
    """
    Validate that a VCF path was supplied for processing.

    Raises
    ------
    PreconditionError
        If ``vcf_file_path`` is empty.
    """
    if not run_context.vcf_file_path:
        raise PreconditionError("A VCF file path is required for processing", "vcf_file_path", stage)
