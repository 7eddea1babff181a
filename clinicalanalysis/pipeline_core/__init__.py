"""
Pipeline infrastructure for clinicalanalysis.

This package provides the core abstractions for staged analysis runs:
- PipelineContext: RunContext plus the results published by completed stages
- Stage: Abstract base class for all pipeline stages (descriptor + executor)
- PipelineRunner: Runs stages in order and owns status, progress and outcome
- CancellationToken: Cooperative cancellation threaded through every stage
"""

from .cancellation import CancellationToken
from .context import PipelineContext
from .progress import compute_progress
from .runner import PipelineRunner
from .stage import Stage, StageResult
from .status import PipelineOutcome, PipelineState, PipelineView, StageStatus

__all__ = [
    "CancellationToken",
    "PipelineContext",
    "PipelineOutcome",
    "PipelineRunner",
    "PipelineState",
    "PipelineView",
    "Stage",
    "StageResult",
    "StageStatus",
    "compute_progress",
]

# Version of the pipeline infrastructure
__version__ = "1.0.0"
