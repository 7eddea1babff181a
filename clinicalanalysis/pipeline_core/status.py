"""
Status types shared by the runner and its host.

StageStatus is the per-stage lifecycle, PipelineState the run-level state
machine, PipelineOutcome the terminal value of a run and PipelineView the
read-only snapshot handed to hosts and listeners.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class StageStatus(str, Enum):
    """Lifecycle of one stage within a run: pending -> running -> terminal."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Return True for completed, skipped and failed."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({StageStatus.COMPLETED, StageStatus.SKIPPED, StageStatus.FAILED})


class PipelineState(str, Enum):
    """Run-level state of a runner."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHED = "finished"


@dataclass(frozen=True)
class PipelineOutcome:
    """Terminal value of a run, delivered exactly once."""

    success: bool
    message: Optional[str] = None
    error: Optional[Exception] = field(default=None, compare=False)

    @classmethod
    def succeeded(cls) -> "PipelineOutcome":
        return cls(success=True)

    @classmethod
    def failed(cls, message: str, error: Optional[Exception] = None) -> "PipelineOutcome":
        return cls(success=False, message=message, error=error)

    def __str__(self) -> str:
        return "success" if self.success else f"failure({self.message})"


@dataclass(frozen=True)
class PipelineView:
    """Read-only snapshot of a run.

    Attributes
    ----------
    state : PipelineState
        Run-level state
    stage_statuses : Mapping[str, StageStatus]
        Status of every stage, in pipeline order
    current_stage : str or None
        Stage currently running
    progress : int
        Blended progress, 0..100
    outcome : PipelineOutcome or None
        Terminal outcome once the run has finished
    """

    state: PipelineState
    stage_statuses: Mapping[str, StageStatus]
    current_stage: Optional[str]
    progress: int
    outcome: Optional[PipelineOutcome] = None

    def __post_init__(self):
        object.__setattr__(self, "stage_statuses", MappingProxyType(dict(self.stage_statuses)))

    @property
    def is_finished(self) -> bool:
        return self.state is PipelineState.FINISHED
