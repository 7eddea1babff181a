"""
Stage - Abstract base class for all pipeline stages.

This module provides the unified Stage abstraction: a stage is both the
static descriptor of a unit of work (name, display metadata, activity
predicate, failure policy) and the executor of its two-phase protocol
against a backend service (trigger the computation, then fetch the result).
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..run_context import RunContext
from .cancellation import CancellationToken
from .context import PipelineContext
from .error_handling import graceful_error_handling

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class StageResult:
    """Successful outcome of a stage's fetch phase."""

    stage_id: str
    data: Any
    elapsed: float = 0.0


class Stage(ABC):
    """Abstract base class for all pipeline stages.

    Each stage declares whether it is active for a run, whether its failure
    is fatal to the pipeline, and implements ``_trigger`` and ``_fetch``.

    The stage execution is handled by ``__call__``, which runs the two
    phases strictly in order, logs execution, tracks timing and converts
    failures into StageError. A stage never changes its own status and
    never publishes its own result; both belong to the runner.
    """

    def __init__(self):
        """Initialize the stage with subtask tracking."""
        self._subtask_times: Dict[str, float] = {}

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for the stage.

        Returns
        -------
        str
            The stage name used for status tracking and logging
        """
        pass

    @property
    def display_name(self) -> str:
        """Short human-readable name shown next to the stage's status."""
        return self.name.replace("_", " ").title()

    @property
    def description(self) -> str:
        """Human-readable description for logging.

        Returns
        -------
        str
            Description of what this stage does
        """
        return f"Stage: {self.name}"

    @property
    def fatal_on_failure(self) -> bool:
        """Whether a failure of this stage aborts the whole pipeline.

        Returns
        -------
        bool
            True if failure is fatal; False if it is downgraded to a warning
        """
        return False

    @property
    def reports_progress(self) -> bool:
        """Whether this stage reports incremental sub-progress while running."""
        return False

    def is_active(self, run_context: RunContext) -> bool:
        """Pure predicate deciding whether the stage runs for ``run_context``.

        Parameters
        ----------
        run_context : RunContext
            Snapshot of the run's configuration

        Returns
        -------
        bool
            True if the stage should execute
        """
        return True

    def validate_prerequisites(self, run_context: RunContext) -> None:
        """Validate run context fields this stage needs.

        Called for every active stage before any stage executes.
        Override in subclasses to add custom validation.

        Raises
        ------
        PreconditionError
            If required fields are missing
        """
        pass

    def skip_reason(self, context: PipelineContext) -> Optional[str]:
        """Return a reason to self-skip once the stage is reached, or None to run.

        Evaluated after all earlier stages have finished, so it may depend
        on their published results.
        """
        return None

    async def __call__(
        self,
        context: PipelineContext,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> StageResult:
        """Execute the trigger phase, then the fetch phase.

        Parameters
        ----------
        context : PipelineContext
            The pipeline context
        token : CancellationToken, optional
            Cancellation signal checked at every suspension point
        progress : callable, optional
            Receives sub-progress values in [0, 100]

        Returns
        -------
        StageResult
            The fetched result and the elapsed time

        Raises
        ------
        StageError
            If either phase fails
        PipelineCancelledError
            If the token is set before the stage finishes
        """
        token = token or CancellationToken()
        logger.info(f"Executing {self.description}")
        start_time = time.time()

        try:
            token.raise_if_cancelled()
            trigger_start = self._start_subtask("trigger")
            with graceful_error_handling(self.name, "trigger", logger):
                await self._trigger(context, token, progress)
            self._end_subtask("trigger", trigger_start)

            token.raise_if_cancelled()
            fetch_start = self._start_subtask("fetch")
            with graceful_error_handling(self.name, "fetch", logger):
                data = await self._fetch(context, token, progress)
            self._end_subtask("fetch", fetch_start)
        except Exception as e:
            elapsed = time.time() - start_time
            logger.error(f"Stage '{self.name}' failed after {elapsed:.1f}s: {e}")
            raise

        elapsed = time.time() - start_time
        logger.debug(f"Stage '{self.name}' finished both phases in {elapsed:.1f}s")
        return StageResult(self.name, data, elapsed)

    @abstractmethod
    async def _trigger(
        self,
        context: PipelineContext,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
    ) -> None:
        """Submit the computation and wait until the backend has finished it."""
        pass

    @abstractmethod
    async def _fetch(
        self,
        context: PipelineContext,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
    ) -> Any:
        """Retrieve the full computed result set for the session.

        Returns
        -------
        Any
            The stage's result, published by the runner once the stage is
            marked completed
        """
        pass

    @staticmethod
    def _report(progress: Optional[ProgressCallback], value: float) -> None:
        if progress is not None:
            progress(value)

    def __repr__(self) -> str:
        """Return string representation of the stage."""
        policy = "fatal" if self.fatal_on_failure else "non-fatal"
        return f"{self.__class__.__name__}(name='{self.name}', {policy})"

    def _start_subtask(self, subtask_name: str) -> float:
        """Start timing a subtask.

        Parameters
        ----------
        subtask_name : str
            Name of the subtask

        Returns
        -------
        float
            Start time for the subtask
        """
        start_time = time.time()
        logger.debug(f"Stage '{self.name}': Starting subtask '{subtask_name}'")
        return start_time

    def _end_subtask(self, subtask_name: str, start_time: float) -> None:
        """End timing a subtask and record duration."""
        elapsed = time.time() - start_time
        self._subtask_times[subtask_name] = elapsed
        logger.debug(f"Stage '{self.name}': Completed subtask '{subtask_name}' in {elapsed:.1f}s")

    @property
    def subtask_times(self) -> Dict[str, float]:
        """Get recorded subtask durations.

        Returns
        -------
        Dict[str, float]
            Dictionary of subtask names to durations in seconds
        """
        return self._subtask_times.copy()
