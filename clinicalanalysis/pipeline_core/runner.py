"""
PipelineRunner - Executes stages in a fixed order and owns the run's state.

This module provides the PipelineRunner class that orchestrates one run of
a pipeline: it guards against starting twice, executes the active stages
strictly one after another, owns the stage status map, dispatches stage
failures according to each stage's declared policy, and delivers a single
terminal outcome to its host.
"""

import asyncio
import logging
import time
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..observability import ObservabilitySink
from ..run_context import RunContext
from .cancellation import CancellationToken
from .context import PipelineContext
from .error_handling import (
    DegradedStageWarning,
    FatalPipelineError,
    PipelineCancelledError,
    PipelineError,
    PreconditionError,
    StageError,
)
from .progress import compute_progress
from .stage import ProgressCallback, Stage
from .status import PipelineOutcome, PipelineState, PipelineView, StageStatus

logger = logging.getLogger(__name__)

Listener = Callable[[PipelineView], None]


class PipelineRunner:
    """Run controller for one pipeline run.

    The runner moves through NotStarted -> Running(stage) -> Finished(outcome).
    ``start`` may be invoked any number of times; the stage sequence runs
    exactly once per instance and every call receives the same outcome.
    Re-running requires a fresh runner.

    Attributes
    ----------
    pipeline_name : str
        Name used in log lines and notifications
    config : Dict[str, Any]
        Configuration handed to stages through the context
    context : PipelineContext or None
        Context of the run, created by ``start``
    """

    def __init__(
        self,
        stages: Sequence[Stage],
        config: Optional[Dict[str, Any]] = None,
        on_complete: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        sink: Optional[ObservabilitySink] = None,
        pipeline_name: str = "analysis",
    ):
        """Initialize the runner.

        Parameters
        ----------
        stages : Sequence[Stage]
            Stages in execution order
        config : dict, optional
            Configuration shared with stages
        on_complete : callable, optional
            Called once when the run succeeds
        on_error : callable, optional
            Called once with the error when the run fails
        sink : ObservabilitySink, optional
            Receives stage and pipeline events
        pipeline_name : str
            Name used in log lines and notifications

        Raises
        ------
        ValueError
            If two stages share a name
        """
        names = [stage.name for stage in stages]
        if len(set(names)) != len(names):
            raise ValueError("Duplicate stage names detected")

        self.pipeline_name = pipeline_name
        self.config = config or {}
        self.on_complete = on_complete
        self.on_error = on_error
        self.sink = sink or ObservabilitySink()
        self.context: Optional[PipelineContext] = None

        self._stages: List[Stage] = list(stages)
        self._statuses: Dict[str, StageStatus] = {name: StageStatus.PENDING for name in names}
        self._state = PipelineState.NOT_STARTED
        self._current_stage: Optional[str] = None
        self._active: List[str] = []
        self._sub_progress: Optional[Tuple[str, float]] = None
        self._outcome: Optional[PipelineOutcome] = None
        self._warnings: List[DegradedStageWarning] = []
        self._listeners: List[Listener] = []
        self._execution_times: Dict[str, float] = {}
        self._subtask_times: Dict[str, Dict[str, float]] = {}
        self._started = False
        self._run_task: Optional["asyncio.Future[PipelineOutcome]"] = None

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def stages(self) -> List[Stage]:
        return list(self._stages)

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def stage_statuses(self) -> Mapping[str, StageStatus]:
        return MappingProxyType(self._statuses)

    @property
    def current_stage(self) -> Optional[str]:
        return self._current_stage

    @property
    def active_stage_ids(self) -> List[str]:
        return list(self._active)

    @property
    def outcome(self) -> Optional[PipelineOutcome]:
        return self._outcome

    @property
    def warnings(self) -> List[DegradedStageWarning]:
        return list(self._warnings)

    @property
    def progress(self) -> int:
        if self._state is PipelineState.NOT_STARTED:
            return 0
        return compute_progress(self._statuses, self._active, self._sub_progress)

    @property
    def view(self) -> PipelineView:
        """Snapshot of statuses, current stage, progress and outcome."""
        return PipelineView(
            state=self._state,
            stage_statuses=self._statuses,
            current_stage=self._current_stage,
            progress=self.progress,
            outcome=self._outcome,
        )

    def add_listener(self, listener: Listener) -> None:
        """Register a callable receiving a fresh view on every change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def plan(self, run_context: RunContext) -> List[str]:
        """Return the names of the stages active for ``run_context``, in order."""
        return [stage.name for stage in self._stages if stage.is_active(run_context)]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def start(
        self, run_context: RunContext, token: Optional[CancellationToken] = None
    ) -> PipelineOutcome:
        """Start the run, or join it if it was already started.

        The guard is checked and set before the first suspension point, so
        re-entrant calls scheduled on the same event loop can never start a
        second sequence.

        Parameters
        ----------
        run_context : RunContext
            Snapshot of the run's configuration; ignored on re-entrant calls
        token : CancellationToken, optional
            Cancellation signal threaded through every stage

        Returns
        -------
        PipelineOutcome
            Terminal outcome of the run
        """
        if not self._started:
            self._started = True
            self._run_task = asyncio.ensure_future(
                self._run(run_context, token or CancellationToken())
            )
        else:
            logger.debug(f"{self.pipeline_name} pipeline already started, joining the existing run")
        return await asyncio.shield(self._run_task)

    async def _run(self, run_context: RunContext, token: CancellationToken) -> PipelineOutcome:
        start_time = time.time()
        self.context = PipelineContext(run_context=run_context, config=self.config)
        self._state = PipelineState.RUNNING
        self._active = [stage.name for stage in self._stages if stage.is_active(run_context)]

        self.sink.pipeline_started(self.pipeline_name, run_context.session_id, self._active)
        self._notify_listeners()

        try:
            for stage in self._stages:
                if stage.name in self._active:
                    stage.validate_prerequisites(run_context)
        except PreconditionError as e:
            return self._finish(PipelineOutcome.failed(str(e), e), start_time)

        for stage in self._stages:
            try:
                await self._run_stage(stage, token)
            except FatalPipelineError as e:
                return self._finish(PipelineOutcome.failed(str(e), e), start_time)
            except PipelineCancelledError as e:
                return self._finish(PipelineOutcome.failed(str(e), e), start_time)

        return self._finish(PipelineOutcome.succeeded(), start_time)

    async def _run_stage(self, stage: Stage, token: CancellationToken) -> None:
        """Drive one stage from pending to a terminal status.

        Raises
        ------
        FatalPipelineError
            If the stage failed and declares its failure fatal
        PipelineCancelledError
            If the run was cancelled while the stage was running
        """
        if stage.name not in self._active:
            self._set_status(stage.name, StageStatus.SKIPPED)
            self.sink.stage_skipped(stage.name, "not active for this run")
            return

        token.raise_if_cancelled()

        reason = stage.skip_reason(self.context)
        if reason:
            self._set_status(stage.name, StageStatus.SKIPPED)
            self.sink.stage_skipped(stage.name, reason)
            return

        self._current_stage = stage.name
        self._set_status(stage.name, StageStatus.RUNNING)
        self.sink.stage_started(stage.name, stage.description)

        progress = self._progress_callback(stage.name) if stage.reports_progress else None

        try:
            result = await stage(self.context, token, progress)
        except PipelineCancelledError:
            self._end_stage(stage, StageStatus.FAILED)
            self.sink.stage_failed(stage.name, "cancelled")
            raise
        except Exception as e:
            error = e if isinstance(e, StageError) else StageError(stage.name, e)
            self._end_stage(stage, StageStatus.FAILED)

            if stage.fatal_on_failure:
                self.sink.stage_failed(stage.name, str(error))
                raise FatalPipelineError(f"{stage.display_name} failed: {error.cause}", stage.name) from error

            self._warnings.append(DegradedStageWarning(stage.name, str(error)))
            self.sink.stage_degraded(stage.name, str(error))
            return

        self._execution_times[stage.name] = result.elapsed
        if stage.subtask_times:
            self._subtask_times[stage.name] = stage.subtask_times

        # Completed first, then published, with no suspension point in between.
        self._sub_progress = None
        self._statuses[stage.name] = StageStatus.COMPLETED
        self.context.publish(stage.name, result.data)
        self._current_stage = None
        self.sink.stage_completed(stage.name, stage.display_name, result.elapsed)
        self._notify_listeners()

    def _end_stage(self, stage: Stage, status: StageStatus) -> None:
        self._sub_progress = None
        self._current_stage = None
        self._set_status(stage.name, status)

    def _progress_callback(self, stage_name: str) -> ProgressCallback:
        def report(percent: float) -> None:
            if self._statuses.get(stage_name) is not StageStatus.RUNNING:
                return
            value = min(max(float(percent), 0.0), 100.0)
            if self._sub_progress is not None and self._sub_progress[0] == stage_name:
                if value <= self._sub_progress[1]:
                    return
            self._sub_progress = (stage_name, value)
            self._notify_listeners()

        return report

    def _set_status(self, stage_name: str, status: StageStatus) -> None:
        current = self._statuses[stage_name]
        if current.is_terminal:
            raise RuntimeError(
                f"Stage '{stage_name}' is already {current.value}; cannot move to {status.value}"
            )
        self._statuses[stage_name] = status
        logger.debug(f"Stage '{stage_name}': {current.value} -> {status.value}")
        self._notify_listeners()

    def _finish(self, outcome: PipelineOutcome, start_time: float) -> PipelineOutcome:
        self._state = PipelineState.FINISHED
        self._current_stage = None
        self._sub_progress = None
        self._outcome = outcome

        total_time = time.time() - start_time
        self._log_execution_summary()

        if outcome.success:
            self.sink.pipeline_completed(self.pipeline_name, total_time)
        else:
            self.sink.pipeline_failed(self.pipeline_name, outcome.message or "unknown error")
        self._notify_listeners()

        try:
            if outcome.success:
                if self.on_complete is not None:
                    self.on_complete()
            elif self.on_error is not None:
                self.on_error(outcome.error or PipelineError(outcome.message or "failed"))
        except Exception as e:
            logger.error(f"Completion callback raised: {e}", exc_info=True)

        return outcome

    def _notify_listeners(self) -> None:
        if not self._listeners:
            return
        view = self.view
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception as e:
                logger.warning(f"Pipeline listener failed: {e}")

    def _log_execution_summary(self) -> None:
        """Log stage statuses and execution times."""
        logger.info("=" * 60)
        logger.info(f"{self.pipeline_name.capitalize()} Pipeline Summary")
        logger.info("=" * 60)

        for stage in self._stages:
            status = self._statuses[stage.name].value
            elapsed = self._execution_times.get(stage.name)
            timing = f"{elapsed:6.1f}s" if elapsed is not None else "      -"
            logger.info(f"{stage.name:30s} {status:10s} {timing}")

            for subtask_name, subtask_elapsed in self._subtask_times.get(stage.name, {}).items():
                logger.info(f"  └─ {subtask_name:26s} {'':10s} {subtask_elapsed:6.1f}s")

        total_time = sum(self._execution_times.values())
        logger.info("-" * 60)
        logger.info(f"{'Total stage time:':41s} {total_time:6.1f}s")
        logger.info("=" * 60)
