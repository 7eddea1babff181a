"""
PipelineContext - the run's immutable configuration plus published stage results.

This module provides the PipelineContext dataclass that is handed to every
stage. The RunContext inside it never changes; stage results become visible
only after the runner has marked the producing stage completed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..run_context import RunContext

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """Container for a run's configuration and published data.

    Attributes
    ----------
    run_context : RunContext
        Immutable snapshot taken at pipeline start
    config : Dict[str, Any]
        Loaded configuration (service URLs, limits)
    start_time : datetime
        Pipeline execution start time
    stage_results : Dict[str, Any]
        Results published by completed stages, keyed by stage name
    """

    run_context: RunContext
    config: Dict[str, Any] = field(default_factory=dict)
    start_time: datetime = field(default_factory=datetime.now)
    stage_results: Dict[str, Any] = field(default_factory=dict)

    @property
    def session_id(self) -> str:
        return self.run_context.session_id

    def publish(self, stage_name: str, result: Any) -> None:
        """Publish a completed stage's result for downstream consumers.

        Parameters
        ----------
        stage_name : str
            Name of the completed stage
        result : Any
            The stage's fetched result
        """
        self.stage_results[stage_name] = result
        logger.debug(f"Published result of stage '{stage_name}'")

    def get_result(self, stage_name: str) -> Optional[Any]:
        """Get the published result of a stage, or None if it did not complete.

        Parameters
        ----------
        stage_name : str
            Name of the stage

        Returns
        -------
        Any or None
            The published result
        """
        return self.stage_results.get(stage_name)

    def has_result(self, stage_name: str) -> bool:
        return stage_name in self.stage_results

    def get_execution_time(self) -> float:
        """Get the elapsed execution time in seconds."""
        return (datetime.now() - self.start_time).total_seconds()

    def __repr__(self) -> str:
        """Return string representation showing key state information."""
        return (
            f"PipelineContext("
            f"session={self.session_id}, "
            f"published={sorted(self.stage_results)}, "
            f"execution_time={self.get_execution_time():.1f}s)"
        )
