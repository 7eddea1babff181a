"""
Error taxonomy for the analysis pipeline.

This module provides:
- Custom exception classes for the different failure kinds of a run
- A context manager that converts unexpected exceptions inside a stage
  phase into StageError

Errors are never retried automatically within a run; the only recovery
path is constructing a fresh runner and starting again.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, stage: Optional[str] = None, details: Optional[Dict] = None):
        """Initialize pipeline error.

        Parameters
        ----------
        message : str
            Error message
        stage : str, optional
            Stage where error occurred
        details : dict, optional
            Additional error details
        """
        super().__init__(message)
        self.stage = stage
        self.details = details or {}


class ServiceError(PipelineError):
    """Raised by a backend client on network failure, non-2xx status or a malformed body."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        """Initialize service error."""
        super().__init__(
            f"{service} service: {message}",
            details={"service": service, "status_code": status_code},
        )
        self.service = service
        self.status_code = status_code


class StageError(PipelineError):
    """Raised by a stage when its trigger or fetch phase fails."""

    def __init__(self, stage_id: str, cause: Exception):
        """Initialize stage error."""
        message = f"Stage '{stage_id}' failed: {cause}"
        super().__init__(
            message,
            stage_id,
            {"cause": str(cause), "error_type": type(cause).__name__},
        )
        self.stage_id = stage_id
        self.cause = cause


class FatalPipelineError(PipelineError):
    """A StageError on a stage whose failure aborts the whole run."""


class PreconditionError(PipelineError):
    """Raised before any stage executes when required run context fields are missing."""

    def __init__(self, message: str, field: str, stage: Optional[str] = None):
        """Initialize precondition error."""
        super().__init__(message, stage, {"field": field})
        self.field = field


class PipelineCancelledError(PipelineError):
    """Raised at a suspension point once the run's cancellation token is set."""

    def __init__(self, reason: str = "cancelled", stage: Optional[str] = None):
        """Initialize cancellation error."""
        super().__init__(f"Pipeline cancelled: {reason}", stage, {"reason": reason})
        self.reason = reason


class DegradedStageWarning(UserWarning):
    """A StageError on a non-fatal stage; the run continues without that stage's data."""

    def __init__(self, stage_id: str, message: str):
        """Initialize degraded stage warning."""
        super().__init__(message)
        self.stage_id = stage_id
        self.message = message


@contextmanager
def graceful_error_handling(stage_name: str, phase: str, logger: Optional[logging.Logger] = None):
    """Context manager for error handling around a stage phase.

    Pipeline errors other than ServiceError and cancellation pass through
    untouched; everything else is logged and re-raised as StageError.

    Parameters
    ----------
    stage_name : str
        Name of the stage for error reporting
    phase : str
        Phase being executed ("trigger" or "fetch")
    logger : logging.Logger, optional
        Logger instance

    Examples
    --------
    >>> with graceful_error_handling("screening", "fetch"):
    ...     # phase code
    ...     pass
    """
    _logger = logger or logging.getLogger(__name__)

    try:
        yield
    except (PipelineCancelledError, asyncio.CancelledError):
        raise
    except StageError:
        raise
    except ServiceError as e:
        _logger.error(f"{phase.capitalize()} failed in {stage_name}: {e}")
        raise StageError(stage_name, e)
    except PipelineError:
        raise
    except Exception as e:
        _logger.error(f"Unexpected error during {phase} in {stage_name}: {e}", exc_info=True)
        raise StageError(stage_name, e)
