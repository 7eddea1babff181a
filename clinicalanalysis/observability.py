"""
Observability sink for stage and pipeline events.

Every event is logged; events the user should see are also forwarded as a
Notification to an optional notifier (a toast in the dashboard, a log line
on the command line).
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """User-facing notification."""

    level: str  # "info", "success", "warning" or "error"
    title: str
    description: Optional[str] = None


Notifier = Callable[[Notification], None]

# Warnings shown when a non-fatal stage fails, keyed by stage name
DEGRADED_MESSAGES = {
    "phenotype": "Phenotype matching failed - screening will run without phenotype boost",
    "literature": "Literature analysis failed - results will not include publications",
    "variant_loading": "Failed to load variants - continuing anyway, data will load on demand",
}


class ObservabilitySink:
    """Structured log lines and notifications for a run."""

    def __init__(self, notifier: Optional[Notifier] = None):
        self.notifier = notifier

    def _notify(self, level: str, title: str, description: Optional[str] = None) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier(Notification(level, title, description))
        except Exception as e:
            logger.warning(f"Notifier failed for '{title}': {e}")

    def pipeline_started(self, pipeline: str, session_id: str, active_stages) -> None:
        logger.info("=" * 60)
        logger.info(f"{pipeline.upper()} PIPELINE - session {session_id}")
        logger.info(f"Active stages: {', '.join(active_stages) or 'none'}")
        logger.info("=" * 60)

    def stage_started(self, stage_name: str, description: str) -> None:
        logger.info(f"Running {description}")

    def stage_completed(self, stage_name: str, display_name: str, elapsed: float) -> None:
        logger.info(f"Stage '{stage_name}' completed in {elapsed:.1f}s")
        self._notify("success", f"{display_name} complete")

    def stage_skipped(self, stage_name: str, reason: str) -> None:
        logger.info(f"Stage '{stage_name}' skipped: {reason}")

    def stage_degraded(self, stage_name: str, message: str) -> None:
        logger.warning(f"Stage '{stage_name}' failed (non-fatal): {message}")
        self._notify("warning", DEGRADED_MESSAGES.get(stage_name, f"{stage_name} failed"), message)

    def stage_failed(self, stage_name: str, message: str) -> None:
        logger.error(f"Stage '{stage_name}' failed: {message}")

    def pipeline_completed(self, pipeline: str, elapsed: float) -> None:
        logger.info(f"{pipeline.capitalize()} pipeline complete in {elapsed:.1f}s")
        self._notify("success", f"{pipeline.capitalize()} pipeline complete")

    def pipeline_failed(self, pipeline: str, message: str) -> None:
        logger.error(f"{pipeline.capitalize()} pipeline failed: {message}")
        self._notify("error", "Analysis pipeline failed", message)
