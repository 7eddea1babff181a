"""
Background task client for the VCF processing and reprocessing pipelines.

The backend runs these as queued tasks: a start call returns a task id and
the task's status endpoint reports ``ready``/``successful``/``failed`` plus
an ``info`` block carrying ``progress`` (0..100), ``stage`` and, on
failure, ``error``.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from ..pipeline_core.cancellation import CancellationToken
from ..pipeline_core.error_handling import ServiceError
from .client import ServiceClient

logger = logging.getLogger(__name__)


class TaskClient(ServiceClient):
    """Start backend tasks and wait for them to finish."""

    service = "tasks"

    def __init__(self, http, base_url: str, timeout: float = 600.0, poll_interval: float = 2.0):
        super().__init__(http, base_url, timeout)
        self.poll_interval = poll_interval

    async def start_processing(
        self,
        session_id: str,
        vcf_file_path: str,
        filtering_preset: str = "strict",
        token: Optional[CancellationToken] = None,
    ) -> str:
        url = f"{self.base_url}/tasks/pipeline/start/{session_id}"
        body = {"vcf_file_path": vcf_file_path, "filtering_preset": filtering_preset}
        return self._task_id(await self._request("POST", url, token, json=body))

    async def start_reprocess(
        self, session_id: str, token: Optional[CancellationToken] = None
    ) -> str:
        url = f"{self.base_url}/tasks/reprocess/{session_id}"
        return self._task_id(await self._request("POST", url, token, json={}))

    async def get_status(
        self, task_id: str, token: Optional[CancellationToken] = None
    ) -> Dict[str, Any]:
        status = await self._request("GET", f"{self.base_url}/tasks/{task_id}/status", token)
        if not isinstance(status, dict):
            raise ServiceError(self.service, f"Malformed status for task {task_id}")
        return status

    async def wait_for_task(
        self,
        task_id: str,
        token: Optional[CancellationToken] = None,
        progress: Optional[Callable[[float], None]] = None,
    ) -> Dict[str, Any]:
        """Poll a task until it is ready.

        Returns
        -------
        dict
            The final status document of a successful task

        Raises
        ------
        ServiceError
            If the task reports failure
        """
        token = token or CancellationToken()
        last_stage = None
        while True:
            status = await self.get_status(task_id, token)
            info = status.get("info") or {}

            if info.get("stage") and info.get("stage") != last_stage:
                last_stage = info["stage"]
                logger.info(f"Task {task_id}: {last_stage}")
            if progress is not None and isinstance(info.get("progress"), (int, float)):
                progress(float(info["progress"]))

            if status.get("ready"):
                if status.get("failed") or not status.get("successful", True):
                    raise ServiceError(self.service, info.get("error") or "Processing failed")
                return status

            await token.guard(asyncio.sleep(self.poll_interval))

    def _task_id(self, payload: Any) -> str:
        if not isinstance(payload, dict) or not payload.get("task_id"):
            raise ServiceError(self.service, "Start response carried no task_id")
        logger.debug(f"Started task {payload['task_id']}")
        return payload["task_id"]
