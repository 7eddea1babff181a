"""
VCF processing and reprocessing stages.

Both pipelines are single-stream: one fatal backend task (processing a newly
uploaded VCF, or reprocessing a session against updated references)
followed by a non-fatal load of the session's variants.
"""

import logging
from abc import abstractmethod
from typing import Any, Dict, List, Optional

from ..pipeline_core import PipelineContext, Stage
from ..pipeline_core.cancellation import CancellationToken
from ..pipeline_core.stage import ProgressCallback
from ..run_context import RunContext
from ..services import TaskClient, VariantsClient
from ..validators import validate_vcf_path

logger = logging.getLogger(__name__)


class BackendTaskStage(Stage):
    """Start a backend task, wait for it while streaming its progress, then read its result."""

    def __init__(self, client: TaskClient):
        super().__init__()
        self.client = client
        self.task_id: Optional[str] = None

    @property
    def fatal_on_failure(self) -> bool:
        return True

    @property
    def reports_progress(self) -> bool:
        return True

    @abstractmethod
    async def _start_task(self, context: PipelineContext, token: CancellationToken) -> str:
        """Start the backend task and return its id."""
        pass

    async def _trigger(
        self,
        context: PipelineContext,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
    ) -> None:
        self.task_id = await self._start_task(context, token)
        logger.info(f"Stage '{self.name}': waiting for task {self.task_id}")
        await self.client.wait_for_task(self.task_id, token, progress)

    async def _fetch(
        self,
        context: PipelineContext,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
    ) -> Dict[str, Any]:
        status = await self.client.get_status(self.task_id, token)
        result = status.get("result") or {}
        if "variants_parsed" in result:
            logger.info(f"{result['variants_parsed']:,} variants processed")
        return result


class VcfProcessingStage(BackendTaskStage):
    """Parse, filter, annotate and classify the uploaded VCF."""

    @property
    def name(self) -> str:
        """Return the stage name."""
        return "vcf_processing"

    @property
    def display_name(self) -> str:
        return "Backend Processing"

    @property
    def description(self) -> str:
        """Return a description of what this stage does."""
        return "Running ACMG classification pipeline"

    def validate_prerequisites(self, run_context: RunContext) -> None:
        validate_vcf_path(run_context, self.name)

    async def _start_task(self, context: PipelineContext, token: CancellationToken) -> str:
        run_context = context.run_context
        return await self.client.start_processing(
            context.session_id, run_context.vcf_file_path, run_context.filtering_preset, token
        )


class SessionReprocessStage(BackendTaskStage):
    """Re-annotate and re-classify an existing session against current references."""

    @property
    def name(self) -> str:
        """Return the stage name."""
        return "session_reprocess"

    @property
    def display_name(self) -> str:
        return "Reprocessing"

    @property
    def description(self) -> str:
        """Return a description of what this stage does."""
        return "Reprocessing session with updated reference data"

    async def _start_task(self, context: PipelineContext, token: CancellationToken) -> str:
        return await self.client.start_reprocess(context.session_id, token)


class VariantLoadingStage(Stage):
    """Load the processed variants; on failure they load on demand later."""

    def __init__(self, client: VariantsClient):
        super().__init__()
        self.client = client

    @property
    def name(self) -> str:
        """Return the stage name."""
        return "variant_loading"

    @property
    def display_name(self) -> str:
        return "Loading Into Memory"

    @property
    def description(self) -> str:
        """Return a description of what this stage does."""
        return "Loading variants into memory"

    async def _trigger(
        self,
        context: PipelineContext,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
    ) -> None:
        # The preceding task already aggregated variants for loading.
        token.raise_if_cancelled()

    async def _fetch(
        self,
        context: PipelineContext,
        token: CancellationToken,
        progress: Optional[ProgressCallback],
    ) -> List[Dict[str, Any]]:
        return await self.client.load_all(context.session_id, token)
