"""Tests for the VCF processing and reprocess stages."""

from unittest.mock import AsyncMock, Mock

import pytest

from clinicalanalysis.pipeline_core import PipelineContext
from clinicalanalysis.pipeline_core.error_handling import PreconditionError, ServiceError, StageError
from clinicalanalysis.run_context import RunContext
from clinicalanalysis.stages import SessionReprocessStage, VariantLoadingStage, VcfProcessingStage


@pytest.fixture
def task_client():
    client = Mock()
    client.start_processing = AsyncMock(return_value="t-1")
    client.start_reprocess = AsyncMock(return_value="t-2")
    client.wait_for_task = AsyncMock(return_value={"ready": True})
    client.get_status = AsyncMock(
        return_value={"ready": True, "successful": True, "result": {"variants_parsed": 1200}}
    )
    return client


@pytest.fixture
def processing_context():
    return PipelineContext(
        run_context=RunContext("s1", vcf_file_path="/data/s1.vcf.gz", filtering_preset="lenient")
    )


@pytest.mark.unit
class TestVcfProcessingStage:
    def test_metadata(self):
        stage = VcfProcessingStage(None)
        assert stage.name == "vcf_processing"
        assert stage.fatal_on_failure
        assert stage.reports_progress

    def test_requires_vcf_path(self):
        with pytest.raises(PreconditionError):
            VcfProcessingStage(None).validate_prerequisites(RunContext("s1"))

    @pytest.mark.asyncio
    async def test_starts_waits_and_reads_result(self, processing_context, task_client):
        stage = VcfProcessingStage(task_client)
        progress = Mock()

        result = await stage(processing_context, progress=progress)

        args = task_client.start_processing.await_args.args
        assert args[:3] == ("s1", "/data/s1.vcf.gz", "lenient")
        assert task_client.wait_for_task.await_args.args[0] == "t-1"
        assert task_client.wait_for_task.await_args.args[2] is progress
        assert stage.task_id == "t-1"
        assert result.data == {"variants_parsed": 1200}

    @pytest.mark.asyncio
    async def test_failed_task(self, processing_context, task_client):
        task_client.wait_for_task.side_effect = ServiceError("tasks", "VEP crashed")

        with pytest.raises(StageError, match="VEP crashed"):
            await VcfProcessingStage(task_client)(processing_context)

        task_client.get_status.assert_not_awaited()


@pytest.mark.unit
class TestSessionReprocessStage:
    @pytest.mark.asyncio
    async def test_reprocess(self, task_client):
        context = PipelineContext(run_context=RunContext("s1"))
        stage = SessionReprocessStage(task_client)

        stage.validate_prerequisites(context.run_context)
        result = await stage(context)

        task_client.start_reprocess.assert_awaited_once()
        assert stage.task_id == "t-2"
        assert result.data == {"variants_parsed": 1200}
        assert stage.fatal_on_failure


@pytest.mark.unit
class TestVariantLoadingStage:
    @pytest.mark.asyncio
    async def test_loads_variants(self):
        client = Mock()
        client.load_all = AsyncMock(return_value=[{"id": 1}])
        stage = VariantLoadingStage(client)

        result = await stage(PipelineContext(run_context=RunContext("s1")))

        assert result.data == [{"id": 1}]
        assert not stage.fatal_on_failure
        assert stage.display_name == "Loading Into Memory"
