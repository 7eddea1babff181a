"""Unit tests for the Stage base class."""

import pytest

from conftest import ScriptedStage

from clinicalanalysis.pipeline_core import CancellationToken, PipelineContext, StageResult
from clinicalanalysis.pipeline_core.error_handling import PipelineCancelledError, StageError


@pytest.fixture
def context(run_context):
    """Create a test context."""
    return PipelineContext(run_context=run_context)


@pytest.mark.unit
class TestStage:
    """Test suite for the two-phase stage protocol."""

    @pytest.mark.asyncio
    async def test_trigger_runs_before_fetch(self, context):
        stage = ScriptedStage("phenotype", result=["SCN1A"])

        result = await stage(context)

        assert stage.calls == ["trigger", "fetch"]
        assert isinstance(result, StageResult)
        assert result.stage_id == "phenotype"
        assert result.data == ["SCN1A"]
        assert result.elapsed >= 0

    @pytest.mark.asyncio
    async def test_phases_are_timed(self, context):
        stage = ScriptedStage("screening")

        await stage(context)

        assert set(stage.subtask_times) == {"trigger", "fetch"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("phase", ["trigger", "fetch"])
    async def test_failure_raises_stage_error(self, context, phase):
        stage = ScriptedStage("literature", fail_in=phase, error=ConnectionError("refused"))

        with pytest.raises(StageError) as exc_info:
            await stage(context)

        assert exc_info.value.stage_id == "literature"
        assert isinstance(exc_info.value.cause, ConnectionError)
        if phase == "trigger":
            assert stage.calls == ["trigger"]

    @pytest.mark.asyncio
    async def test_cancelled_token_stops_before_trigger(self, context):
        token = CancellationToken()
        token.cancel("navigated away")
        stage = ScriptedStage("screening")

        with pytest.raises(PipelineCancelledError):
            await stage(context, token)

        assert stage.calls == []

    @pytest.mark.asyncio
    async def test_progress_is_forwarded(self, context):
        seen = []
        stage = ScriptedStage("screening", progress_ticks=[10, 50, 100])

        await stage(context, progress=seen.append)

        assert seen == [10, 50, 100]

    def test_metadata_defaults(self):
        stage = ScriptedStage("variant_loading")

        assert stage.display_name == "Variant Loading"
        assert stage.description == "Stage: variant_loading"
        assert "non-fatal" in repr(stage)
        assert repr(ScriptedStage("screening", fatal=True)).endswith(", fatal)")
