"""Tests for the background task client used by processing pipelines."""

import json

import httpx
import pytest
import respx

from clinicalanalysis.pipeline_core.error_handling import ServiceError
from clinicalanalysis.services import TaskClient

BASE = "http://tasks.test"


def status(ready, progress=None, stage=None, successful=None, error=None, result=None):
    info = {}
    if progress is not None:
        info["progress"] = progress
    if stage:
        info["stage"] = stage
    if error:
        info["error"] = error
    body = {"task_id": "t-1", "ready": ready, "info": info}
    if successful is not None:
        body["successful"] = successful
        body["failed"] = not successful
    if result is not None:
        body["result"] = result
    return httpx.Response(200, json=body)


@pytest.fixture
def client_factory():
    def make(http):
        return TaskClient(http, BASE, timeout=5.0, poll_interval=0)

    return make


@pytest.mark.unit
class TestTaskClient:
    @pytest.mark.asyncio
    async def test_start_processing(self, client_factory):
        async with respx.mock:
            route = respx.post(f"{BASE}/tasks/pipeline/start/s1").respond(json={"task_id": "t-1"})
            async with httpx.AsyncClient() as http:
                task_id = await client_factory(http).start_processing("s1", "/data/s1.vcf.gz", "lenient")

        assert task_id == "t-1"
        assert json.loads(route.calls.last.request.content) == {
            "vcf_file_path": "/data/s1.vcf.gz",
            "filtering_preset": "lenient",
        }

    @pytest.mark.asyncio
    async def test_start_without_task_id(self, client_factory):
        async with respx.mock:
            respx.post(f"{BASE}/tasks/reprocess/s1").respond(json={"status": "queued"})
            async with httpx.AsyncClient() as http:
                with pytest.raises(ServiceError, match="no task_id"):
                    await client_factory(http).start_reprocess("s1")

    @pytest.mark.asyncio
    async def test_wait_for_task_polls_until_ready(self, client_factory):
        progress = []
        async with respx.mock:
            route = respx.get(f"{BASE}/tasks/t-1/status")
            route.side_effect = [
                status(False, 10, "Parsing VCF"),
                status(False, 60, "Annotating"),
                status(True, 100, "Complete", successful=True, result={"variants_parsed": 1200}),
            ]
            async with httpx.AsyncClient() as http:
                final = await client_factory(http).wait_for_task("t-1", progress=progress.append)

        assert route.call_count == 3
        assert progress == [10.0, 60.0, 100.0]
        assert final["result"] == {"variants_parsed": 1200}

    @pytest.mark.asyncio
    async def test_failed_task_raises_with_its_error(self, client_factory):
        async with respx.mock:
            respx.get(f"{BASE}/tasks/t-1/status").mock(
                return_value=status(True, 40, "Annotating", successful=False, error="VEP crashed")
            )
            async with httpx.AsyncClient() as http:
                with pytest.raises(ServiceError, match="VEP crashed"):
                    await client_factory(http).wait_for_task("t-1")

    @pytest.mark.asyncio
    async def test_failed_task_default_message(self, client_factory):
        async with respx.mock:
            respx.get(f"{BASE}/tasks/t-1/status").mock(return_value=status(True, successful=False))
            async with httpx.AsyncClient() as http:
                with pytest.raises(ServiceError, match="Processing failed"):
                    await client_factory(http).wait_for_task("t-1")
