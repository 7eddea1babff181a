"""Tests for the backend service clients."""

import json

import httpx
import pytest
import respx

from clinicalanalysis.pipeline_core import CancellationToken
from clinicalanalysis.pipeline_core.error_handling import PipelineCancelledError, ServiceError
from clinicalanalysis.run_context import HpoTerm
from clinicalanalysis.services import (
    LiteratureClient,
    PhenotypeClient,
    ScreeningClient,
    VariantsClient,
    build_search_request,
)

PHENOTYPE_URL = "http://phenotype.test/api"
SCREENING_URL = "http://screening.test/api/v1"
LITERATURE_URL = "http://literature.test/api/v1"
VARIANTS_URL = "http://variants.test"


def ndjson(*records):
    return "\n".join(r if isinstance(r, str) else json.dumps(r) for r in records) + "\n"


@pytest.mark.unit
def test_session_url():
    client = PhenotypeClient(None, PHENOTYPE_URL + "/")
    assert client.session_url("s1", "phenotype") == f"{PHENOTYPE_URL}/phenotype/sessions/s1/phenotype"
    assert (
        client.session_url("s1", "phenotype", "results")
        == f"{PHENOTYPE_URL}/phenotype/sessions/s1/phenotype/results"
    )


@pytest.mark.unit
def test_build_search_request():
    request = build_search_request(
        ["SCN1A", "KCNQ2"], [HpoTerm("HP:0001250", "Seizure")], limit=20
    )
    assert request == {
        "patient_hpo_terms": [{"id": "HP:0001250", "name": "Seizure"}],
        "genes": ["SCN1A", "KCNQ2"],
        "variants": [],
        "limit": 20,
        "include_evidence_details": True,
    }


@pytest.mark.unit
class TestPhenotypeClient:
    @pytest.mark.asyncio
    async def test_trigger_and_fetch(self, phenotype_records):
        async with respx.mock:
            trigger = respx.post(f"{PHENOTYPE_URL}/phenotype/sessions/s1/phenotype").respond(
                json={"status": "completed"}
            )
            respx.get(f"{PHENOTYPE_URL}/phenotype/sessions/s1/phenotype/results").respond(
                json=phenotype_records
            )

            async with httpx.AsyncClient() as http:
                client = PhenotypeClient(http, PHENOTYPE_URL)
                await client.run_matching("s1", ["HP:0001250"])
                matches = await client.get_results("s1")

        assert json.loads(trigger.calls.last.request.content) == {"patient_hpo_ids": ["HP:0001250"]}
        assert [m.tier for m in matches] == [1, 2, 5, 2, 4]

    @pytest.mark.asyncio
    async def test_error_status_uses_detail(self):
        async with respx.mock:
            respx.post(f"{PHENOTYPE_URL}/phenotype/sessions/s1/phenotype").respond(
                503, json={"detail": "HPO index not loaded"}
            )
            async with httpx.AsyncClient() as http:
                with pytest.raises(ServiceError) as exc_info:
                    await PhenotypeClient(http, PHENOTYPE_URL).run_matching("s1", ["HP:1"])

        assert exc_info.value.status_code == 503
        assert str(exc_info.value) == "phenotype service: HPO index not loaded"

    @pytest.mark.asyncio
    async def test_error_status_without_detail(self):
        async with respx.mock:
            respx.get(f"{PHENOTYPE_URL}/phenotype/sessions/s1/phenotype/results").respond(500, text="oops")
            async with httpx.AsyncClient() as http:
                with pytest.raises(ServiceError, match="HTTP 500"):
                    await PhenotypeClient(http, PHENOTYPE_URL).get_results("s1")

    @pytest.mark.asyncio
    async def test_malformed_results(self):
        async with respx.mock:
            respx.get(f"{PHENOTYPE_URL}/phenotype/sessions/s1/phenotype/results").respond(
                json=[{"gene_symbol": "SCN1A"}]
            )
            async with httpx.AsyncClient() as http:
                with pytest.raises(ServiceError, match="Malformed phenotype results"):
                    await PhenotypeClient(http, PHENOTYPE_URL).get_results("s1")

    @pytest.mark.asyncio
    async def test_network_error(self):
        async with respx.mock:
            respx.post(f"{PHENOTYPE_URL}/phenotype/sessions/s1/phenotype").mock(
                side_effect=httpx.ConnectError("connection refused")
            )
            async with httpx.AsyncClient() as http:
                with pytest.raises(ServiceError, match="connection refused"):
                    await PhenotypeClient(http, PHENOTYPE_URL).run_matching("s1", ["HP:1"])

    @pytest.mark.asyncio
    async def test_cancelled_token_skips_request(self):
        token = CancellationToken()
        token.cancel("stop")
        async with respx.mock:
            route = respx.post(f"{PHENOTYPE_URL}/phenotype/sessions/s1/phenotype").respond(json={})
            async with httpx.AsyncClient() as http:
                with pytest.raises(PipelineCancelledError):
                    await PhenotypeClient(http, PHENOTYPE_URL).run_matching("s1", ["HP:1"], token)

        assert not route.called


@pytest.mark.unit
class TestScreeningClient:
    RESULTS = f"{SCREENING_URL}/screening/sessions/s1/screening/results"

    @pytest.mark.asyncio
    async def test_stream_results_reports_progress(self):
        body = ndjson(
            {"type": "metadata", "summary": {"tier1_count": 1, "tier2_count": 1, "tier3_count": 2}, "cache_hit": True},
            {"type": "tier1", "data": {"gene": "BRCA1"}},
            "{broken json",
            {"type": "tier2", "data": {"gene": "MLH1"}},
            {"type": "tier3", "data": {"gene": "TTN"}},
            {"type": "tier3", "data": {"gene": "MYH7"}},
            {"type": "complete"},
        )
        progress = []
        async with respx.mock:
            respx.get(self.RESULTS).respond(200, text=body)
            async with httpx.AsyncClient() as http:
                response = await ScreeningClient(http, SCREENING_URL).stream_results(
                    "s1", progress=progress.append
                )

        assert response.cache_hit is True
        assert response.tier_counts() == {"tier1": 1, "tier2": 1, "tier3": 2, "tier4": 0}
        assert response.tier1_results == [{"gene": "BRCA1"}]
        assert progress == [25.0, 50.0, 75.0, 100.0, 100.0]

    @pytest.mark.asyncio
    async def test_stream_without_metadata(self):
        async with respx.mock:
            respx.get(self.RESULTS).respond(200, text=ndjson({"type": "complete"}))
            async with httpx.AsyncClient() as http:
                with pytest.raises(ServiceError, match="No summary received from stream"):
                    await ScreeningClient(http, SCREENING_URL).stream_results("s1")

    @pytest.mark.asyncio
    async def test_stream_error_status(self):
        async with respx.mock:
            respx.get(self.RESULTS).respond(404, json={"detail": "Session not found"})
            async with httpx.AsyncClient() as http:
                with pytest.raises(ServiceError) as exc_info:
                    await ScreeningClient(http, SCREENING_URL).stream_results("s1")

        assert exc_info.value.status_code == 404
        assert "Session not found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_run_screening_posts_payload(self):
        async with respx.mock:
            route = respx.post(f"{SCREENING_URL}/screening/sessions/s1/screening").respond(204)
            async with httpx.AsyncClient() as http:
                result = await ScreeningClient(http, SCREENING_URL).run_screening(
                    "s1", {"sex": "female", "age_years": 34}
                )

        assert result is None
        assert json.loads(route.calls.last.request.content) == {"sex": "female", "age_years": 34}


@pytest.mark.unit
class TestLiteratureClient:
    @pytest.mark.asyncio
    async def test_search_and_results(self):
        async with respx.mock:
            search = respx.post(f"{LITERATURE_URL}/literature/sessions/s1/literature").respond(json={})
            respx.get(f"{LITERATURE_URL}/literature/sessions/s1/literature/results").respond(
                json={"results": [{"pmid": "123"}], "query_summary": {"genes": 1}}
            )
            async with httpx.AsyncClient() as http:
                client = LiteratureClient(http, LITERATURE_URL)
                request = build_search_request(["SCN1A"], [HpoTerm("HP:0001250", "Seizure")])
                await client.search("s1", request)
                results = await client.get_results("s1", ["SCN1A"])

        assert json.loads(search.calls.last.request.content)["genes"] == ["SCN1A"]
        assert results.genes == ["SCN1A"]
        assert results.results == [{"pmid": "123"}]

    @pytest.mark.asyncio
    async def test_malformed_results(self):
        async with respx.mock:
            respx.get(f"{LITERATURE_URL}/literature/sessions/s1/literature/results").respond(json={"x": 1})
            async with httpx.AsyncClient() as http:
                with pytest.raises(ServiceError, match="literature service"):
                    await LiteratureClient(http, LITERATURE_URL).get_results("s1", ["SCN1A"])


@pytest.mark.unit
class TestVariantsClient:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [[{"id": 1}, {"id": 2}], {"variants": [{"id": 1}, {"id": 2}]}])
    async def test_load_all(self, payload):
        async with respx.mock:
            respx.get(f"{VARIANTS_URL}/variants/sessions/s1/variants/results").respond(json=payload)
            async with httpx.AsyncClient() as http:
                variants = await VariantsClient(http, VARIANTS_URL).load_all("s1")

        assert len(variants) == 2

    @pytest.mark.asyncio
    async def test_bad_payload(self):
        async with respx.mock:
            respx.get(f"{VARIANTS_URL}/variants/sessions/s1/variants/results").respond(json={"count": 2})
            async with httpx.AsyncClient() as http:
                with pytest.raises(ServiceError, match="must be a list"):
                    await VariantsClient(http, VARIANTS_URL).load_all("s1")
