import asyncio
import json
from types import SimpleNamespace

import httpx
import openai
import pytest
from qdrant_client.http.exceptions import ResponseHandlingException

from conftest import (
    RESUME_CONTENT,
    chat_response,
    make_job,
    make_resume_record,
    route_estimators,
    scored_point,
)
from jobmatch.utils.exceptions import ComputationError, NotFoundError, RetrievalError, ValidationError


class TestListMatches:
    """Test the vector-only preliminary listing"""

    def _index_jobs(self, qdrant_client, job_store):
        qdrant_client.query_points.return_value = SimpleNamespace(points=[
            scored_point("p-2", 0.61, {"id": "J2"}),
            scored_point("p-1", 0.874, {"id": "J1"}),
            scored_point("p-3", 0.55, {"id": "J3"}),
        ])
        job_store.find_by_ids.return_value = {
            "J1": make_job("J1", "Backend Engineer"),
            "J2": make_job("J2", "Data Engineer"),
            "J3": make_job("J3", "Platform Engineer"),
        }

    @pytest.mark.asyncio
    async def test_cache_miss_queries_index_and_caches(self, pipeline, qdrant_client, job_store, fake_redis):
        self._index_jobs(qdrant_client, job_store)

        matches, cached = await pipeline.list_matches("V1")

        assert cached is False
        assert [m.job_id for m in matches] == ["J1", "J2", "J3"]
        assert [m.vector_score for m in matches] == [87, 61, 55]
        assert matches[0].job_title == "Backend Engineer"

        kwargs = qdrant_client.query_points.call_args.kwargs
        assert kwargs["collection_name"] == "jobs"
        assert kwargs["query"] == "V1"
        assert kwargs["limit"] == 20
        assert kwargs["lookup_from"].collection == "resumes"

        assert fake_redis.ttls["jobs:V1"] == 300
        assert json.loads(fake_redis.store["jobs:V1"])[0]["jobId"] == "J1"

    @pytest.mark.asyncio
    async def test_cache_hit_skips_index(self, pipeline, qdrant_client, job_store):
        self._index_jobs(qdrant_client, job_store)

        first, _ = await pipeline.list_matches("V1")
        second, cached = await pipeline.list_matches("V1")

        assert cached is True
        assert second == first
        assert qdrant_client.query_points.await_count == 1
        assert job_store.find_by_ids.await_count == 1

    @pytest.mark.asyncio
    async def test_recomputes_after_expiry(self, pipeline, qdrant_client, job_store, fake_redis):
        self._index_jobs(qdrant_client, job_store)

        await pipeline.list_matches("V1")
        fake_redis.expire_now("jobs:V1")
        _, cached = await pipeline.list_matches("V1")

        assert cached is False
        assert qdrant_client.query_points.await_count == 2

    @pytest.mark.asyncio
    async def test_cached_empty_list_is_a_hit(self, pipeline, qdrant_client, fake_redis):
        fake_redis.store["jobs:V1"] = "[]"

        matches, cached = await pipeline.list_matches("V1")

        assert matches == []
        assert cached is True
        qdrant_client.query_points.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreadable_cached_list_is_recomputed(self, pipeline, qdrant_client, job_store, fake_redis):
        self._index_jobs(qdrant_client, job_store)
        fake_redis.store["jobs:V1"] = json.dumps([{"jobId": "J1"}])

        matches, cached = await pipeline.list_matches("V1")

        assert cached is False
        assert [m.job_id for m in matches] == ["J1", "J2", "J3"]
        assert qdrant_client.query_points.await_count == 1

    @pytest.mark.asyncio
    async def test_jobs_missing_from_store_are_skipped(self, pipeline, qdrant_client, job_store):
        qdrant_client.query_points.return_value = SimpleNamespace(points=[
            scored_point("p-1", 0.9, {"id": "J1"}),
            scored_point("p-9", 0.8, {"id": "GONE"}),
        ])
        job_store.find_by_ids.return_value = {"J1": make_job("J1")}

        matches, _ = await pipeline.list_matches("V1")

        assert [m.job_id for m in matches] == ["J1"]

    @pytest.mark.asyncio
    async def test_index_failure_propagates_without_cache_write(self, pipeline, qdrant_client, fake_redis):
        qdrant_client.query_points.side_effect = ResponseHandlingException(ConnectionError("qdrant down"))

        with pytest.raises(RetrievalError):
            await pipeline.list_matches("V1")
        assert "jobs:V1" not in fake_redis.store

    @pytest.mark.asyncio
    async def test_missing_vector_id_is_rejected(self, pipeline):
        with pytest.raises(ValidationError):
            await pipeline.list_matches("")


class TestResolveResumeContent:
    """Test the record store -> cache -> vector index fallback chain"""

    @pytest.mark.asyncio
    async def test_record_store_wins(self, pipeline, qdrant_client, fake_redis):
        fake_redis.store["resumeData:R1"] = json.dumps({"resumeData": {"name": "Stale Copy"}})

        content = await pipeline.resolve_resume_content("R1")

        assert content.name == "Ada Lovelace"
        qdrant_client.retrieve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_used_when_record_has_no_content(self, pipeline, resume_store, qdrant_client, fake_redis):
        resume_store.find_by_vector_id.return_value = make_resume_record(content=None)
        fake_redis.store["resumeData:R1"] = json.dumps({"resumeData": {"name": "Cached Ada"}, "vector": [0.1]})

        content = await pipeline.resolve_resume_content("R1")

        assert content.name == "Cached Ada"
        qdrant_client.retrieve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_holding_bare_resume(self, pipeline, resume_store, fake_redis):
        resume_store.find_by_vector_id.return_value = None
        fake_redis.store["resumeData:R1"] = json.dumps({"name": "Bare Ada", "skills": "Python, Go"})

        content = await pipeline.resolve_resume_content("R1")

        assert content.name == "Bare Ada"
        assert content.skills == ["Python", "Go"]

    @pytest.mark.asyncio
    async def test_vector_index_fallback_writes_back_to_cache(
        self, pipeline, resume_store, qdrant_client, fake_redis
    ):
        resume_store.find_by_vector_id.return_value = None
        qdrant_client.retrieve.return_value = [
            SimpleNamespace(id="R1", payload=dict(RESUME_CONTENT), vector=[0.1, 0.2])
        ]

        content = await pipeline.resolve_resume_content("R1")

        assert content.name == "Ada Lovelace"
        kwargs = qdrant_client.retrieve.call_args.kwargs
        assert kwargs["collection_name"] == "resumes"
        assert kwargs["ids"] == ["R1"]
        assert kwargs["with_vectors"] is True

        stored = json.loads(fake_redis.store["resumeData:R1"])
        assert stored["resumeData"]["name"] == "Ada Lovelace"
        assert stored["vector"] == [0.1, 0.2]
        assert fake_redis.ttls["resumeData:R1"] == 3600
        assert qdrant_client.retrieve.await_count == 1

    @pytest.mark.asyncio
    async def test_corrupt_cache_entry_falls_through_to_vector_index(
        self, pipeline, resume_store, qdrant_client, fake_redis
    ):
        resume_store.find_by_vector_id.return_value = None
        fake_redis.store["resumeData:R1"] = "{not json"
        qdrant_client.retrieve.return_value = [
            SimpleNamespace(id="R1", payload=dict(RESUME_CONTENT), vector=[0.1, 0.2])
        ]

        content = await pipeline.resolve_resume_content("R1")

        assert content.name == "Ada Lovelace"
        assert qdrant_client.retrieve.await_count == 1
        # the corrupt entry is replaced
        assert json.loads(fake_redis.store["resumeData:R1"])["resumeData"]["name"] == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_nothing_anywhere_is_not_found(self, pipeline, resume_store, qdrant_client):
        resume_store.find_by_vector_id.return_value = None
        qdrant_client.retrieve.return_value = []

        with pytest.raises(NotFoundError) as exc_info:
            await pipeline.resolve_resume_content("R1")
        assert exc_info.value.message == "resume data not found"

    @pytest.mark.asyncio
    async def test_empty_payload_is_not_found(self, pipeline, resume_store, qdrant_client):
        resume_store.find_by_vector_id.return_value = None
        qdrant_client.retrieve.return_value = [SimpleNamespace(id="R1", payload={}, vector=None)]

        with pytest.raises(NotFoundError):
            await pipeline.resolve_resume_content("R1")


class TestComputeDetailedMatch:
    """Test the blended detailed match"""

    @pytest.mark.asyncio
    async def test_worked_example(self, pipeline, fake_redis, openai_client):
        result, cached = await pipeline.compute_detailed_match("R1", "J1", 80)

        assert cached is False
        assert result.final_score == 72
        assert result.vector_score == 80
        assert result.skill_score == 70
        assert result.exp_relevance_score == 40
        assert result.missing_skills == ["Kubernetes"]
        assert result.overall_match_score == 74
        assert openai_client.chat.completions.create.await_count == 2

        stored = json.loads(fake_redis.store["match:R1:J1"])
        assert stored["finalScore"] == 72
        assert fake_redis.ttls["match:R1:J1"] == 3600

    @pytest.mark.asyncio
    async def test_estimators_use_their_models(self, pipeline, openai_client):
        await pipeline.compute_detailed_match("R1", "J1", 80)

        models = sorted(c.kwargs["model"] for c in openai_client.chat.completions.create.call_args_list)
        assert models == ["gpt-4o", "gpt-4o-mini"]

    @pytest.mark.asyncio
    async def test_second_call_is_served_from_cache(self, pipeline, openai_client, job_store):
        first, _ = await pipeline.compute_detailed_match("R1", "J1", 80)
        # a different vector score does not change a cached result
        second, cached = await pipeline.compute_detailed_match("R1", "J1", 10)

        assert cached is True
        assert second == first
        assert openai_client.chat.completions.create.await_count == 2
        assert job_store.find_by_id.await_count == 1

    @pytest.mark.asyncio
    async def test_legacy_float_scores_are_served_from_cache(self, pipeline, openai_client, fake_redis):
        fake_redis.store["match:R1:J1"] = json.dumps({
            "jobId": "J1", "vectorScore": 80, "skillScore": 70, "expRelevanceScore": 40,
            "finalScore": 72, "overallMatchScore": 74.5, "matchReason": "cached",
        })

        result, cached = await pipeline.compute_detailed_match("R1", "J1", 80)

        assert cached is True
        assert result.overall_match_score == 75
        assert result.match_reason == "cached"
        openai_client.chat.completions.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreadable_cached_match_is_recomputed(self, pipeline, openai_client, fake_redis):
        fake_redis.store["match:R1:J1"] = json.dumps({"jobId": "J1", "finalScore": "high"})

        result, cached = await pipeline.compute_detailed_match("R1", "J1", 80)

        assert cached is False
        assert result.final_score == 72
        assert openai_client.chat.completions.create.await_count == 2
        assert json.loads(fake_redis.store["match:R1:J1"])["finalScore"] == 72

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_agree(self, pipeline, fake_redis):
        (a, _), (b, _) = await asyncio.gather(
            pipeline.compute_detailed_match("R1", "J1", 80),
            pipeline.compute_detailed_match("R1", "J1", 80),
        )

        assert a == b
        assert json.loads(fake_redis.store["match:R1:J1"])["finalScore"] == 72

    @pytest.mark.asyncio
    async def test_missing_job_is_not_found_and_not_cached(self, pipeline, job_store, openai_client, fake_redis):
        job_store.find_by_id.return_value = None

        with pytest.raises(NotFoundError) as exc_info:
            await pipeline.compute_detailed_match("R1", "NOPE", 80)

        assert exc_info.value.message == "Job not found with ID: NOPE"
        openai_client.chat.completions.create.assert_not_awaited()
        assert "match:R1:NOPE" not in fake_redis.store

    @pytest.mark.asyncio
    async def test_missing_resume_is_not_found(self, pipeline, resume_store, qdrant_client, job_store):
        resume_store.find_by_vector_id.return_value = None
        qdrant_client.retrieve.return_value = []

        with pytest.raises(NotFoundError):
            await pipeline.compute_detailed_match("R1", "J1", 80)
        job_store.find_by_id.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_llm_failure_is_not_cached(self, pipeline, openai_client, fake_redis):
        async def create(**kwargs):
            if kwargs["messages"][0]["role"] == "system":
                raise openai.APIConnectionError(request=httpx.Request("POST", "https://llm.test/v1/chat"))
            return chat_response({"matchReason": "ok"})
        openai_client.chat.completions.create.side_effect = create

        with pytest.raises(ComputationError):
            await pipeline.compute_detailed_match("R1", "J1", 80)
        assert "match:R1:J1" not in fake_redis.store

    @pytest.mark.asyncio
    async def test_unparseable_llm_reply_is_not_cached(self, pipeline, openai_client, fake_redis):
        openai_client.chat.completions.create.side_effect = route_estimators(overlap="not json at all")

        with pytest.raises(ComputationError):
            await pipeline.compute_detailed_match("R1", "J1", 80)
        assert "match:R1:J1" not in fake_redis.store

    @pytest.mark.asyncio
    async def test_cache_failure_propagates(self, pipeline, fake_redis):
        fake_redis.fail = True

        with pytest.raises(RetrievalError):
            await pipeline.compute_detailed_match("R1", "J1", 80)

    @pytest.mark.asyncio
    async def test_missing_ids_are_rejected(self, pipeline):
        with pytest.raises(ValidationError):
            await pipeline.compute_detailed_match("", "J1", 80)
