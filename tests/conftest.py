import json
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

os.environ.setdefault("ENVIRONMENT", "testing")

from redis.exceptions import ConnectionError as RedisConnectionError

from jobmatch.models.schemas import JobRecord, ResumeRecord
from jobmatch.services.cache import ResultCache
from jobmatch.services.db import JobStore, ResumeStore
from jobmatch.services.llm import LLMClient
from jobmatch.services.matching import MatchScoringPipeline
from jobmatch.services.vector_index import VectorIndex


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (decode_responses=True)"""

    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("connection refused")

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def ping(self):
        self._check()
        return True

    def expire_now(self, key):
        self.store.pop(key, None)
        self.ttls.pop(key, None)


RESUME_CONTENT = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "skills": ["Python", "FastAPI", "MongoDB"],
    "experience": [
        {"title": "Backend Engineer", "company": "Analytical Engines", "startDate": "2019", "endDate": "Present"}
    ],
    "totalExperienceYears": 5,
    "summary": "Backend engineer focused on Python services",
}

SKILL_OVERLAP_REPLY = {
    "skillRatio": 0.70,
    "experienceRatio": 0.40,
    "matchedSkills": ["Python", "FastAPI"],
    "jobSkills": ["Python", "FastAPI", "Kubernetes"],
}

EXPLAINER_REPLY = {
    "matchedSkills": ["Python", "FastAPI"],
    "missingSkills": ["Kubernetes"],
    "matchReason": "Strong backend Python background",
    "overallMatchScore": 74,
    "strongExperienceAlignment": ["Built async APIs"],
    "improvementSuggestions": ["Learn Kubernetes"],
}


def make_job(job_id="J1", title="Senior Python Developer", **overrides) -> JobRecord:
    data = {
        "job_id": job_id,
        "title": title,
        "employer_name": "Acme",
        "description": "Build APIs",
        "requirements": ["Python", {"requirement": "FastAPI"}],
        "location": "Remote",
    }
    data.update(overrides)
    return JobRecord(**data)


def make_resume_record(vector_id="R1", user_id="user-1", content=RESUME_CONTENT, **overrides) -> ResumeRecord:
    data = {
        "resume_id": f"resume-{vector_id}",
        "user_id": user_id,
        "vector_id": vector_id,
        "content": content,
        "is_primary": True,
    }
    data.update(overrides)
    return ResumeRecord(**data)


def chat_response(content):
    if not isinstance(content, str):
        content = json.dumps(content)
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def route_estimators(overlap=SKILL_OVERLAP_REPLY, explainer=EXPLAINER_REPLY):
    """side_effect for chat.completions.create: the skill estimator sends a system message"""
    async def create(**kwargs):
        if kwargs["messages"][0]["role"] == "system":
            return chat_response(overlap)
        return chat_response(explainer)
    return create


def make_openai_client(side_effect=None):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=side_effect or route_estimators())
    return client


def scored_point(point_id, score, payload=None):
    return SimpleNamespace(id=point_id, score=score, payload=payload)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def qdrant_client():
    client = MagicMock()
    client.query_points = AsyncMock(return_value=SimpleNamespace(points=[]))
    client.retrieve = AsyncMock(return_value=[])
    return client


@pytest.fixture
def openai_client():
    return make_openai_client()


@pytest.fixture
def resume_store():
    store = AsyncMock(spec=ResumeStore)
    store.find_by_vector_id.return_value = make_resume_record()
    store.find_by_id.return_value = None
    store.find_primary_for_user.return_value = make_resume_record()
    return store


@pytest.fixture
def job_store():
    store = AsyncMock(spec=JobStore)
    store.find_by_id.return_value = make_job()
    store.find_by_ids.return_value = {}
    return store


@pytest.fixture
def pipeline(fake_redis, qdrant_client, openai_client, resume_store, job_store):
    return MatchScoringPipeline(
        cache=ResultCache(fake_redis),
        vector_index=VectorIndex(qdrant_client, resume_collection="resumes", job_collection="jobs"),
        resume_store=resume_store,
        job_store=job_store,
        llm=LLMClient(openai_client, model="gpt-4o-mini", explainer_model="gpt-4o"),
        search_limit=20,
    )
