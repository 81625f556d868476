"""
Construction of the external clients (Redis, Qdrant, OpenAI-compatible LLM)
and of the matching pipeline that uses them.
"""
from dataclasses import dataclass
from urllib.parse import urlparse

import redis.asyncio as aioredis
from openai import AsyncOpenAI
from qdrant_client import AsyncQdrantClient

from jobmatch.services.cache import ResultCache
from jobmatch.services.db import JobStore, ResumeStore
from jobmatch.services.llm import LLMClient
from jobmatch.services.matching import MatchScoringPipeline
from jobmatch.services.vector_index import VectorIndex
from jobmatch.utils.exceptions import ConfigurationError
from jobmatch.utils.logging_config import get_logger
from jobmatch.utils.settings import Settings

logger = get_logger(__name__)


def _sanitize_url(url: str) -> str:
    """Remove credentials from URL for safe logging."""
    parsed = urlparse(url)
    if parsed.password:
        netloc = f"{parsed.username or ''}:*@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return parsed._replace(netloc=netloc).geturl()
    return url


@dataclass
class ExternalClients:
    redis: aioredis.Redis
    qdrant: AsyncQdrantClient
    openai: AsyncOpenAI

    async def close(self):
        await self.redis.aclose()
        await self.qdrant.close()
        await self.openai.close()


def create_clients(settings: Settings) -> ExternalClients:
    if not settings.llm.api_key:
        raise ConfigurationError("OPENAI_API_KEY is not set", config_key="OPENAI_API_KEY")

    redis_client = aioredis.Redis.from_url(
        settings.redis.url,
        password=settings.redis.password,
        decode_responses=True,
        socket_connect_timeout=settings.redis.socket_timeout,
        socket_timeout=settings.redis.socket_timeout,
    )
    logger.info(f"Result cache configured at {_sanitize_url(settings.redis.url)}")

    qdrant_client = AsyncQdrantClient(
        url=settings.qdrant.url,
        api_key=settings.qdrant.api_key,
        timeout=settings.qdrant.timeout,
    )
    logger.info(f"Vector index configured at {settings.qdrant.url}")

    # no client-side retries: a failed estimator call fails the request
    openai_client = AsyncOpenAI(
        api_key=settings.llm.api_key,
        base_url=settings.llm.base_url,
        timeout=settings.llm.timeout,
        max_retries=0,
    )
    logger.info(f"LLM configured: model={settings.llm.model_name}, explainer={settings.llm.explainer_model_name}")

    return ExternalClients(redis=redis_client, qdrant=qdrant_client, openai=openai_client)


def build_pipeline(settings: Settings, clients: ExternalClients) -> MatchScoringPipeline:
    return MatchScoringPipeline(
        cache=ResultCache(clients.redis),
        vector_index=VectorIndex(
            clients.qdrant,
            resume_collection=settings.qdrant.resume_collection,
            job_collection=settings.qdrant.job_collection,
        ),
        resume_store=ResumeStore(),
        job_store=JobStore(),
        llm=LLMClient(
            clients.openai,
            model=settings.llm.model_name,
            explainer_model=settings.llm.explainer_model_name,
            temperature=settings.llm.temperature,
        ),
        search_limit=settings.matching.search_limit,
    )
