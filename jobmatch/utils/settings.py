"""
Runtime configuration for the Job Match API.

Values come from the environment (a local ``.env`` is loaded first) and are
validated into pydantic models grouped by collaborator.
"""
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from jobmatch.utils.exceptions import ConfigurationError
from jobmatch.utils.logging_config import get_logger

logger = get_logger(__name__)


class MongoSettings(BaseModel):
    """Record store (resumes and jobs)"""
    url: str = Field(default="mongodb://localhost:27017", description="MongoDB connection string")
    db_name: str = Field(default="jobmatch_db", description="Database name")


class RedisSettings(BaseModel):
    """Result cache"""
    url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    password: Optional[str] = Field(default=None, description="Redis password if not in the URL")
    socket_timeout: float = Field(default=5.0, gt=0, description="Socket timeout in seconds")


class QdrantSettings(BaseModel):
    """Vector index"""
    url: str = Field(default="http://localhost:6333", description="Qdrant base URL")
    api_key: Optional[str] = Field(default=None, description="Qdrant API key")
    resume_collection: str = Field(default="resumes", description="Collection holding resume vectors")
    job_collection: str = Field(default="jobs", description="Collection holding job vectors")
    timeout: int = Field(default=10, ge=1, le=120, description="Request timeout in seconds")


class LLMSettings(BaseModel):
    """OpenAI-compatible chat completion endpoint used by the estimators"""
    api_key: Optional[str] = Field(default=None, description="API key")
    base_url: Optional[str] = Field(default=None, description="Override for OpenAI-compatible providers")
    model_name: str = Field(default="gpt-4o-mini", description="Model for skill overlap estimation")
    explainer_model_name: Optional[str] = Field(default=None, validate_default=True, description="Model for match explanations")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0, description="Generation temperature")
    timeout: float = Field(default=45.0, gt=0, le=300, description="Per-call timeout in seconds")

    @field_validator('explainer_model_name')
    @classmethod
    def default_explainer_model(cls, v, info):
        return v or info.data.get('model_name')


class MatchingSettings(BaseModel):
    """Top-matches listing"""
    search_limit: int = Field(default=20, ge=1, le=200, description="Nearest jobs fetched per resume")


class Settings(BaseModel):
    """Complete service configuration"""
    environment: str = Field(default="development")
    mongo: MongoSettings = Field(default_factory=MongoSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)


def _env(name: str, default=None):
    value = os.getenv(name)
    return value if value not in (None, "") else default


def load_settings() -> Settings:
    """Build settings from environment variables"""
    load_dotenv()

    raw = {
        "environment": _env("ENVIRONMENT", "development"),
        "mongo": {
            "url": _env("MONGO_DETAILS", "mongodb://localhost:27017"),
            "db_name": _env("DB_NAME", "jobmatch_db"),
        },
        "redis": {
            "url": _env("REDIS_URL", "redis://localhost:6379/0"),
            "password": _env("REDIS_PASSWORD"),
        },
        "qdrant": {
            "url": _env("QDRANT_URL", "http://localhost:6333"),
            "api_key": _env("QDRANT_API_KEY"),
            "resume_collection": _env("QDRANT_RESUME_COLLECTION", "resumes"),
            "job_collection": _env("QDRANT_JOB_COLLECTION", "jobs"),
        },
        "llm": {
            "api_key": _env("OPENAI_API_KEY"),
            "base_url": _env("LLM_BASE_URL"),
            "model_name": _env("LLM_MODEL", "gpt-4o-mini"),
            "explainer_model_name": _env("LLM_EXPLAINER_MODEL"),
            "temperature": _env("LLM_TEMPERATURE", 0.2),
            "timeout": _env("LLM_TIMEOUT", 45.0),
        },
        "matching": {
            "search_limit": _env("MATCH_SEARCH_LIMIT", 20),
        },
    }

    try:
        settings = Settings(**raw)
    except PydanticValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigurationError(
            f"Invalid configuration: {first.get('msg')}",
            config_key=key,
            config_value=first.get("input"),
            cause=e
        ) from e

    logger.debug(
        f"Settings loaded for environment={settings.environment}, "
        f"llm_model={settings.llm.model_name}, search_limit={settings.matching.search_limit}"
    )
    return settings


@lru_cache()
def get_settings() -> Settings:
    """Cached settings for the running process"""
    return load_settings()
