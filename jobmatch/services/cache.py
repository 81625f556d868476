"""Result cache - Redis-backed store for match lists, match details and resume data."""
import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel
from redis.exceptions import RedisError

from jobmatch.utils.exceptions import RetrievalError
from jobmatch.utils.logging_config import get_logger

logger = get_logger(__name__)

MATCH_LIST_TTL_SECONDS = 300
MATCH_DETAIL_TTL_SECONDS = 3600
RESUME_DATA_TTL_SECONDS = 3600

RESUME_ENVELOPE_KEY = "resumeData"


def jobs_key(resume_vector_id: str) -> str:
    return f"jobs:{resume_vector_id}"


def match_key(resume_id: str, job_id: str) -> str:
    return f"match:{resume_id}:{job_id}"


def resume_data_key(vector_id: str) -> str:
    return f"resumeData:{vector_id}"


# ---------------------------------------------------------------------------
# Cached value shapes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RawValue:
    """A serialized string that still needs a JSON parse."""
    text: str


@dataclass(frozen=True)
class StructuredValue:
    """An already-parsed value, used as-is."""
    data: Any


@dataclass(frozen=True)
class EnvelopedValue:
    """A parsed object whose payload sits under ``key``."""
    data: dict
    key: str


CachedValue = Union[RawValue, StructuredValue, EnvelopedValue]


def classify_cached(value: Any, envelope_key: Optional[str] = None) -> CachedValue:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return RawValue(value)
    if envelope_key and isinstance(value, dict) and envelope_key in value:
        return EnvelopedValue(value, envelope_key)
    return StructuredValue(value)


def unwrap_cached(value: Any, envelope_key: Optional[str] = None) -> Any:
    """Resolve any cached shape to its payload.

    Raw strings are parsed and classified again, so a serialized envelope
    unwraps the same way as a parsed one (and double-encoded legacy values
    lose one layer per pass).
    """
    cached = value if isinstance(value, (RawValue, StructuredValue, EnvelopedValue)) \
        else classify_cached(value, envelope_key)

    if isinstance(cached, RawValue):
        try:
            parsed = json.loads(cached.text)
        except ValueError as e:
            raise RetrievalError(
                "Cached value is not valid JSON",
                service_name="redis",
                operation="decode",
                cause=e
            ) from e
        return unwrap_cached(classify_cached(parsed, envelope_key), envelope_key)

    if isinstance(cached, EnvelopedValue):
        return cached.data.get(cached.key)

    return cached.data


def _serialize(value: Any) -> str:
    if isinstance(value, BaseModel):
        return value.model_dump_json(by_alias=True)
    if isinstance(value, list):
        value = [
            v.model_dump(mode="json", by_alias=True) if isinstance(v, BaseModel) else v
            for v in value
        ]
    return json.dumps(value)


class ResultCache:
    """
    Thin async wrapper over a Redis client.

    Values are stored as JSON strings with a TTL. Reads return whatever the
    client hands back; callers resolve it with ``unwrap_cached``.
    """

    def __init__(self, redis_client):
        self._redis = redis_client

    async def get(self, key: str) -> Any:
        try:
            value = await self._redis.get(key)
        except RedisError as e:
            logger.error(f"Cache read failed for {key}: {e}")
            raise RetrievalError(
                f"Cache unavailable: {e}",
                service_name="redis",
                operation="get",
                details={"key": key},
                cause=e
            ) from e

        logger.debug(f"Cache {'hit' if value is not None else 'miss'} for {key}")
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = _serialize(value)
        try:
            await self._redis.set(key, payload, ex=ttl_seconds)
        except RedisError as e:
            logger.error(f"Cache write failed for {key}: {e}")
            raise RetrievalError(
                f"Cache unavailable: {e}",
                service_name="redis",
                operation="set",
                details={"key": key},
                cause=e
            ) from e
        logger.debug(f"Cached {key} (TTL: {ttl_seconds}s)")

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.warning(f"Cache ping failed: {e}")
            return False
