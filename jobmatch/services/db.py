from typing import Dict, Iterable, Optional

import motor.motor_asyncio
from pydantic import ValidationError as PydanticValidationError
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from jobmatch.models.schemas import JobRecord, ResumeRecord
from jobmatch.utils.exceptions import RetrievalError
from jobmatch.utils.logging_config import get_logger
from jobmatch.utils.settings import get_settings

logger = get_logger(__name__)

_mongo = get_settings().mongo

logger.info(f"Initializing MongoDB connection to database: {_mongo.db_name}")

# Initialize client (connects lazily on first operation)
client = motor.motor_asyncio.AsyncIOMotorClient(_mongo.url)
db = client[_mongo.db_name]

# Collections
resumes_coll = db["resumes"]
jobs_coll = db["jobs"]


async def init_indexes():
    """Index initialization for collections."""
    logger.info("Starting database index initialization")

    index_specs = [
        (resumes_coll, [("resume_id", ASCENDING)], {"unique": True}),
        (resumes_coll, [("vector_id", ASCENDING)], {"unique": True, "sparse": True}),
        (resumes_coll, [("user_id", ASCENDING), ("is_primary", ASCENDING)], {}),
        (jobs_coll, [("job_id", ASCENDING)], {"unique": True}),
    ]

    for coll, keys, options in index_specs:
        name = ", ".join(k for k, _ in keys)
        try:
            await coll.create_index(keys, **options)
            logger.debug(f"Created index on {coll.name}.({name})")
        except PyMongoError as e:
            if "already exists" in str(e).lower():
                logger.debug(f"Index on {coll.name}.({name}) already exists")
            else:
                logger.warning(f"Could not create index on {coll.name}.({name}): {e}")

    logger.info("Database index initialization completed")


async def ping() -> bool:
    try:
        await client.admin.command("ping")
        return True
    except PyMongoError as e:
        logger.warning(f"MongoDB ping failed: {e}")
        return False


def to_dict(doc):
    if not doc:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc


def _store_error(e: Exception, operation: str, collection: str) -> RetrievalError:
    logger.error(f"Record store {operation} on {collection} failed: {e}")
    return RetrievalError(
        f"Record store unavailable: {e}",
        service_name="mongodb",
        operation=operation,
        details={"collection": collection},
        cause=e
    )


class ResumeStore:
    """Persistent resume records; content may still be unset for fresh uploads"""

    def __init__(self, collection=None):
        self._coll = collection if collection is not None else resumes_coll

    async def _find_one(self, query: dict, operation: str) -> Optional[ResumeRecord]:
        try:
            doc = await self._coll.find_one(query)
        except PyMongoError as e:
            raise _store_error(e, operation, "resumes") from e
        if not doc:
            return None
        try:
            return ResumeRecord(**to_dict(doc))
        except PydanticValidationError as e:
            # an unreadable content blob counts as "no content here"
            logger.warning(f"Resume record {query} has invalid content, ignoring it: {e}")
            raw = to_dict(doc)
            raw["content"] = None
            return ResumeRecord(**raw)

    async def find_by_id(self, resume_id: str) -> Optional[ResumeRecord]:
        return await self._find_one({"resume_id": resume_id}, "find_by_id")

    async def find_by_vector_id(self, vector_id: str) -> Optional[ResumeRecord]:
        return await self._find_one({"vector_id": vector_id}, "find_by_vector_id")

    async def find_primary_for_user(self, user_id: str) -> Optional[ResumeRecord]:
        return await self._find_one({"user_id": user_id, "is_primary": True}, "find_primary_for_user")


class JobStore:
    """Job postings, keyed by the caller-supplied job id"""

    def __init__(self, collection=None):
        self._coll = collection if collection is not None else jobs_coll

    async def find_by_id(self, job_id: str) -> Optional[JobRecord]:
        try:
            doc = await self._coll.find_one({"job_id": job_id})
        except PyMongoError as e:
            raise _store_error(e, "find_by_id", "jobs") from e
        return JobRecord(**to_dict(doc)) if doc else None

    async def find_by_ids(self, job_ids: Iterable[str]) -> Dict[str, JobRecord]:
        ids = list(dict.fromkeys(job_ids))
        if not ids:
            return {}
        try:
            cursor = self._coll.find({"job_id": {"$in": ids}})
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise _store_error(e, "find_by_ids", "jobs") from e
        return {doc["job_id"]: JobRecord(**to_dict(doc)) for doc in docs}
