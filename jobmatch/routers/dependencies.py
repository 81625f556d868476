from typing import Optional

from fastapi import Depends, Header, Request

from jobmatch.models.schemas import ResumeRecord
from jobmatch.services.db import ResumeStore
from jobmatch.services.matching import MatchScoringPipeline
from jobmatch.utils.exceptions import AuthenticationError, AuthorizationError, ConfigurationError
from jobmatch.utils.logging_config import get_logger

logger = get_logger(__name__)


async def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity, set by the upstream identity provider."""
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError("User not authenticated")
    return x_user_id.strip()


def get_pipeline(request: Request) -> MatchScoringPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise ConfigurationError("Matching pipeline is not initialized", config_key="pipeline")
    return pipeline


def get_resume_store(pipeline: MatchScoringPipeline = Depends(get_pipeline)) -> ResumeStore:
    return pipeline.resume_store


async def ensure_resume_access(resume_store: ResumeStore, vector_id: str, user_id: str) -> Optional[ResumeRecord]:
    """
    Reject access to a resume owned by someone else.

    Resumes known only to the vector index have no owner on record and pass.
    """
    record = await resume_store.find_by_vector_id(vector_id)
    if record is not None and record.user_id != user_id:
        logger.warning(f"User {user_id} denied access to resume {vector_id}")
        raise AuthorizationError("Unauthorized access to resume", resource="resume")
    return record
