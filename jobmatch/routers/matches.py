# routers/matches.py
from typing import Optional

from fastapi import APIRouter, Body, Depends

from jobmatch.models.requests import DetailedMatchRequest
from jobmatch.models.response import MatchDetailResponse, MatchListResponse, ResumeResponse
from jobmatch.routers.dependencies import (
    ensure_resume_access,
    get_current_user_id,
    get_pipeline,
    get_resume_store,
)
from jobmatch.services.db import ResumeStore
from jobmatch.services.matching import MatchScoringPipeline
from jobmatch.utils.exceptions import NotFoundError, ValidationError
from jobmatch.utils.logging_config import get_logger, log_api_call

router = APIRouter(tags=["matches"])
logger = get_logger(__name__)


@router.get("/jobs/matches", response_model=MatchListResponse, response_model_by_alias=True)
@log_api_call("list_matches")
async def list_matches(
    user_id: str = Depends(get_current_user_id),
    pipeline: MatchScoringPipeline = Depends(get_pipeline),
    resume_store: ResumeStore = Depends(get_resume_store),
):
    """Top vector matches for the caller's primary resume"""
    resume = await resume_store.find_primary_for_user(user_id)
    if resume is None:
        raise NotFoundError("No primary resume found", resource="resume")
    if not resume.vector_id:
        raise ValidationError("Primary resume has not been processed yet", field="vector_id")

    matches, cached = await pipeline.list_matches(resume.vector_id)
    return MatchListResponse(matches=matches, resume_id=resume.vector_id, cached=cached)


@router.post(
    "/resumes/{resume_id}/matches/{job_id}",
    response_model=MatchDetailResponse,
    response_model_by_alias=True,
)
@log_api_call("detailed_match")
async def detailed_match(
    resume_id: str,
    job_id: str,
    body: Optional[DetailedMatchRequest] = Body(default=None),
    user_id: str = Depends(get_current_user_id),
    pipeline: MatchScoringPipeline = Depends(get_pipeline),
    resume_store: ResumeStore = Depends(get_resume_store),
):
    """Blended vector + skill + experience score for one resume/job pair"""
    await ensure_resume_access(resume_store, resume_id, user_id)

    vector_score = body.vector_score if body is not None else 0
    match, cached = await pipeline.compute_detailed_match(resume_id, job_id, vector_score)
    return MatchDetailResponse(match=match, cached=cached)


@router.get("/resumes/{resume_id}", response_model=ResumeResponse, response_model_by_alias=True)
@log_api_call("get_resume")
async def get_resume(
    resume_id: str,
    user_id: str = Depends(get_current_user_id),
    pipeline: MatchScoringPipeline = Depends(get_pipeline),
    resume_store: ResumeStore = Depends(get_resume_store),
):
    """Structured resume content, wherever it currently lives"""
    await ensure_resume_access(resume_store, resume_id, user_id)

    content = await pipeline.resolve_resume_content(resume_id)
    return ResumeResponse(resume=content)
