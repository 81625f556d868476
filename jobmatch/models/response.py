# models/response.py
from pydantic import BeforeValidator, Field
from typing import Annotated, Any, Dict, List, Optional, Union

from jobmatch.models.schemas import CamelModel, JobRecord, ResumeContent
from jobmatch.utils.utils import as_score


def _coerce_score(v: Any) -> Any:
    # cached results written by older deployments may hold float scores
    score = as_score(v)
    return v if score is None else score


Score = Annotated[int, BeforeValidator(_coerce_score)]


class MatchResult(CamelModel):
    """Detailed, blended outcome of scoring one resume against one job"""
    job_id: str
    vector_score: Score
    skill_score: Score
    exp_relevance_score: Score
    final_score: Score
    matched_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    match_reason: str = ""
    overall_match_score: Score = 0
    strong_experience_alignment: List[str] = Field(default_factory=list)
    improvement_suggestions: List[str] = Field(default_factory=list)


class MatchListEntry(CamelModel):
    """Vector-only preliminary match, enriched with the job's display fields"""
    id: str
    job_id: str
    vector_score: Score
    job_title: str = ""
    employer_name: Optional[str] = None
    job_location: Optional[str] = None
    job_description: Optional[str] = None
    job_apply_link: Optional[str] = None
    job_employment_type: Optional[str] = None
    job_salary: Optional[str] = None
    job_requirements: Union[str, List[Any], None] = None
    job_responsibilities: Union[str, List[Any], None] = None

    @classmethod
    def from_job(cls, job: JobRecord, vector_score: int) -> "MatchListEntry":
        return cls(
            id=job.job_id,
            job_id=job.job_id,
            vector_score=vector_score,
            job_title=job.title,
            employer_name=job.employer_name,
            job_location=job.location,
            job_description=job.description,
            job_apply_link=job.apply_link,
            job_employment_type=job.employment_type,
            job_salary=job.salary,
            job_requirements=job.requirements,
            job_responsibilities=job.responsibilities,
        )


class MatchListResponse(CamelModel):
    success: bool = True
    matches: List[MatchListEntry]
    resume_id: str
    cached: bool


class MatchDetailResponse(CamelModel):
    success: bool = True
    match: MatchResult
    cached: bool


class ResumeResponse(CamelModel):
    success: bool = True
    resume: ResumeContent


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    error_code: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    request_id: Optional[str] = None
