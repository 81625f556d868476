"""
Resume-to-job matching and scoring.

Two operations sit on top of the vector index, the result cache and the
LLM estimators:

* ``list_matches`` - vector-only preliminary ranking of jobs for a resume.
* ``compute_detailed_match`` - blends the caller's vector score with the
  LLM skill and experience ratios into the final match score.
"""
import asyncio
import math
from typing import Any, Awaitable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from jobmatch.models.response import MatchListEntry, MatchResult
from jobmatch.models.schemas import JobContent, ResumeContent
from jobmatch.services import cache as cache_keys
from jobmatch.services.cache import ResultCache, unwrap_cached
from jobmatch.services.db import JobStore, ResumeStore
from jobmatch.services.estimators import (
    MatchExplanation,
    SkillOverlap,
    estimate_skill_overlap,
    explain_match,
)
from jobmatch.services.llm import LLMClient
from jobmatch.services.vector_index import VectorIndex
from jobmatch.utils.exceptions import NotFoundError, RetrievalError, ValidationError
from jobmatch.utils.logging_config import PerformanceMonitor, get_logger

logger = get_logger(__name__)

# The weights sum to 0.95, so a perfect candidate tops out at 95.
VECTOR_WEIGHT = 0.65
SKILL_WEIGHT = 0.25
EXPERIENCE_WEIGHT = 0.05

DEFAULT_SEARCH_LIMIT = 20


# ---------------------------------------------------------------------------
# Score arithmetic
# ---------------------------------------------------------------------------

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_vector_score(vector_score: float) -> float:
    """0-100 percentage to a 0-1 fraction."""
    return (vector_score or 0) / 100


def to_percentage(fraction: float) -> int:
    return round_half_up(fraction * 100)


def blend_scores(vector_fraction: float, skill_ratio: float, experience_ratio: float) -> float:
    blended = (
        vector_fraction * VECTOR_WEIGHT
        + skill_ratio * SKILL_WEIGHT
        + experience_ratio * EXPERIENCE_WEIGHT
    )
    return round(blended, 3)


def build_match_result(
    job_id: str,
    vector_fraction: float,
    overlap: SkillOverlap,
    explanation: MatchExplanation
) -> MatchResult:
    final_score = to_percentage(blend_scores(vector_fraction, overlap.skill_ratio, overlap.experience_ratio))
    overall = explanation.overall_match_score
    return MatchResult(
        job_id=job_id,
        vector_score=to_percentage(vector_fraction),
        skill_score=to_percentage(overlap.skill_ratio),
        exp_relevance_score=to_percentage(overlap.experience_ratio),
        final_score=final_score,
        matched_skills=list(explanation.matched_skills),
        missing_skills=list(explanation.missing_skills),
        match_reason=explanation.match_reason,
        # a 0 from the explainer counts as no score
        overall_match_score=overall or final_score,
        strong_experience_alignment=list(explanation.strong_experience_alignment),
        improvement_suggestions=list(explanation.improvement_suggestions),
    )


async def gather_all(*aws: Awaitable[Any]) -> List[Any]:
    """Join that needs every branch: the first failure cancels the rest and propagates."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class MatchScoringPipeline:
    def __init__(
        self,
        cache: ResultCache,
        vector_index: VectorIndex,
        resume_store: ResumeStore,
        job_store: JobStore,
        llm: LLMClient,
        search_limit: int = DEFAULT_SEARCH_LIMIT
    ):
        self.cache = cache
        self.vector_index = vector_index
        self.resume_store = resume_store
        self.job_store = job_store
        self.llm = llm
        self.search_limit = search_limit

    async def list_matches(self, resume_vector_id: str) -> Tuple[List[MatchListEntry], bool]:
        """Ranked preliminary matches for a resume, served from cache for 5 minutes."""
        if not resume_vector_id:
            raise ValidationError("Resume vector id is required", field="resume_vector_id")

        key = cache_keys.jobs_key(resume_vector_id)
        cached = await self.cache.get(key)
        if cached is not None:
            try:
                entries = [MatchListEntry.model_validate(e) for e in unwrap_cached(cached)]
            except (RetrievalError, PydanticValidationError, TypeError) as e:
                logger.warning(f"Cached matches for resume {resume_vector_id} are unreadable, recomputing: {e}")
            else:
                logger.info(f"Serving {len(entries)} cached matches for resume {resume_vector_id}")
                return entries, True

        hits = await self.vector_index.nearest_jobs(resume_vector_id, self.search_limit)
        jobs = await self.job_store.find_by_ids(hit.job_id for hit in hits)

        entries = []
        for hit in hits:
            job = jobs.get(hit.job_id)
            if job is None:
                logger.warning(f"Job {hit.job_id} is indexed but missing from the job store, skipping")
                continue
            entries.append(MatchListEntry.from_job(job, to_percentage(hit.score)))
        entries.sort(key=lambda e: e.vector_score, reverse=True)

        await self.cache.set(key, entries, cache_keys.MATCH_LIST_TTL_SECONDS)
        logger.info(f"Found {len(entries)} matches for resume {resume_vector_id} ({len(hits)} vector hits)")
        return entries, False

    async def resolve_resume_content(self, vector_id: str) -> ResumeContent:
        """
        Structured resume content, first source wins:

        1. the resume record in the record store (authoritative when set)
        2. the cache entry ``resumeData:{vector_id}``
        3. the resume point's payload in the vector index
        """
        record = await self.resume_store.find_by_vector_id(vector_id)
        if record is not None and record.content is not None:
            logger.debug(f"Resume {vector_id} content resolved from record store")
            return record.content

        cached = await self.cache.get(cache_keys.resume_data_key(vector_id))
        content = None
        if cached is not None:
            try:
                content = self._as_content(
                    unwrap_cached(cached, cache_keys.RESUME_ENVELOPE_KEY), vector_id, "cache"
                )
            except RetrievalError as e:
                logger.warning(f"Resume {vector_id} cache entry is unreadable, falling back to the vector index: {e}")
            if content is not None:
                logger.debug(f"Resume {vector_id} content resolved from cache")
                return content

        points = await self.vector_index.retrieve(
            self.vector_index.resume_collection, [vector_id], with_payload=True, with_vector=True
        )
        point = points[0] if points else None
        content = self._as_content(point.payload, vector_id, "vector index") if point else None
        if content is None:
            raise NotFoundError("resume data not found", resource="resume", resource_id=vector_id)

        logger.debug(f"Resume {vector_id} content resolved from vector index")
        await self.cache.set(
            cache_keys.resume_data_key(vector_id),
            {cache_keys.RESUME_ENVELOPE_KEY: content.model_dump(mode="json", by_alias=True),
             "vector": point.vector},
            cache_keys.RESUME_DATA_TTL_SECONDS,
        )
        return content

    @staticmethod
    def _as_content(data: Any, vector_id: str, source: str) -> Optional[ResumeContent]:
        if not data:
            return None
        if not isinstance(data, dict):
            logger.warning(f"Resume {vector_id} from {source} is not an object, ignoring it")
            return None
        try:
            return ResumeContent.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Resume {vector_id} from {source} failed validation, ignoring it: {e}")
            return None

    async def compute_detailed_match(
        self,
        resume_id: str,
        job_id: str,
        vector_score: float
    ) -> Tuple[MatchResult, bool]:
        """Blended match for one resume/job pair, cached for an hour."""
        if not resume_id or not job_id:
            raise ValidationError("Resume ID and Job ID are required")

        key = cache_keys.match_key(resume_id, job_id)
        cached = await self.cache.get(key)
        if cached is not None:
            try:
                result = MatchResult.model_validate(unwrap_cached(cached))
            except (RetrievalError, PydanticValidationError) as e:
                logger.warning(f"Cached match {resume_id}/{job_id} is unreadable, recomputing: {e}")
            else:
                logger.info(f"Serving cached match {resume_id}/{job_id}")
                return result, True

        resume = await self.resolve_resume_content(resume_id)

        job = await self.job_store.find_by_id(job_id)
        if job is None:
            raise NotFoundError(f"Job not found with ID: {job_id}", resource="job", resource_id=job_id)
        job_content = JobContent.from_record(job)

        with PerformanceMonitor(f"match estimators {resume_id}/{job_id}", logger, threshold_ms=15000):
            overlap, explanation = await gather_all(
                estimate_skill_overlap(self.llm, resume, job_content),
                explain_match(self.llm, resume, job_content),
            )

        result = build_match_result(job_id, normalize_vector_score(vector_score), overlap, explanation)

        await self.cache.set(key, result, cache_keys.MATCH_DETAIL_TTL_SECONDS)
        logger.info(
            f"Match {resume_id}/{job_id}: final={result.final_score} "
            f"(vector={result.vector_score}, skill={result.skill_score}, exp={result.exp_relevance_score})"
        )
        return result, False
