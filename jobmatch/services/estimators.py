"""
LLM-backed estimators over a (resume, job) pair.

``estimate_skill_overlap`` yields the skill and experience ratios that feed
the blended score; ``explain_match`` yields the human-readable breakdown.
Both raise ComputationError on any LLM failure instead of returning a
fallback, so a broken call can never be blended or cached.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from jobmatch.helpers.prompts import (
    SKILL_OVERLAP_SYSTEM,
    build_match_explainer_prompt,
    build_skill_overlap_prompt,
)
from jobmatch.models.schemas import JobContent, ResumeContent
from jobmatch.services.llm import LLMClient
from jobmatch.utils.logging_config import get_logger
from jobmatch.utils.utils import as_list, as_ratio, as_score, as_text

logger = get_logger(__name__)


@dataclass
class SkillOverlap:
    skill_ratio: float
    experience_ratio: float
    matched_skills: List[str] = field(default_factory=list)
    job_skills: List[str] = field(default_factory=list)


@dataclass
class MatchExplanation:
    matched_skills: List[str] = field(default_factory=list)
    missing_skills: List[str] = field(default_factory=list)
    match_reason: str = ""
    overall_match_score: Optional[int] = None
    strong_experience_alignment: List[str] = field(default_factory=list)
    improvement_suggestions: List[str] = field(default_factory=list)


async def estimate_skill_overlap(llm: LLMClient, resume: ResumeContent, job: JobContent) -> SkillOverlap:
    data = await llm.complete_json(
        build_skill_overlap_prompt(resume, job),
        system=SKILL_OVERLAP_SYSTEM,
        model=llm.model,
        estimator="skill_overlap",
    )
    overlap = SkillOverlap(
        skill_ratio=as_ratio(data.get("skillRatio")),
        experience_ratio=as_ratio(data.get("experienceRatio")),
        matched_skills=as_list(data.get("matchedSkills")),
        job_skills=as_list(data.get("jobSkills")),
    )
    logger.debug(
        f"Skill overlap for '{job.job_title}': skill={overlap.skill_ratio}, "
        f"experience={overlap.experience_ratio}"
    )
    return overlap


async def explain_match(llm: LLMClient, resume: ResumeContent, job: JobContent) -> MatchExplanation:
    data = await llm.complete_json(
        build_match_explainer_prompt(resume, job),
        model=llm.explainer_model,
        estimator="match_explainer",
    )
    return MatchExplanation(
        matched_skills=as_list(data.get("matchedSkills")),
        missing_skills=as_list(data.get("missingSkills")),
        match_reason=as_text(data.get("matchReason")),
        overall_match_score=as_score(data.get("overallMatchScore")),
        strong_experience_alignment=as_list(data.get("strongExperienceAlignment")),
        improvement_suggestions=as_list(data.get("improvementSuggestions")),
    )
