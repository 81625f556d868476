from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Any, List, Optional, Union
from datetime import datetime, timezone

from jobmatch.utils.utils import as_list, as_text


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Wire format is camelCase; python attributes stay snake_case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # parser output uses null for "unknown"; let the defaults apply
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


# -------- Parsed resume content --------
class ExperienceEntry(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    title: str = ""
    company: str = ""
    start_date: str = ""
    end_date: str = ""
    location: str = ""
    description: str = ""


class CategorizedSkills(CamelModel):
    languages: List[str] = Field(default_factory=list)
    frameworks: List[str] = Field(default_factory=list)
    ai: List[str] = Field(default_factory=list)
    databases: List[str] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)
    other: List[str] = Field(default_factory=list)


class Project(CamelModel):
    name: str = ""
    description: str = ""


class ResumeContent(CamelModel):
    """Structured resume as produced by the upload parser"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str = ""
    email: str = ""
    phone: str = ""
    social: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    categorized_skills: CategorizedSkills = Field(default_factory=CategorizedSkills)
    location: str = ""
    experience: List[ExperienceEntry] = Field(default_factory=list)
    total_experience_years: float = 0.0
    summary: str = ""
    projects: List[Project] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    soft_skills: List[str] = Field(default_factory=list)

    @field_validator("skills", "social", "languages", "soft_skills", mode="before")
    @classmethod
    def coerce_string_lists(cls, v):
        return as_list(v)


# -------- Records --------
class ResumeRecord(BaseModel):
    resume_id: str
    user_id: str
    vector_id: Optional[str] = None   # unset until the upload has been embedded
    file_name: Optional[str] = None
    content: Optional[ResumeContent] = None
    is_primary: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


class JobRecord(BaseModel):
    job_id: str
    title: str = ""
    employer_name: Optional[str] = None
    description: Optional[str] = None
    requirements: Union[str, List[Any], None] = None
    responsibilities: Union[str, List[Any], None] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    employment_type: Optional[str] = None
    apply_link: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


def requirements_as_text(requirements: Union[str, List[Any], None]) -> str:
    """Flatten free text, a list of strings, or a list of {requirement} objects."""
    if requirements is None:
        return ""
    if isinstance(requirements, str):
        return requirements.strip()
    items = []
    for r in requirements:
        if isinstance(r, dict):
            r = r.get("requirement") or r.get("text") or ""
        text = as_text(r)
        if text:
            items.append(text)
    return ", ".join(items)


class JobContent(CamelModel):
    """Job text handed to the estimators; missing text becomes empty strings"""
    job_title: str = ""
    job_description: str = ""
    job_requirements: str = ""
    job_responsibilities: str = ""
    employer_name: str = ""

    @classmethod
    def from_record(cls, job: JobRecord) -> "JobContent":
        responsibilities = job.responsibilities
        if isinstance(responsibilities, list):
            responsibilities = ", ".join(as_list(responsibilities))
        return cls(
            job_title=job.title or "",
            job_description=job.description or "",
            job_requirements=requirements_as_text(job.requirements),
            job_responsibilities=as_text(responsibilities),
            employer_name=job.employer_name or "",
        )

