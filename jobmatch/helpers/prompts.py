from jobmatch.models.schemas import JobContent, ResumeContent

SKILL_OVERLAP_SYSTEM = "You are an expert recruiter. Analyze candidate-job match and return JSON only."

SKILL_OVERLAP_PROMPT = """You are an expert recruiter analyzing how well a candidate matches a job posting.

Analyze the candidate's resume against the job requirements and calculate:
1. Skill Match: Compare candidate skills with job required skills
2. Experience Relevance: Evaluate how relevant the candidate's work experience is to the job

Candidate Resume:
Skills: {resume_skills}
Summary: {resume_summary}

Candidate Experience:
{experience}

Job Posting:
Title: {job_title}
Description: {job_description}
Responsibilities: {job_responsibilities}
Requirements: {job_requirements}

TASKS:
1. Extract ALL technical skills, tools, frameworks, and technologies mentioned in the job posting
2. Identify which candidate skills match the job requirements (treat "React", "React.js" and "ReactJS" as the same skill)
3. skillRatio: share of job required skills that the candidate has (0.0 to 1.0)
4. experienceRatio: how well the candidate's work experience aligns with the job (0.0 to 1.0),
   considering role similarity, responsibilities, industry and technical skills used

Return ONLY a JSON object with this exact format:
{{
    "jobSkills": ["javascript", "react", "html", "css", "typescript"],
    "matchedSkills": ["javascript", "react", "html"],
    "skillRatio": 0.6,
    "experienceRatio": 0.75,
    "reasoning": "Brief explanation of the match"
}}

- skillRatio = matchedSkills.length / jobSkills.length (capped at 1.0)
- Return numbers, not strings
- No markdown. No explanation outside JSON.
"""

MATCH_EXPLAINER_PROMPT = """You are an AI Career Assistant. Compare the candidate's resume with the job requirements.
Extract ONLY factual insights - no assumptions.

Return response in EXACT JSON format without any markdown or commentary:
{{
    "matchReason": "",
    "overallMatchScore": 0,
    "matchedSkills": [],
    "missingSkills": [],
    "strongExperienceAlignment": [],
    "improvementSuggestions": []
}}

Rules:
- "overallMatchScore" is an integer from 0 to 100
- "matchedSkills": skills that appear in BOTH the job description/requirements AND the candidate's resume
- "missingSkills": skills EXPLICITLY mentioned in the job description or requirements that are NOT in the
  candidate's resume; empty [] when there are none; never skills the job does not mention
- "strongExperienceAlignment": the strongest alignments (technology, domain, role level)
- "improvementSuggestions": short, specific skills the candidate should build to improve the match
- "matchReason": brief description of the match in terms of skills and experience

Candidate Resume:
Skills: {resume_skills}
Experience: {experience_descriptions}
Summary: {resume_summary}

Job Description: {job_description}
Job Requirements: {job_requirements}
"""


def format_experience(resume: ResumeContent) -> str:
    if not resume.experience:
        return "No experience listed"
    blocks = []
    for idx, exp in enumerate(resume.experience, start=1):
        blocks.append(
            f"Experience {idx}:\n"
            f"- Title: {exp.title or 'N/A'}\n"
            f"- Company: {exp.company or 'N/A'}\n"
            f"- Duration: {exp.start_date or 'N/A'} to {exp.end_date or 'N/A'}\n"
            f"- Description: {exp.description or 'N/A'}"
        )
    return "\n\n".join(blocks)


def build_skill_overlap_prompt(resume: ResumeContent, job: JobContent) -> str:
    return SKILL_OVERLAP_PROMPT.format(
        resume_skills=", ".join(resume.skills),
        resume_summary=resume.summary or "N/A",
        experience=format_experience(resume),
        job_title=job.job_title,
        job_description=job.job_description,
        job_responsibilities=job.job_responsibilities,
        job_requirements=job.job_requirements,
    )


def build_match_explainer_prompt(resume: ResumeContent, job: JobContent) -> str:
    return MATCH_EXPLAINER_PROMPT.format(
        resume_skills=", ".join(resume.skills),
        experience_descriptions=", ".join(e.description for e in resume.experience if e.description),
        resume_summary=resume.summary,
        job_description=job.job_description,
        job_requirements=job.job_requirements,
    )
