"""
Structured job description extraction.

The model reads the raw posting and fills JobExtraction (the wire schema);
the validated result is frozen into a JobDescription (the domain entity).
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from autoresume.contexts.targeting.logger import _log_debug, _log_info, _log_success
from autoresume.contexts.targeting.prompts import (
    EXTRACTION_SYSTEM_PROMPT,
    EXTRACTION_USER_TEMPLATE,
    MAX_POSTING_CHARS,
)
from autoresume.utils.llm import LLMProvider, OutputRejected, PromptContext, invoke_structured


class JobExtraction(BaseModel):
    title: str = Field(..., description="Exact job title as written in the posting")
    company: Optional[str] = Field(None, description="Hiring company, null when not named")
    summary: str = Field("", description="Key responsibilities as clean plain text")
    required_skills: List[str] = Field(default_factory=list, description="Required skills, most important first")
    nice_to_have: List[str] = Field(default_factory=list, description="Optional or preferred skills")


@dataclass(frozen=True)
class JobDescription:
    """
    A job posting reduced to what resume tailoring needs.

    Attributes:
        title: Job title
        company: Hiring company (None when the posting does not name one)
        required_skills: Required skills, in posting order of importance
        nice_to_have: Preferred skills
        raw_text: Posting text the description was extracted from
        summary: Cleaned responsibilities text
    """

    title: str
    company: Optional[str]
    required_skills: Tuple[str, ...]
    nice_to_have: Tuple[str, ...]
    raw_text: str
    summary: str = ""

    @property
    def company_or_default(self) -> str:
        return self.company or "the target company"


def unique_skills(skills: Iterable[str]) -> Tuple[str, ...]:
    """Strip, drop empties and collapse case-insensitive duplicates, keeping first-seen order."""
    seen = set()
    result = []
    for skill in skills:
        skill = " ".join(skill.split())
        if skill and skill.lower() not in seen:
            seen.add(skill.lower())
            result.append(skill)
    return tuple(result)


def _check_extraction(extraction: JobExtraction) -> None:
    if not extraction.title.strip():
        raise OutputRejected("title must not be empty")


def to_job_description(extraction: JobExtraction, raw_text: str) -> JobDescription:
    company = (extraction.company or "").strip()
    if company.lower() in ("null", "none", "n/a", "unknown"):
        company = ""
    return JobDescription(
        title=" ".join(extraction.title.split()),
        company=company or None,
        required_skills=unique_skills(extraction.required_skills),
        nice_to_have=unique_skills(extraction.nice_to_have),
        raw_text=raw_text,
        summary=extraction.summary.strip(),
    )


async def extract_job_description(provider: LLMProvider, raw_text: str, max_retries: int = 3) -> JobDescription:
    """
    Extract a JobDescription from raw posting text.

    Args:
        provider: LLM provider
        raw_text: Posting text from the job source resolver
        max_retries: Re-prompts allowed for rejected output

    Raises:
        InvalidOutputError: Output never validated
        GenerationTransportError / GenerationError: Provider call failed
    """
    _log_info(f"Extracting job description ({len(raw_text)} chars) with {provider.name}")
    prompt = PromptContext(
        system_prompt=EXTRACTION_SYSTEM_PROMPT,
        user_prompt=EXTRACTION_USER_TEMPLATE.format(content=raw_text[:MAX_POSTING_CHARS]),
        stage="extraction",
    )
    extraction = await invoke_structured(
        provider, prompt, JobExtraction, validate=_check_extraction, max_retries=max_retries
    )

    job = to_job_description(extraction, raw_text)
    _log_success(f"Job: {job.title} at {job.company_or_default}")
    _log_debug(f"  Required: {', '.join(job.required_skills) or '-'}")
    _log_debug(f"  Nice to have: {', '.join(job.nice_to_have) or '-'}")
    return job
