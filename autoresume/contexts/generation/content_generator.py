"""
Tailored resume content generation.

The model writes every section from the job, the approved repositories and
the candidate's free-text context. Project entries must point at an approved
repository; entries that do not are dropped with a warning rather than
failing the run.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from autoresume.config import PersonalInfo
from autoresume.contexts.generation.logger import _log_info, _log_warning, log_content_summary
from autoresume.contexts.generation.resume_content import (
    EducationEntry,
    ExperienceEntry,
    ProjectEntry,
    ResumeContent,
)
from autoresume.contexts.selection.controller import ManualRepository, SelectionResult
from autoresume.contexts.targeting.job_description import JobDescription
from autoresume.contexts.templating.locales import Language
from autoresume.utils.llm import LLMProvider, PromptContext, invoke_structured

# =============================================================================
# PROMPT TEMPLATES
# =============================================================================

GENERATION_SYSTEM_PROMPT = """\
You are an expert resume writer for software engineers. You write concise,
factual resume content tailored to a specific job. You only describe projects
from the list you are given and never invent employers, degrees or projects.
Use **bold** to highlight key technologies and `code` for identifiers."""

GENERATION_USER_TEMPLATE = """\
Write resume content for {candidate_name}, applying for {job_title} at {job_company}.
Write everything in {language}.

JOB SUMMARY:
{job_summary}

REQUIRED SKILLS: {required_skills}
NICE TO HAVE: {nice_to_have}

PROJECTS (use only these; copy each project's link exactly):
{projects}

EDUCATION CONTEXT:
{education_context}

EXPERIENCE CONTEXT:
{experience_context}

SKILLS CONTEXT:
{skills_context}

INSTRUCTIONS:
- skills_by_category: group the candidate's relevant skills (e.g. Back-end, Cloud & DevOps)
- projects: one entry per listed project, title as "Project Name (Main Technology)",
  one or two brief lines (max 15 words each) on its purpose or key feature
- education and experience: only from the context above; leave empty when no context is given"""

NO_CONTEXT = "Not provided"
README_PROMPT_CHARS = 600


# =============================================================================
# OUTPUT SCHEMA
# =============================================================================


class SkillCategory(BaseModel):
    category: str = Field(..., description="Skill category, e.g. Back-end")
    items: List[str] = Field(default_factory=list, description="Skills in this category")


class GeneratedProject(BaseModel):
    title: str = Field(..., description="'Project Name (Technology)'")
    link: str = Field("", description="Project link exactly as listed")
    items: List[str] = Field(default_factory=list, description="Brief lines describing the project")


class GeneratedEducation(BaseModel):
    institution: str
    degree: str
    location: str = ""
    date: str = ""
    accomplishments: List[str] = Field(default_factory=list)


class GeneratedExperience(BaseModel):
    company: str
    position: str
    location: str = ""
    date: str = ""
    accomplishments: List[str] = Field(default_factory=list)


class GeneratedResume(BaseModel):
    skills_by_category: List[SkillCategory] = Field(default_factory=list)
    projects: List[GeneratedProject] = Field(default_factory=list)
    education: List[GeneratedEducation] = Field(default_factory=list)
    experience: List[GeneratedExperience] = Field(default_factory=list)


# =============================================================================
# PROMPT BUILDING
# =============================================================================


def _clean_lines(lines: Sequence[str]) -> Tuple[str, ...]:
    return tuple(" ".join(line.split()) for line in lines if line and line.strip())


def describe_selection(selection: SelectionResult) -> str:
    """Project list for the prompt: approved repositories, then manual additions."""
    blocks = []
    for repo in selection.chosen:
        block = repo.summary_line()
        if repo.description:
            block += f"\n  Description: {repo.description}"
        if repo.readme_excerpt:
            excerpt = " ".join(repo.readme_excerpt.split())[:README_PROMPT_CHARS]
            block += f"\n  README: {excerpt}"
        blocks.append(block)
    for manual in selection.manually_added:
        block = f"- {manual.name} {manual.url or ''}".rstrip()
        if manual.description:
            block += f"\n  Description: {manual.description}"
        blocks.append(block)
    return "\n".join(blocks) if blocks else "None selected"


def build_generation_prompt(
    personal_info: PersonalInfo,
    job: JobDescription,
    selection: SelectionResult,
    language: Language,
) -> PromptContext:
    return PromptContext(
        system_prompt=GENERATION_SYSTEM_PROMPT,
        user_prompt=GENERATION_USER_TEMPLATE.format(
            candidate_name=personal_info.full_name,
            job_title=job.title,
            job_company=job.company or "Unknown Company",
            language=language.display_name,
            job_summary=job.summary or job.raw_text[:2000],
            required_skills=", ".join(job.required_skills) or "not specified",
            nice_to_have=", ".join(job.nice_to_have) or "not specified",
            projects=describe_selection(selection),
            education_context=personal_info.education_context or NO_CONTEXT,
            experience_context=personal_info.experience_context or NO_CONTEXT,
            skills_context=personal_info.skills_context or NO_CONTEXT,
        ),
        stage="generation",
    )


# =============================================================================
# OUTPUT CONVERSION
# =============================================================================


def _normalize(value: str) -> str:
    return value.strip().rstrip("/").lower()


def _title_name(title: str) -> str:
    """'api-gateway (Go)' -> 'api-gateway'."""
    return title.split("(")[0].strip().lower()


class ProjectMatcher:
    """Maps generated project entries back to approved repositories."""

    def __init__(self, selection: SelectionResult):
        self._by_link: Dict[str, str] = {}
        self._by_name: Dict[str, str] = {}
        for repo in selection.chosen:
            self._by_link[_normalize(repo.url)] = repo.url
            self._by_name[repo.name.lower()] = repo.url
            if repo.full_name:
                self._by_name[repo.full_name.lower()] = repo.url
        for manual in selection.manually_added:
            reference = _manual_reference(manual)
            if manual.url:
                self._by_link[_normalize(manual.url)] = reference
            self._by_name[manual.name.strip().lower()] = reference

    def reference_for(self, project: GeneratedProject) -> Optional[str]:
        if project.link and _normalize(project.link) in self._by_link:
            return self._by_link[_normalize(project.link)]
        return self._by_name.get(_title_name(project.title))


def _manual_reference(manual: ManualRepository) -> str:
    return manual.url or manual.name


def to_resume_content(generated: GeneratedResume, selection: SelectionResult) -> ResumeContent:
    """
    Convert validated model output into ResumeContent.

    Project entries that reference nothing in the selection are stripped, as
    are repeated references and empty skill categories.
    """
    skills: Dict[str, Tuple[str, ...]] = {}
    for category in generated.skills_by_category:
        name = " ".join(category.category.split())
        items = _clean_lines(category.items)
        if name and items:
            skills[name] = skills.get(name, ()) + items

    matcher = ProjectMatcher(selection)
    projects = []
    referenced = set()
    for project in generated.projects:
        reference = matcher.reference_for(project)
        if reference is None:
            _log_warning(f"Dropping project not in the selection: {project.title!r} ({project.link or 'no link'})")
            continue
        if reference in referenced:
            _log_warning(f"Dropping repeated project: {project.title!r}")
            continue
        referenced.add(reference)
        link = reference if reference.startswith("http") else None
        projects.append(
            ProjectEntry(
                reference=reference,
                title=" ".join(project.title.split()),
                link=link,
                bullets=_clean_lines(project.items),
            )
        )

    experience = tuple(
        ExperienceEntry(
            company=entry.company.strip(),
            position=entry.position.strip(),
            location=entry.location.strip(),
            date=entry.date.strip(),
            accomplishments=_clean_lines(entry.accomplishments),
        )
        for entry in generated.experience
        if entry.company.strip() or entry.position.strip()
    )
    education = tuple(
        EducationEntry(
            institution=entry.institution.strip(),
            degree=entry.degree.strip(),
            location=entry.location.strip(),
            date=entry.date.strip(),
            accomplishments=_clean_lines(entry.accomplishments),
        )
        for entry in generated.education
        if entry.institution.strip() or entry.degree.strip()
    )

    return ResumeContent(skills=skills, projects=tuple(projects), experience=experience, education=education)


async def generate_content(
    provider: LLMProvider,
    personal_info: PersonalInfo,
    job: JobDescription,
    selection: SelectionResult,
    language: Language,
    max_retries: int = 3,
) -> ResumeContent:
    """
    Generate tailored resume content.

    Args:
        provider: LLM provider
        personal_info: Candidate details and free-text context
        job: Target job
        selection: Approved repositories; the only projects that may appear
        language: Output language
        max_retries: Re-prompts allowed for rejected output

    Raises:
        InvalidOutputError: Output never validated
        GenerationTransportError / GenerationError: Provider call failed
    """
    _log_info(f"Generating {language.display_name} content from {len(selection)} projects with {provider.name}")
    generated = await invoke_structured(
        provider,
        build_generation_prompt(personal_info, job, selection, language),
        GeneratedResume,
        max_retries=max_retries,
    )

    content = to_resume_content(generated, selection)
    log_content_summary(content)
    return content
