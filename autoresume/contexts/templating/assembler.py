"""
LaTeX document assembly.

Builds the template context from ResumeContent and PersonalInfo, escaping
every dynamic string exactly once on the way in, then renders the resume
template. Sections the generator left empty fall back to the static entries
in the profile.

Length caps (characters per field, bullets per entry, entries per section)
are applied before escaping so an escape sequence is never cut in half.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from jinja2 import TemplateError

from autoresume.config import PersonalInfo, ResumeItem
from autoresume.contexts.generation.resume_content import ResumeContent
from autoresume.contexts.targeting.job_description import JobDescription
from autoresume.contexts.templating.locales import Language
from autoresume.contexts.templating.logger import _log_debug, _log_info, _log_success
from autoresume.contexts.templating.registries import TemplateRegistry
from autoresume.exceptions import AssemblyError
from autoresume.utils.latex_tools import (
    escape_latex,
    escape_url,
    render_inline_markup,
    squash_whitespace,
    strip_url,
    truncate,
)

RESUME_TEMPLATE = "resume"

# Length caps
MAX_FIELD_CHARS = 120
MAX_BULLET_CHARS = 300
MAX_BULLETS_PER_ITEM = 6
MAX_SKILL_CATEGORIES = 8
MAX_PROJECTS = 8
MAX_EXPERIENCE = 6
MAX_EDUCATION = 4

SEPARATOR = r" \ $|$ \ "


@dataclass(frozen=True)
class AssembledDocument:
    """
    A fully substituted LaTeX document.

    Attributes:
        source: LaTeX source
        language: Language of the section headers
    """

    source: str
    language: Language

    def write(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.source, encoding="utf-8")
        return path


@dataclass(frozen=True)
class SectionItem:
    """One entry of a section, already in LaTeX."""

    heading: str = ""
    bullets: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Section:
    header: str
    items: Tuple[SectionItem, ...] = field(default_factory=tuple)


# =============================================================================
# FIELD FORMATTING
# =============================================================================


def text_field(value: Optional[str], limit: int = MAX_FIELD_CHARS) -> str:
    """Plain text field: whitespace squashed, capped, escaped."""
    if not value:
        return ""
    return escape_latex(truncate(squash_whitespace(value), limit))


def bullet_field(value: str, limit: int = MAX_BULLET_CHARS) -> str:
    """Bullet text: capped, with **bold** and `code` markup rendered."""
    return render_inline_markup(truncate(squash_whitespace(value), limit))


def bullets(values: Sequence[str]) -> Tuple[str, ...]:
    cleaned = [value for value in values if value and value.strip()]
    return tuple(bullet_field(value) for value in cleaned[:MAX_BULLETS_PER_ITEM])


def heading(
    title: Optional[str],
    location: Optional[str] = None,
    link: Optional[str] = None,
    description: Optional[str] = None,
    date: Optional[str] = None,
) -> str:
    """
    Entry heading: bold title with the location (linked when a link is given)
    flushed right, then an italic description line with the date on the right.
    """
    lines = []
    if title:
        line = rf"\noindent\textbf{{{text_field(title)}}}"
        if location:
            if link:
                line += rf" \hfill \href{{{escape_url(link)}}}{{{text_field(location)}}}"
            else:
                line += rf" \hfill {text_field(location)}"
        elif link:
            line += rf" \hfill \href{{{escape_url(link)}}}{{{text_field(strip_url(link))}}}"
        lines.append(line)

    if description or date:
        line = rf"\textit{{{text_field(description)}}}" if description else r"\noindent"
        if date:
            line += rf" \hfill {text_field(date)}"
        lines.append(line)

    return " \\\\\n".join(lines)


def contact_line(personal_info: PersonalInfo) -> str:
    """City, country and contact links joined by separators."""
    parts = []
    place = ", ".join(value for value in (personal_info.city, personal_info.country) if value)
    if place:
        parts.append(text_field(place))
    if personal_info.email:
        parts.append(rf"\href{{{escape_url('mailto:' + personal_info.email)}}}{{{text_field(personal_info.email)}}}")
    if personal_info.phone:
        parts.append(text_field(personal_info.phone))
    for url in (personal_info.linkedin, personal_info.github, personal_info.site):
        if url:
            parts.append(rf"\href{{{escape_url(url)}}}{{{text_field(strip_url(url))}}}")
    return SEPARATOR.join(parts)


# =============================================================================
# SECTIONS
# =============================================================================


def static_items(items: Sequence[ResumeItem], limit: int) -> Tuple[SectionItem, ...]:
    """Profile entries as section items."""
    return tuple(
        SectionItem(
            heading=heading(item.title, item.location, item.link, item.description, item.date),
            bullets=bullets(item.items),
        )
        for item in items[:limit]
    )


def skills_items(content: ResumeContent, personal_info: PersonalInfo) -> Tuple[SectionItem, ...]:
    if not content.skills:
        return static_items(personal_info.skills, MAX_SKILL_CATEGORIES)
    lines = [
        f"**{category}**: {', '.join(skills)}"
        for category, skills in list(content.skills.items())[:MAX_SKILL_CATEGORIES]
    ]
    return (SectionItem(bullets=tuple(bullet_field(line) for line in lines)),)


def project_items(content: ResumeContent, personal_info: PersonalInfo) -> Tuple[SectionItem, ...]:
    if not content.projects:
        return static_items(personal_info.projects, MAX_PROJECTS)
    return tuple(
        SectionItem(
            heading=heading(project.title, "GitHub" if project.link else None, project.link),
            bullets=bullets(project.bullets),
        )
        for project in content.projects[:MAX_PROJECTS]
    )


def experience_items(content: ResumeContent, personal_info: PersonalInfo) -> Tuple[SectionItem, ...]:
    if not content.experience:
        return static_items(personal_info.experience, MAX_EXPERIENCE)
    return tuple(
        SectionItem(
            heading=heading(entry.company, entry.location, None, entry.position, entry.date),
            bullets=bullets(entry.accomplishments),
        )
        for entry in content.experience[:MAX_EXPERIENCE]
    )


def education_items(content: ResumeContent, personal_info: PersonalInfo) -> Tuple[SectionItem, ...]:
    if not content.education:
        return static_items(personal_info.education, MAX_EDUCATION)
    return tuple(
        SectionItem(
            heading=heading(entry.institution, entry.location, None, entry.degree, entry.date),
            bullets=bullets(entry.accomplishments),
        )
        for entry in content.education[:MAX_EDUCATION]
    )


def build_sections(content: ResumeContent, personal_info: PersonalInfo, language: Language) -> List[Section]:
    """Non-empty sections in document order, with localized headers."""
    headers = language.headers
    sections = [
        Section(escape_latex(headers.education), education_items(content, personal_info)),
        Section(escape_latex(headers.skills), skills_items(content, personal_info)),
        Section(escape_latex(headers.experience), experience_items(content, personal_info)),
        Section(escape_latex(headers.projects), project_items(content, personal_info)),
    ]
    return [section for section in sections if section.items]


# =============================================================================
# ASSEMBLY
# =============================================================================


def assemble(
    personal_info: PersonalInfo,
    job: Optional[JobDescription],
    content: ResumeContent,
    language: Language = Language.ENGLISH,
    registry: Optional[TemplateRegistry] = None,
) -> AssembledDocument:
    """
    Render the resume document.

    Args:
        personal_info: Candidate details and static fallback sections
        job: Target job (recorded in the PDF metadata); None for a generic resume
        content: Generated content
        language: Section header language
        registry: Template source (default: packaged templates)

    Returns:
        AssembledDocument holding the LaTeX source

    Raises:
        AssemblyError: Template missing, broken, or asking for a field the
            assembler does not provide
    """
    registry = registry or TemplateRegistry()
    sections = build_sections(content, personal_info, language)
    _log_info(f"Assembling {language.display_name} document with {len(sections)} sections")

    try:
        template = registry.get_template(RESUME_TEMPLATE)
        source = template.render(
            name=text_field(personal_info.full_name),
            contact_line=contact_line(personal_info),
            subject=text_field(f"{job.title} - {job.company_or_default}" if job else "Resume"),
            sections=sections,
        )
    except TemplateError as e:
        raise AssemblyError(f"Template {RESUME_TEMPLATE!r} could not be rendered: {e}") from e

    for section in sections:
        _log_debug(f"  {section.header}: {len(section.items)} entries")
    _log_success(f"Assembled document ({len(source)} chars)")
    return AssembledDocument(source=source, language=language)
