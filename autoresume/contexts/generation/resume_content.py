"""
Resume content produced by the content generator.

Every structure is immutable: sequences are tuples and the skills mapping is
a read-only view, so the content handed to the assembler is exactly what the
generator validated.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple


@dataclass(frozen=True)
class ProjectEntry:
    """
    A project section entry.

    Attributes:
        reference: URL of the selected repository (or the manual entry's URL or name)
        title: Display title, e.g. "api-gateway (Go)"
        link: Link shown next to the title
        bullets: One-line descriptions
    """

    reference: str
    title: str
    link: Optional[str] = None
    bullets: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExperienceEntry:
    company: str
    position: str
    location: str = ""
    date: str = ""
    accomplishments: Tuple[str, ...] = ()


@dataclass(frozen=True)
class EducationEntry:
    institution: str
    degree: str
    location: str = ""
    date: str = ""
    accomplishments: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResumeContent:
    """
    Tailored resume sections.

    Attributes:
        skills: Category -> skills, both in display order
        projects: Project entries referencing only approved repositories
        experience: Professional experience entries
        education: Education entries
    """

    skills: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    projects: Tuple[ProjectEntry, ...] = ()
    experience: Tuple[ExperienceEntry, ...] = ()
    education: Tuple[EducationEntry, ...] = ()

    def __post_init__(self):
        skills = {category: tuple(items) for category, items in self.skills.items()}
        object.__setattr__(self, "skills", MappingProxyType(skills))

    @property
    def is_empty(self) -> bool:
        return not (self.skills or self.projects or self.experience or self.education)
