"""
Output languages and their section headers.
"""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class SectionHeaders:
    education: str
    skills: str
    experience: str
    projects: str


class Language(Enum):
    ENGLISH = "en"
    PORTUGUESE = "pt"

    @classmethod
    def from_code(cls, code: str) -> "Language":
        """
        Resolve a language name or code. Unknown values fall back to English.

        Example:
            >>> Language.from_code("pt-BR")
            <Language.PORTUGUESE: 'pt'>
        """
        return LANGUAGE_ALIASES.get((code or "").strip().lower(), cls.ENGLISH)

    @property
    def display_name(self) -> str:
        return DISPLAY_NAMES[self]

    @property
    def headers(self) -> SectionHeaders:
        return SECTION_HEADERS[self]


LANGUAGE_ALIASES = {
    "en": Language.ENGLISH,
    "en-us": Language.ENGLISH,
    "english": Language.ENGLISH,
    "pt": Language.PORTUGUESE,
    "pt-br": Language.PORTUGUESE,
    "portuguese": Language.PORTUGUESE,
}

DISPLAY_NAMES = {
    Language.ENGLISH: "English",
    Language.PORTUGUESE: "Portuguese",
}

SECTION_HEADERS = {
    Language.ENGLISH: SectionHeaders(
        education="Education",
        skills="Technical Skills",
        experience="Professional Experience",
        projects="Key Projects",
    ),
    Language.PORTUGUESE: SectionHeaders(
        education="Educação",
        skills="Habilidades Técnicas",
        experience="Experiência Profissional",
        projects="Projetos e Performance",
    ),
}
