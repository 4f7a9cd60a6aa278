"""
Repository records collected from a GitHub profile.
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from autoresume.utils.timestamp import format_relative, parse_iso

# importance_score caps
MAX_SCORED_STARS = 1000
MAX_SCORED_FORKS = 100
MAX_SCORED_SIZE_KB = 10000


def importance_score(stars: int, forks: int, size_kb: int, is_fork: bool = False, is_archived: bool = False) -> int:
    """
    Heuristic weight of a repository on a profile.

    Forks and archived repositories score 0. Otherwise
    stars*3 + forks*2 + size_kb/100, each term capped.

    Example:
        >>> importance_score(stars=10, forks=2, size_kb=500)
        39
    """
    if is_fork or is_archived:
        return 0
    stars = min(stars, MAX_SCORED_STARS)
    forks = min(forks, MAX_SCORED_FORKS)
    size = min(size_kb, MAX_SCORED_SIZE_KB) // 100
    return stars * 3 + forks * 2 + size


@dataclass(frozen=True)
class Repository:
    """
    A public repository and the signals gathered about it.

    Identity is the URL: two records with the same url compare and hash equal
    whatever their other fields hold.

    Attributes:
        url: Browser URL of the repository (https://github.com/owner/name)
        name: Short repository name
        full_name: owner/name
        description: Repository description (empty when unset)
        stars: Stargazer count
        forks: Fork count
        primary_language: Language GitHub reports for the repository
        language_breakdown: Language -> bytes of code
        readme_excerpt: Leading prose of the README (empty when missing)
        last_activity: Last push time
        created_at: Creation time
        commit_count: Commits on the default branch (0 when unknown)
        size_kb: Repository size in KB
        is_fork: Whether the repository is a fork
        is_archived: Whether the repository is archived
        importance_score: See importance_score()
    """

    url: str
    name: str = field(compare=False)
    full_name: str = field(default="", compare=False)
    description: str = field(default="", compare=False)
    stars: int = field(default=0, compare=False)
    forks: int = field(default=0, compare=False)
    primary_language: Optional[str] = field(default=None, compare=False)
    language_breakdown: Mapping[str, int] = field(default_factory=dict, compare=False)
    readme_excerpt: str = field(default="", compare=False)
    last_activity: Optional[datetime] = field(default=None, compare=False)
    created_at: Optional[datetime] = field(default=None, compare=False)
    commit_count: int = field(default=0, compare=False)
    size_kb: int = field(default=0, compare=False)
    is_fork: bool = field(default=False, compare=False)
    is_archived: bool = field(default=False, compare=False)
    importance_score: int = field(default=0, compare=False)

    def __post_init__(self):
        # Read-only view so the record cannot be mutated through the mapping
        object.__setattr__(self, "language_breakdown", MappingProxyType(dict(self.language_breakdown)))

    @classmethod
    def from_api(
        cls,
        data: Dict[str, Any],
        language_breakdown: Optional[Mapping[str, int]] = None,
        readme_excerpt: str = "",
        commit_count: int = 0,
    ) -> "Repository":
        """
        Build a record from a GitHub /repos listing item plus detail fields.

        Args:
            data: One item of the repository listing
            language_breakdown: Result of the languages endpoint
            readme_excerpt: Cleaned README excerpt
            commit_count: Commit count from the commits endpoint

        Raises:
            KeyError: Listing item lacks html_url or name
        """
        stars = int(data.get("stargazers_count") or 0)
        forks = int(data.get("forks_count") or 0)
        size_kb = int(data.get("size") or 0)
        is_fork = bool(data.get("fork", False))
        is_archived = bool(data.get("archived", False))

        return cls(
            url=data["html_url"],
            name=data["name"],
            full_name=data.get("full_name") or data["name"],
            description=data.get("description") or "",
            stars=stars,
            forks=forks,
            primary_language=data.get("language"),
            language_breakdown=language_breakdown or {},
            readme_excerpt=readme_excerpt,
            last_activity=parse_iso(data.get("pushed_at")),
            created_at=parse_iso(data.get("created_at")),
            commit_count=commit_count,
            size_kb=size_kb,
            is_fork=is_fork,
            is_archived=is_archived,
            importance_score=importance_score(stars, forks, size_kb, is_fork, is_archived),
        )

    def language_shares(self) -> Dict[str, float]:
        """Language -> percentage of bytes, largest first, rounded to 2 decimals."""
        total = sum(self.language_breakdown.values())
        if total == 0:
            return {}
        shares = sorted(self.language_breakdown.items(), key=lambda item: item[1], reverse=True)
        return {language: round(100.0 * count / total, 2) for language, count in shares}

    def summary_line(self, reference: Optional[datetime] = None) -> str:
        """
        One-line description used in model prompts.

        Example:
            - api-gateway [Go (80.0%), Shell (20.0%)] (stars: 12, forks: 3, commits: 140,
              last activity: 5d ago, importance: 42) https://github.com/ada/api-gateway
        """
        shares = self.language_shares()
        if shares:
            languages = ", ".join(f"{language} ({share}%)" for language, share in shares.items())
        else:
            languages = self.primary_language or "Unknown"

        activity = format_relative(self.last_activity, reference) if self.last_activity else "unknown"
        readme = " [HAS_README]" if self.readme_excerpt else ""
        return (
            f"- {self.name} [{languages}] (stars: {self.stars}, forks: {self.forks}, "
            f"commits: {self.commit_count}, last activity: {activity}, "
            f"importance: {self.importance_score}){readme} {self.url}"
        )
