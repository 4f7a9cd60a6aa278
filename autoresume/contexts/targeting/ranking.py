"""
Repository relevance ranking.

The model returns one entry per repository, identified by URL, with a rank
and a rationale. The output must be a permutation of the input: an unknown,
missing or repeated id rejects the whole response, which is then re-prompted.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence

from pydantic import BaseModel, Field

from autoresume.contexts.intake.repository import Repository
from autoresume.contexts.targeting.job_description import JobDescription
from autoresume.contexts.targeting.logger import _log_info, log_ranking
from autoresume.contexts.targeting.prompts import RANKING_SYSTEM_PROMPT, RANKING_USER_TEMPLATE
from autoresume.utils.llm import LLMProvider, OutputRejected, PromptContext, invoke_structured


class RankingItem(BaseModel):
    id: str = Field(..., description="Repository URL exactly as listed")
    rank: int = Field(..., description="1 = most relevant")
    rationale: str = Field(..., description="One sentence on why the repository fits the job")


class RankingSchema(BaseModel):
    ranked_repositories: List[RankingItem]


@dataclass(frozen=True)
class RankedRepository:
    """
    A repository's place in the ranking.

    Attributes:
        repository: The ranked repository
        score: Ordinal position, 1 = most relevant
        rationale: Model's reason for the placement
    """

    repository: Repository
    score: int
    rationale: str


def _normalize_id(identifier: str) -> str:
    return identifier.strip().rstrip("/").lower()


def check_permutation(ranking: RankingSchema, repositories: Sequence[Repository]) -> None:
    """
    Reject a ranking that is not exactly one entry per input repository.

    Raises:
        OutputRejected: Unknown, repeated or missing ids, or an empty rationale
    """
    known = {_normalize_id(repo.url) for repo in repositories}
    seen = set()
    problems = []

    for item in ranking.ranked_repositories:
        identifier = _normalize_id(item.id)
        if identifier not in known:
            problems.append(f"unknown id {item.id!r}")
        elif identifier in seen:
            problems.append(f"duplicate id {item.id!r}")
        seen.add(identifier)
        if not item.rationale.strip():
            problems.append(f"empty rationale for {item.id!r}")

    missing = [repo.url for repo in repositories if _normalize_id(repo.url) not in seen]
    if missing:
        problems.append(f"missing ids {missing}")

    if problems:
        raise OutputRejected("ranking must list every repository URL exactly once: " + "; ".join(problems))


def to_ranked(ranking: RankingSchema, repositories: Sequence[Repository]) -> List[RankedRepository]:
    """
    Order repositories by model rank, input order breaking ties, and number them 1..N.

    Assumes ranking passed check_permutation().
    """
    position: Dict[str, int] = {_normalize_id(repo.url): index for index, repo in enumerate(repositories)}
    items = sorted(ranking.ranked_repositories, key=lambda item: (item.rank, position[_normalize_id(item.id)]))
    return [
        RankedRepository(
            repository=repositories[position[_normalize_id(item.id)]],
            score=score,
            rationale=" ".join(item.rationale.split()),
        )
        for score, item in enumerate(items, start=1)
    ]


def build_ranking_prompt(repositories: Sequence[Repository], job: JobDescription) -> PromptContext:
    return PromptContext(
        system_prompt=RANKING_SYSTEM_PROMPT,
        user_prompt=RANKING_USER_TEMPLATE.format(
            title=job.title,
            company=job.company_or_default,
            required_skills=", ".join(job.required_skills) or "not specified",
            nice_to_have=", ".join(job.nice_to_have) or "not specified",
            summary=job.summary or "not provided",
            repositories="\n".join(repo.summary_line() for repo in repositories),
        ),
        stage="ranking",
    )


async def rank_repositories(
    provider: LLMProvider,
    repositories: Sequence[Repository],
    job: JobDescription,
    max_retries: int = 3,
) -> List[RankedRepository]:
    """
    Rank repositories against a job.

    Args:
        provider: LLM provider
        repositories: Collected repositories (their order breaks rank ties)
        job: Target job
        max_retries: Re-prompts allowed for rejected output

    Returns:
        One RankedRepository per input repository, scores 1..N, best first.
        Empty input gives an empty list without calling the provider.

    Raises:
        InvalidOutputError: No response was a valid permutation
        GenerationTransportError / GenerationError: Provider call failed
    """
    if not repositories:
        _log_info("No repositories to rank")
        return []

    _log_info(f"Ranking {len(repositories)} repositories for {job.title}")
    ranking = await invoke_structured(
        provider,
        build_ranking_prompt(repositories, job),
        RankingSchema,
        validate=lambda parsed: check_permutation(parsed, repositories),
        max_retries=max_retries,
    )

    ranked = to_ranked(ranking, repositories)
    log_ranking(ranked)
    return ranked
