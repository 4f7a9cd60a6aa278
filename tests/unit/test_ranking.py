"""Unit tests for repository ranking."""

import pytest

from autoresume.contexts.targeting.ranking import (
    RankingItem,
    RankingSchema,
    check_permutation,
    rank_repositories,
    to_ranked,
)
from autoresume.exceptions import InvalidOutputError
from autoresume.utils.llm import OutputRejected

from conftest import FakeProvider


@pytest.fixture
def repositories(make_repo):
    return [
        make_repo("django-blog", stars=40, language="Python"),
        make_repo("k8s-operator", stars=12, language="Go"),
        make_repo("dotfiles", stars=3, language="Shell"),
        make_repo("api-gateway", stars=25, language="Go"),
        make_repo("helm-charts", stars=5, language="Smarty"),
    ]


def ranking(*entries):
    """{"ranked_repositories": [...]} from (url, rank) pairs."""
    return {
        "ranked_repositories": [
            {"id": url, "rank": rank, "rationale": f"Relevant because of {url.rsplit('/', 1)[-1]}"}
            for url, rank in entries
        ]
    }


@pytest.mark.unit
async def test_ranks_every_repository(repositories, job):
    """Go and Kubernetes repositories first; scores are exactly 1..5."""
    urls = {repo.name: repo.url for repo in repositories}
    provider = FakeProvider(
        [
            ranking(
                (urls["k8s-operator"], 1),
                (urls["api-gateway"], 2),
                (urls["helm-charts"], 3),
                (urls["django-blog"], 4),
                (urls["dotfiles"], 5),
            )
        ]
    )

    ranked = await rank_repositories(provider, repositories, job)

    assert [entry.repository.name for entry in ranked] == [
        "k8s-operator",
        "api-gateway",
        "helm-charts",
        "django-blog",
        "dotfiles",
    ]
    assert [entry.score for entry in ranked] == [1, 2, 3, 4, 5]
    assert {entry.repository for entry in ranked} == set(repositories)
    assert all(entry.rationale for entry in ranked)
    assert "Go, Kubernetes" in provider.calls[0]["user"]
    assert urls["dotfiles"] in provider.calls[0]["user"]


@pytest.mark.unit
async def test_equal_ranks_keep_input_order(repositories, job):
    provider = FakeProvider([ranking(*[(repo.url, 1) for repo in reversed(repositories)])])

    ranked = await rank_repositories(provider, repositories, job)

    assert [entry.repository for entry in ranked] == repositories
    assert [entry.score for entry in ranked] == [1, 2, 3, 4, 5]


@pytest.mark.unit
async def test_ids_match_loosely(repositories, job):
    """Trailing slashes and case differences still identify a repository."""
    entries = [(repo.url.upper() + "/", index) for index, repo in enumerate(repositories, start=1)]
    provider = FakeProvider([ranking(*entries)])

    ranked = await rank_repositories(provider, repositories, job)

    assert [entry.repository for entry in ranked] == repositories


@pytest.mark.unit
async def test_incomplete_ranking_is_reprompted(repositories, job):
    complete = [(repo.url, index) for index, repo in enumerate(repositories, start=1)]
    provider = FakeProvider([ranking(*complete[:-1]), ranking(*complete)])

    ranked = await rank_repositories(provider, repositories, job)

    assert len(ranked) == 5
    assert len(provider.calls) == 2
    assert "missing ids" in provider.calls[1]["user"]


@pytest.mark.unit
async def test_ranking_never_valid(repositories, job):
    bogus = ranking(("https://github.com/someone/else", 1))
    provider = FakeProvider([bogus, bogus])

    with pytest.raises(InvalidOutputError) as exc_info:
        await rank_repositories(provider, repositories, job, max_retries=1)
    assert exc_info.value.stage == "ranking"


@pytest.mark.unit
async def test_no_repositories_skips_the_model(job):
    provider = FakeProvider([])

    assert await rank_repositories(provider, [], job) == []
    assert provider.calls == []


@pytest.mark.unit
def test_check_permutation_problems(repositories):
    duplicated = RankingSchema(
        ranked_repositories=[RankingItem(id=repo.url, rank=1, rationale="x") for repo in repositories]
        + [RankingItem(id=repositories[0].url, rank=2, rationale="again")]
    )
    with pytest.raises(OutputRejected, match="duplicate id"):
        check_permutation(duplicated, repositories)

    unknown = RankingSchema(
        ranked_repositories=[RankingItem(id=repo.url, rank=1, rationale="x") for repo in repositories]
        + [RankingItem(id="https://github.com/ada/ghost", rank=2, rationale="x")]
    )
    with pytest.raises(OutputRejected, match="unknown id"):
        check_permutation(unknown, repositories)

    silent = RankingSchema(
        ranked_repositories=[RankingItem(id=repo.url, rank=1, rationale=" ") for repo in repositories]
    )
    with pytest.raises(OutputRejected, match="empty rationale"):
        check_permutation(silent, repositories)


@pytest.mark.unit
def test_to_ranked_orders_by_rank(repositories):
    schema = RankingSchema(
        ranked_repositories=[
            RankingItem(id=repo.url, rank=10 - index, rationale="  spaced   out ")
            for index, repo in enumerate(repositories)
        ]
    )

    ranked = to_ranked(schema, repositories)

    assert [entry.repository for entry in ranked] == list(reversed(repositories))
    assert ranked[0].rationale == "spaced out"
