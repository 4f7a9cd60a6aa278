"""
Shared test fixtures: a scripted LLM provider, a fake GitHub API served
through httpx.MockTransport, and sample domain records.
"""

import asyncio
import base64
import json
import re
from typing import Any, Dict, List, Optional

import httpx
import pytest

from autoresume.config import PersonalInfo, ResumeItem
from autoresume.contexts.intake.repository import Repository, importance_score
from autoresume.contexts.targeting.job_description import JobDescription
from autoresume.utils.llm import LLMProvider, LLMResponse
from autoresume.utils.retry import RetryPolicy

GITHUB_API = "https://api.github.com"


class RecordingSleep:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClock:
    """Settable wall clock for TTL tests."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeProvider(LLMProvider):
    """
    LLM provider that replays scripted responses.

    Each response is a string (returned as is), a dict or list (returned as
    JSON), or an exception instance (raised from the API call).
    """

    _provider_prefix = "fake"

    def __init__(self, responses, retry_policy: Optional[RetryPolicy] = None):
        self.responses = list(responses)
        self.calls: List[Dict[str, str]] = []
        self.retry_policy = retry_policy or RetryPolicy(sleep=RecordingSleep())
        self.update_model("scripted")

    async def _call_api(self, system_prompt: str, user_prompt: str, json_output: bool) -> LLMResponse:
        self.calls.append({"system": system_prompt, "user": user_prompt})
        if not self.responses:
            raise AssertionError("no scripted responses left")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if not isinstance(response, str):
            response = json.dumps(response)
        return LLMResponse(content=response, model=self.model, input_tokens=100, output_tokens=50)


def repo_item(
    name: str,
    stars: int = 0,
    forks: int = 0,
    size: int = 100,
    fork: bool = False,
    language: str = "Go",
    owner: str = "ada",
) -> Dict[str, Any]:
    """One item of a GitHub /users/{user}/repos listing."""
    return {
        "name": name,
        "full_name": f"{owner}/{name}",
        "html_url": f"https://github.com/{owner}/{name}",
        "description": f"{name} description",
        "stargazers_count": stars,
        "forks_count": forks,
        "size": size,
        "fork": fork,
        "archived": False,
        "language": language,
        "pushed_at": "2025-01-01T00:00:00Z",
        "created_at": "2023-06-01T12:00:00Z",
    }


class FakeGithub:
    """
    Minimal GitHub REST API for httpx.MockTransport.

    Serves the repository listing in pages of page_size, plus languages,
    README and commits for every listed repository. Records requests and the
    peak number of requests in flight.
    """

    def __init__(
        self,
        items: List[Dict[str, Any]],
        username: str = "ada",
        page_size: int = 100,
        remaining: str = "5000",
        delay: float = 0.0,
        commits: int = 42,
    ):
        self.items = items
        self.username = username
        self.page_size = page_size
        self.remaining = remaining
        self.delay = delay
        self.commits = commits
        self.requests: List[httpx.Request] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return self.route(request)
        finally:
            self.in_flight -= 1

    def paths(self, suffix: str = "") -> List[str]:
        return [request.url.path for request in self.requests if request.url.path.endswith(suffix)]

    def route(self, request: httpx.Request) -> httpx.Response:
        headers = {"x-ratelimit-remaining": self.remaining, "x-ratelimit-limit": "5000"}
        path = request.url.path

        if path == f"/users/{self.username}/repos":
            page = int(request.url.params.get("page", "1"))
            start = (page - 1) * self.page_size
            chunk = self.items[start : start + self.page_size]
            if start + self.page_size < len(self.items):
                headers["link"] = (
                    f'<{GITHUB_API}/users/{self.username}/repos?per_page=100&page={page + 1}>; rel="next", '
                    f'<{GITHUB_API}/users/{self.username}/repos?per_page=100&page=99>; rel="last"'
                )
            return httpx.Response(200, json=chunk, headers=headers)
        if path.startswith("/users/"):
            return httpx.Response(404, json={"message": "Not Found"}, headers=headers)

        match = re.match(r"^/repos/([^/]+)/([^/]+)/(languages|readme|commits)$", path)
        if not match:
            return httpx.Response(404, json={"message": "Not Found"}, headers=headers)

        name, kind = match.group(2), match.group(3)
        if kind == "languages":
            return httpx.Response(200, json={"Go": 800, "Shell": 200}, headers=headers)
        if kind == "readme":
            content = base64.b64encode(f"# {name}\n\n![badge](x)\n\nA {name} service.\n".encode()).decode()
            return httpx.Response(200, json={"content": content, "encoding": "base64"}, headers=headers)

        headers["link"] = f'<{GITHUB_API}/repos/{self.username}/{name}/commits?per_page=1&page={self.commits}>; rel="last"'
        return httpx.Response(200, json=[{"sha": "abc123"}], headers=headers)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def retry_policy(sleep):
    return RetryPolicy(max_retries=3, base_delay=1.0, max_delay=30.0, sleep=sleep)


@pytest.fixture
def make_repo():
    """Factory for Repository records owned by 'ada'."""

    def _make(name: str, stars: int = 0, forks: int = 0, language: str = "Python", **kwargs) -> Repository:
        return Repository(
            url=f"https://github.com/ada/{name}",
            name=name,
            full_name=f"ada/{name}",
            description=kwargs.pop("description", f"{name} description"),
            stars=stars,
            forks=forks,
            primary_language=language,
            importance_score=importance_score(stars, forks, kwargs.get("size_kb", 0)),
            **kwargs,
        )

    return _make


@pytest.fixture
def personal_info():
    return PersonalInfo(
        full_name="Ada Lovelace",
        city="London",
        country="UK",
        email="ada@example.com",
        github="https://github.com/ada",
        education=[
            ResumeItem(
                title="University of London",
                location="London, UK",
                description="BSc Mathematics",
                date="1832 - 1835",
            )
        ],
        experience=[
            ResumeItem(
                title="Babbage & Co.",
                location="London",
                description="Analyst",
                date="1842 - present",
                items=["Wrote the first published algorithm"],
            )
        ],
        experience_context="Analyst at Babbage & Co. since 1842",
    )


@pytest.fixture
def job():
    return JobDescription(
        title="Backend Engineer",
        company="Acme",
        required_skills=("Go", "Kubernetes"),
        nice_to_have=("Terraform",),
        raw_text="Backend Engineer at Acme. Go and Kubernetes required.",
        summary="Build and run Go services on Kubernetes.",
    )
