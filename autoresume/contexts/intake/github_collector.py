"""
GitHub profile collection.

Lists a user's public repositories (following pagination), then gathers the
language breakdown, README excerpt and commit count of every repository
concurrently, bounded by a semaphore. All requests go through the shared
ResilientFetcher, so cached responses cost no network call and transient
failures are retried there.
"""

import asyncio
import base64
import binascii
import os
import re
import time
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from autoresume.contexts.intake.logger import (
    _log_debug,
    _log_info,
    _log_warning,
    log_collection_result,
)
from autoresume.contexts.intake.repository import Repository
from autoresume.exceptions import CollectionError, FetchError, RateLimited
from autoresume.utils.http import FetchRequest, FetchResponse, ResilientFetcher, parse_link_header, parse_retry_after
from autoresume.utils.latex_tools import truncate

load_dotenv()

GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip("/")
GITHUB_ACCEPT = "application/vnd.github+json"
PAGE_SIZE = 100

README_MAX_LINES = 30
README_MAX_CHARS = 1500

# Lines that carry no prose: badges, images, bare headings, HTML wrappers, rules
_README_NOISE = re.compile(r"^(\[?!\[|<img|<p\b|</p>|<a\b|</a>|<div|</div>|<br|<h\d|#+\s*$|[-=*_]{3,}$)", re.IGNORECASE)
_LAST_PAGE = re.compile(r"[?&]page=(\d+)")


def clean_readme(markdown: str, max_lines: int = README_MAX_LINES, max_chars: int = README_MAX_CHARS) -> str:
    """
    Reduce a README to a prose excerpt.

    Drops badge, image and HTML-wrapper lines, heading markers, code fences
    and repeated blank lines, then caps the result in lines and characters.
    """
    lines = []
    in_code = False
    for raw_line in markdown.splitlines():
        line = raw_line.strip()
        if line.startswith("```"):
            in_code = not in_code
            continue
        if in_code or _README_NOISE.match(line):
            continue
        line = line.lstrip("#").strip()
        if not line and (not lines or not lines[-1]):
            continue
        lines.append(line)
        if len(lines) >= max_lines:
            break

    return truncate("\n".join(lines).strip(), max_chars)


def decode_readme(payload: Dict[str, Any]) -> str:
    """Decode the base64 content of a /readme response (empty on failure)."""
    content = payload.get("content") or ""
    if payload.get("encoding", "base64") != "base64":
        return content
    try:
        return base64.b64decode(content.replace("\n", "").replace("\r", "")).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def commit_count_from(response: FetchResponse) -> int:
    """
    Commit count from a commits?per_page=1 response.

    With one commit per page, the rel="last" page number is the total. Without
    pagination the body holds all (zero or one) commits.
    """
    last = parse_link_header(response.headers.get("link")).get("last")
    if last:
        match = _LAST_PAGE.search(last)
        if match:
            return int(match.group(1))
    body = response.json()
    return len(body) if isinstance(body, list) else 0


class GithubCollector:
    """
    Collects Repository records for a GitHub account.

    Args:
        fetcher: Shared fetcher (cache + retry)
        token: Optional GitHub token; raises the rate limit, never changes content
        parallelism: Maximum simultaneous per-repository detail fetches
        api_url: GitHub REST API base URL
    """

    def __init__(
        self,
        fetcher: ResilientFetcher,
        token: Optional[str] = None,
        parallelism: int = 8,
        api_url: str = GITHUB_API_URL,
    ):
        if parallelism < 1:
            raise ValueError(f"parallelism must be at least 1, got {parallelism}")
        self.fetcher = fetcher
        self.token = token
        self.parallelism = parallelism
        self.api_url = api_url.rstrip("/")

    def _request(self, path: str) -> FetchRequest:
        headers = {"Accept": GITHUB_ACCEPT, "X-GitHub-Api-Version": "2022-11-28"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        url = path if path.startswith("http") else f"{self.api_url}{path}"
        return FetchRequest(url=url, headers=headers)

    async def collect(self, username: str) -> List[Repository]:
        """
        Collect every public repository of username.

        Returns exactly one Repository per listed repository, sorted by
        importance (highest first, listing order among equals).

        Raises:
            RateLimited: Remaining API budget cannot cover the detail requests,
                or the limit was hit and did not clear within the retry budget
            CollectionError: Listing failed or was malformed
        """
        start_time = time.time()
        calls_before = self.fetcher.network_calls
        _log_info(f"Collecting repositories for {username}")

        items, last_page = await self._list_repositories(username)
        _log_info(f"Found {len(items)} public repositories")

        detail_requests = [request for item in items for request in self._detail_requests(item)]
        self._check_budget(last_page, detail_requests)

        semaphore = asyncio.Semaphore(self.parallelism)

        async def bounded(item: Dict[str, Any]) -> Repository:
            async with semaphore:
                return await self._collect_repository(item)

        tasks = [asyncio.ensure_future(bounded(item)) for item in items]
        try:
            repositories = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        # sorted() is stable: equal scores keep listing order
        repositories = sorted(repositories, key=lambda repo: repo.importance_score, reverse=True)

        log_collection_result(
            username,
            repositories,
            time.time() - start_time,
            self.fetcher.network_calls - calls_before,
        )
        return repositories

    async def _list_repositories(self, username: str) -> Tuple[List[Dict[str, Any]], Optional[FetchResponse]]:
        """Walk the paginated listing. Returns the items and the last page response."""
        items: List[Dict[str, Any]] = []
        next_url: Optional[str] = f"/users/{username}/repos?per_page={PAGE_SIZE}&page=1&type=owner&sort=pushed"
        response = None
        seen = set()

        while next_url and next_url not in seen:
            seen.add(next_url)
            try:
                response = await self.fetcher.fetch(self._request(next_url))
            except RateLimited:
                raise
            except FetchError as e:
                if e.status_code == 404:
                    raise CollectionError(f"GitHub user not found: {username}") from e
                raise CollectionError(f"Could not list repositories of {username}: {e}") from e

            try:
                page = response.json()
            except FetchError as e:
                raise CollectionError(f"Malformed repository listing for {username}: {e}") from e
            if not isinstance(page, list):
                raise CollectionError(f"Unexpected repository listing for {username}: {type(page).__name__}")

            items.extend(page)
            next_url = parse_link_header(response.headers.get("link")).get("next")
            _log_debug(f"Listed page with {len(page)} repositories (cached: {response.from_cache})")

        missing = [item for item in items if not isinstance(item, dict) or "html_url" not in item or "name" not in item]
        if missing:
            raise CollectionError(f"Repository listing for {username} has {len(missing)} malformed entries")

        return items, response

    def _detail_requests(self, item: Dict[str, Any]) -> List[FetchRequest]:
        full_name = item.get("full_name") or item["name"]
        return [
            self._request(f"/repos/{full_name}/languages"),
            self._request(f"/repos/{full_name}/readme"),
            self._request(f"/repos/{full_name}/commits?per_page=1"),
        ]

    def _check_budget(self, last_page: Optional[FetchResponse], detail_requests: List[FetchRequest]) -> None:
        """
        Fail before fanning out if the rate limit cannot cover the detail fetches.

        Only requests not already cached count against the budget. A listing
        served from cache carries a stale remaining count and is not checked.
        """
        if last_page is None or last_page.from_cache:
            return
        remaining = last_page.headers.get("x-ratelimit-remaining")
        if remaining is None or not remaining.strip().isdigit():
            return

        needed = sum(1 for request in detail_requests if not self.fetcher.is_cached(request))
        _log_debug(f"Rate limit budget: {remaining} remaining, {needed} detail requests needed")
        if int(remaining) < needed:
            raise RateLimited(
                f"GitHub rate limit too low: {remaining} requests left, {needed} needed",
                url=last_page.url,
                retry_after=parse_retry_after(last_page.headers, self.fetcher.clock),
            )

    async def _collect_repository(self, item: Dict[str, Any]) -> Repository:
        languages_request, readme_request, commits_request = self._detail_requests(item)
        name = item["name"]

        languages = await self._optional(name, "languages", languages_request)
        readme = await self._optional(name, "README", readme_request)
        commits = await self._optional(name, "commits", commits_request)

        language_breakdown = {}
        payload = _json_or_none(name, "languages", languages)
        if isinstance(payload, dict):
            language_breakdown = {str(k): int(v) for k, v in payload.items() if isinstance(v, int)}

        readme_excerpt = ""
        payload = _json_or_none(name, "README", readme)
        if isinstance(payload, dict):
            readme_excerpt = clean_readme(decode_readme(payload))

        commit_count = 0
        if commits is not None:
            try:
                commit_count = commit_count_from(commits)
            except FetchError as e:
                _log_warning(f"{name}: unreadable commits response ({e})")

        return Repository.from_api(
            item,
            language_breakdown=language_breakdown,
            readme_excerpt=readme_excerpt,
            commit_count=commit_count,
        )

    async def _optional(self, name: str, what: str, request: FetchRequest) -> Optional[FetchResponse]:
        """Fetch a detail; non-rate-limit failures degrade to None."""
        try:
            return await self.fetcher.fetch(request)
        except RateLimited:
            raise
        except FetchError as e:
            if e.status_code in (404, 409):
                _log_debug(f"{name}: no {what} ({e.status_code})")
            else:
                _log_warning(f"{name}: {what} unavailable, leaving it empty ({e})")
            return None


def _json_or_none(name: str, what: str, response: Optional[FetchResponse]) -> Any:
    if response is None:
        return None
    try:
        return response.json()
    except FetchError as e:
        _log_warning(f"{name}: unreadable {what} response ({e})")
        return None
