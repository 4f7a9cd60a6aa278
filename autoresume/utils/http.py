"""
Resilient HTTP fetching.

ResilientFetcher is the single choke point for outbound HTTP: every request
goes through the response cache and the shared retry policy. One instance,
wrapping one httpx.AsyncClient, is built per run and handed explicitly to the
collaborators that need network access.
"""

import json
import re
import time
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Mapping, Optional

import httpx
from loguru import logger

from autoresume.exceptions import FetchError, RateLimited
from autoresume.utils.cache import ResponseCache, cache_key
from autoresume.utils.retry import RetryPolicy

_LINK_PATTERN = re.compile(r'<([^>]*)>\s*;\s*rel="?([^";]+)"?')

USER_AGENT = "auto-resume/0.1 (+https://github.com)"
DEFAULT_TIMEOUT_S = 30.0

# Response headers kept with cached bodies
KEPT_HEADERS = (
    "content-type",
    "link",
    "x-ratelimit-limit",
    "x-ratelimit-remaining",
    "x-ratelimit-reset",
)


@dataclass(frozen=True)
class FetchRequest:
    """An outbound request. The URL includes any query string."""

    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return cache_key(self.method, self.url, self.headers)


@dataclass(frozen=True)
class FetchResponse:
    """
    A successful (2xx) response.

    Attributes:
        url: Requested URL
        status_code: HTTP status
        body: Raw body
        headers: Lower-cased subset of response headers (see KEPT_HEADERS)
        from_cache: Whether the body was served from the response cache
    """

    url: str
    status_code: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)
    from_cache: bool = False

    def text(self) -> str:
        charset_match = re.search(r"charset=([^\s;]+)", self.headers.get("content-type", ""))
        charset = charset_match.group(1).strip("\"'") if charset_match else "utf-8"
        try:
            return self.body.decode(charset, errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON; a malformed body is a non-retryable FetchError."""
        try:
            return json.loads(self.body)
        except ValueError as e:
            raise FetchError(f"Malformed JSON response: {e}", url=self.url) from e


def is_transient_fetch_error(error: BaseException) -> bool:
    return isinstance(error, FetchError) and error.retryable


def parse_retry_after(headers: Mapping[str, str], clock: Callable[[], float] = time.time) -> Optional[float]:
    """
    Seconds to wait according to the response headers.

    Reads Retry-After (delta seconds or HTTP date), falling back to GitHub's
    X-RateLimit-Reset epoch. Returns None when neither is usable.
    """
    retry_after = headers.get("retry-after")
    if retry_after:
        retry_after = retry_after.strip()
        if retry_after.isdigit():
            return float(retry_after)
        try:
            return max(parsedate_to_datetime(retry_after).timestamp() - clock(), 0.0)
        except (TypeError, ValueError):
            pass

    reset = headers.get("x-ratelimit-reset")
    if reset and reset.strip().isdigit():
        return max(float(reset) - clock(), 0.0)

    return None


def parse_link_header(value: Optional[str]) -> Dict[str, str]:
    """
    Parse an RFC 8288 Link header into rel -> URL.

    Example:
        >>> parse_link_header('<https://x/?page=2>; rel="next", <https://x/?page=5>; rel="last"')
        {'next': 'https://x/?page=2', 'last': 'https://x/?page=5'}
    """
    links = {}
    for part in (value or "").split(","):
        match = _LINK_PATTERN.search(part)
        if match:
            links[match.group(2)] = match.group(1)
    return links


def create_client(timeout_s: float = DEFAULT_TIMEOUT_S, user_agent: str = USER_AGENT) -> httpx.AsyncClient:
    """Shared async client used for every outbound request of a run."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_s),
        follow_redirects=True,
        headers={"User-Agent": user_agent},
    )


class ResilientFetcher:
    """
    Cache-first, retrying HTTP fetcher.

    Args:
        client: Shared httpx.AsyncClient
        cache: Response cache (None disables caching)
        retry_policy: Backoff policy; its retry predicate is replaced with the
            fetch classification (network errors, 429 and 5xx are transient)
        ttl: Lifetime of cache entries written by this fetcher
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: Optional[ResponseCache] = None,
        retry_policy: Optional[RetryPolicy] = None,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.cache = cache
        self.retry_policy = (retry_policy or RetryPolicy()).with_predicate(is_transient_fetch_error)
        self.ttl = ttl
        self.clock = clock
        self.network_calls = 0

    async def fetch(self, request: FetchRequest) -> FetchResponse:
        """
        Fetch a resource, serving it from the cache when a live entry exists.

        Raises:
            RateLimited: Upstream rate limit not cleared within the retry budget
            FetchError: Network failure after retries, or a non-retryable status
        """
        key = request.key
        if self.cache is not None:
            entry = self.cache.get(key)
            if entry is not None:
                logger.debug(f"Cache hit: {request.method} {request.url}")
                return FetchResponse(
                    url=request.url,
                    status_code=entry.status_code,
                    body=entry.body,
                    headers=dict(entry.headers),
                    from_cache=True,
                )

        response = await self.retry_policy.run(
            lambda: self._attempt(request), description=f"{request.method} {request.url}"
        )

        if self.cache is not None:
            self.cache.put(
                key,
                response.body,
                ttl=self.ttl,
                status_code=response.status_code,
                headers=response.headers,
            )
        return response

    async def get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> FetchResponse:
        return await self.fetch(FetchRequest(url=url, headers=dict(headers or {})))

    def is_cached(self, request: FetchRequest) -> bool:
        """Whether request would be served from the cache right now."""
        return self.cache is not None and self.cache.get(request.key) is not None

    async def _attempt(self, request: FetchRequest) -> FetchResponse:
        self.network_calls += 1
        try:
            response = await self.client.request(request.method, request.url, headers=request.headers)
        except httpx.TimeoutException as e:
            raise FetchError("Request timed out", url=request.url, retryable=True) from e
        except httpx.TransportError as e:
            raise FetchError(f"Network error: {e}", url=request.url, retryable=True) from e

        headers = {name: response.headers[name] for name in KEPT_HEADERS if name in response.headers}
        if "retry-after" in response.headers:
            headers["retry-after"] = response.headers["retry-after"]
        status = response.status_code

        if status == 429 or (status == 403 and headers.get("x-ratelimit-remaining") == "0"):
            raise RateLimited(
                "Rate limited",
                url=request.url,
                status_code=status,
                retry_after=parse_retry_after(headers, self.clock),
            )
        if status >= 500:
            raise FetchError("Server error", url=request.url, status_code=status, retryable=True)
        if status >= 400:
            raise FetchError("Request failed", url=request.url, status_code=status)

        headers.pop("retry-after", None)
        return FetchResponse(
            url=request.url,
            status_code=status,
            body=response.content,
            headers=headers,
        )
