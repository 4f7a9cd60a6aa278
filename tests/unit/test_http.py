"""Unit tests for ResilientFetcher and HTTP header helpers."""

from email.utils import parsedate_to_datetime

import httpx
import pytest

from autoresume.exceptions import FetchError, RateLimited
from autoresume.utils.cache import ResponseCache
from autoresume.utils.http import FetchRequest, ResilientFetcher, parse_link_header, parse_retry_after

from conftest import FakeClock, mock_client

URL = "https://example.com/resource"


def scripted_handler(*responses):
    """Transport handler replaying (status, headers) pairs, then 200 forever."""
    queue = list(responses)
    requests = []

    def handler(request):
        requests.append(request)
        if queue:
            status, headers = queue.pop(0)
            return httpx.Response(status, headers=headers, text="error")
        return httpx.Response(200, json={"ok": True}, headers={"content-type": "application/json"})

    handler.requests = requests
    return handler


@pytest.mark.unit
async def test_server_errors_are_retried_with_backoff(retry_policy, sleep):
    """503 three times then 200: three backoff delays, four network calls."""
    handler = scripted_handler((503, {}), (503, {}), (503, {}))
    async with mock_client(handler) as client:
        fetcher = ResilientFetcher(client, retry_policy=retry_policy)
        response = await fetcher.get(URL)

    assert response.json() == {"ok": True}
    assert sleep.delays == [1.0, 2.0, 4.0]
    assert fetcher.network_calls == 4


@pytest.mark.unit
async def test_client_error_fails_immediately(retry_policy, sleep):
    handler = scripted_handler((404, {}))
    async with mock_client(handler) as client:
        fetcher = ResilientFetcher(client, retry_policy=retry_policy)
        with pytest.raises(FetchError) as exc_info:
            await fetcher.get(URL)

    assert exc_info.value.status_code == 404
    assert not exc_info.value.retryable
    assert fetcher.network_calls == 1
    assert sleep.delays == []


@pytest.mark.unit
async def test_retry_after_header_sets_delay(retry_policy, sleep):
    handler = scripted_handler((429, {"Retry-After": "2"}))
    async with mock_client(handler) as client:
        await ResilientFetcher(client, retry_policy=retry_policy).get(URL)

    assert sleep.delays == [2.0]


@pytest.mark.unit
async def test_long_retry_after_fails_fast(retry_policy, sleep):
    handler = scripted_handler((429, {"Retry-After": "120"}))
    async with mock_client(handler) as client:
        with pytest.raises(RateLimited) as exc_info:
            await ResilientFetcher(client, retry_policy=retry_policy).get(URL)

    assert exc_info.value.retry_after == 120.0
    assert sleep.delays == []


@pytest.mark.unit
async def test_github_forbidden_with_exhausted_budget_is_rate_limited(retry_policy):
    handler = scripted_handler(*[(403, {"x-ratelimit-remaining": "0"})] * 4)
    async with mock_client(handler) as client:
        with pytest.raises(RateLimited):
            await ResilientFetcher(client, retry_policy=retry_policy).get(URL)


@pytest.mark.unit
async def test_network_errors_are_retried(retry_policy, sleep):
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, text="fine")

    async with mock_client(handler) as client:
        response = await ResilientFetcher(client, retry_policy=retry_policy).get(URL)

    assert response.text() == "fine"
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.unit
async def test_cached_response_skips_network(retry_policy):
    handler = scripted_handler()
    async with mock_client(handler) as client:
        fetcher = ResilientFetcher(client, cache=ResponseCache(), retry_policy=retry_policy)
        first = await fetcher.get(URL)
        second = await fetcher.get(URL)

    assert not first.from_cache
    assert second.from_cache
    assert second.body == first.body
    assert fetcher.network_calls == 1
    assert fetcher.is_cached(FetchRequest(url=URL))


@pytest.mark.unit
async def test_expired_entry_triggers_one_new_call(retry_policy):
    clock = FakeClock()
    handler = scripted_handler()
    async with mock_client(handler) as client:
        fetcher = ResilientFetcher(client, cache=ResponseCache(default_ttl=60, clock=clock), retry_policy=retry_policy)
        await fetcher.get(URL)

        clock.now += 61
        refreshed = await fetcher.get(URL)
        assert not refreshed.from_cache
        assert fetcher.network_calls == 2

        again = await fetcher.get(URL)

    assert again.from_cache
    assert fetcher.network_calls == 2
    assert len(handler.requests) == 2


@pytest.mark.unit
async def test_failed_response_is_not_cached(retry_policy):
    handler = scripted_handler((404, {}))
    cache = ResponseCache()
    async with mock_client(handler) as client:
        fetcher = ResilientFetcher(client, cache=cache, retry_policy=retry_policy)
        with pytest.raises(FetchError):
            await fetcher.get(URL)

    assert len(cache) == 0


@pytest.mark.unit
async def test_malformed_json_is_a_fetch_error(retry_policy):
    async with mock_client(lambda request: httpx.Response(200, text="{oops")) as client:
        response = await ResilientFetcher(client, retry_policy=retry_policy).get(URL)

    with pytest.raises(FetchError):
        response.json()


@pytest.mark.unit
def test_parse_link_header():
    links = parse_link_header(
        '<https://api.github.com/x?page=2>; rel="next", <https://api.github.com/x?page=5>; rel="last"'
    )
    assert links == {"next": "https://api.github.com/x?page=2", "last": "https://api.github.com/x?page=5"}
    assert parse_link_header(None) == {}


@pytest.mark.unit
def test_parse_retry_after_variants():
    date = "Wed, 21 Oct 2015 07:28:00 GMT"
    moment = parsedate_to_datetime(date).timestamp()

    assert parse_retry_after({"retry-after": "30"}) == 30.0
    assert parse_retry_after({"retry-after": date}, clock=lambda: moment - 10) == pytest.approx(10.0)
    assert parse_retry_after({"x-ratelimit-reset": "1100"}, clock=lambda: 1000.0) == 100.0
    assert parse_retry_after({}) is None
