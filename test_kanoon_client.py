import asyncio

import httpx
import pytest

from conftest import FakeClock, form_of
from legal_research.core.config import Settings
from legal_research.core.errors import (
    AuthenticationError,
    NetworkError,
    RateLimitError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
)
from legal_research.services.cache import ResponseCache
from legal_research.services.kanoon_client import gather_settled, merge_documents

SEARCH_BODY = {"docs": [{"tid": 1, "title": "A v. B"}], "found": "1"}


def test_search_posts_form_with_token_header(make_client):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=SEARCH_BODY)

    client = make_client(handler)
    result = asyncio.run(client.search("bail", 2, {"doctypes": "supremecourt"}))

    assert result == SEARCH_BODY
    request = seen[0]
    assert request.method == "POST"
    assert request.url == "https://api.indiankanoon.org/search/"
    assert request.headers["Authorization"] == "Token test-key"
    assert request.headers["Accept"] == "application/json"
    assert form_of(request) == {"formInput": "bail", "pagenum": "2", "doctypes": "supremecourt"}


def test_document_endpoints(make_client):
    paths = []

    def handler(request):
        paths.append((request.url.path, form_of(request)))
        return httpx.Response(200, json={"tid": 42})

    client = make_client(handler)

    async def run():
        await client.get_document("42", maxcites=5)
        await client.get_document_fragments("42", "bail")
        await client.get_document_metadata("42")

    asyncio.run(run())
    assert paths == [
        ("/doc/42/", {"maxcites": "5"}),
        ("/docfragment/42/", {"formInput": "bail"}),
        ("/docmeta/42/", {}),
    ]


def test_cache_hit_makes_no_network_call(make_client):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=SEARCH_BODY)

    client = make_client(handler)

    async def run():
        first = await client.search("bail")
        second = await client.search("bail")
        return first, second

    first, second = asyncio.run(run())
    assert len(calls) == 1
    assert second is first


def test_cache_expiry_triggers_exactly_one_refetch(make_client):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"docs": [], "n": len(calls)})

    clock = FakeClock()
    client = make_client(handler, cache=ResponseCache(timeout_seconds=60, clock=clock))

    async def run():
        await client.search("bail")
        clock.advance(30)
        await client.search("bail")
        clock.advance(31)
        refreshed = await client.search("bail")
        again = await client.search("bail")
        return refreshed, again

    refreshed, again = asyncio.run(run())
    assert len(calls) == 2
    assert refreshed["n"] == 2
    assert again is refreshed


def test_disabled_cache_always_fetches(make_client, settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=SEARCH_BODY)

    client = make_client(handler, settings_override=settings.model_copy(update={"enable_caching": False}))

    async def run():
        await client.search("bail")
        await client.search("bail")

    asyncio.run(run())
    assert len(calls) == 2


def test_rate_limit_retries_with_exponential_backoff(make_client, sleep):
    responses = [httpx.Response(429), httpx.Response(429), httpx.Response(200, json=SEARCH_BODY)]

    def handler(request):
        return responses.pop(0)

    client = make_client(handler)
    assert asyncio.run(client.search("bail")) == SEARCH_BODY
    assert sleep.calls == [1.0, 2.0]


def test_rate_limit_exhaustion_raises(make_client, sleep):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429)

    client = make_client(handler)
    with pytest.raises(RateLimitError):
        asyncio.run(client.search("bail"))
    # First attempt plus three retries.
    assert len(calls) == 4
    assert sleep.calls == [1.0, 2.0, 4.0]


def test_unauthorized_fails_immediately(make_client, sleep):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401)

    client = make_client(handler)
    with pytest.raises(AuthenticationError):
        asyncio.run(client.search("bail"))
    assert len(calls) == 1
    assert sleep.calls == []


def test_server_error_is_not_retried(make_client):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    client = make_client(handler)
    with pytest.raises(UpstreamHTTPError) as exc:
        asyncio.run(client.search("bail"))
    assert exc.value.status_code == 503
    assert len(calls) == 1


def test_network_errors_retry_linearly(make_client, sleep):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=SEARCH_BODY)

    client = make_client(handler)
    assert asyncio.run(client.search("bail")) == SEARCH_BODY
    assert sleep.calls == [1.0, 2.0]


def test_network_failure_after_retries(make_client, sleep):
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(NetworkError):
        asyncio.run(client.search("bail"))
    assert len(calls) == 4
    assert sleep.calls == [1.0, 2.0, 3.0]


def test_single_retry_ceiling_still_retries(make_client, settings, sleep):
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler, settings_override=settings.model_copy(update={"max_retries": 1}))
    with pytest.raises(NetworkError):
        asyncio.run(client.search("bail"))
    assert len(calls) == 2
    assert sleep.calls == [1.0]


def test_timeout_after_retries(make_client):
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    client = make_client(handler)
    with pytest.raises(UpstreamTimeoutError):
        asyncio.run(client.search("bail"))


def test_invalid_json_is_an_http_error(make_client):
    client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(UpstreamHTTPError):
        asyncio.run(client.search("bail"))


def test_pacing_spaces_physical_requests(make_client, sleep):
    settings = Settings(indian_kanoon_api_key="test-key", request_delay_ms=100)
    clock = FakeClock()
    client = make_client(lambda request: httpx.Response(200, json=SEARCH_BODY),
                         settings_override=settings, clock=clock)

    async def run():
        await client.search("one")
        await client.search("two")

    asyncio.run(run())
    assert sleep.calls == [pytest.approx(0.1)]


def test_gather_settled_isolates_failures():
    async def ok():
        return 1

    async def boom():
        raise ValueError("bad")

    results = asyncio.run(gather_settled([ok(), boom(), ok()]))
    assert [r.ok for r in results] == [True, False, True]
    assert results[0].value == 1
    assert isinstance(results[1].error, ValueError)


def test_search_multiple_variants_merges_and_dedupes(make_client):
    def handler(request):
        query = form_of(request)["formInput"]
        if query == "broken":
            return httpx.Response(500)
        docs = {"a": [{"tid": 1}, {"tid": 2}], "b": [{"tid": 2}, {"tid": 3}]}[query]
        return httpx.Response(200, json={"docs": docs})

    client = make_client(handler)
    docs, settled = asyncio.run(client.search_multiple_variants(["a", "broken", "b", "a"]))
    assert [d["tid"] for d in docs] == [1, 2, 3]
    assert [s.ok for s in settled] == [True, False, True]


def test_merge_documents_skips_missing_responses():
    assert merge_documents([None, {"docs": [{"tid": 5}, {"title": "no id"}]}]) == [{"tid": 5}]
