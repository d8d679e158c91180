import httpx
import pytest

from backend.http import RetryTransport, build_http_client
from tests.session_helpers import SleepRecorder


def _make_handler(statuses: list[int], headers_by_attempt: list[dict[str, str]] | None = None):
    attempt = {"count": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        index = attempt["count"]
        attempt["count"] += 1
        status = statuses[min(index, len(statuses) - 1)]
        headers = {}
        if headers_by_attempt is not None and index < len(headers_by_attempt):
            headers = headers_by_attempt[index]
        return httpx.Response(status, request=request, headers=headers, json={"status": status})

    return handler, attempt


@pytest.mark.asyncio
async def test_retry_on_429_uses_retry_after() -> None:
    handler, attempt = _make_handler([429, 200], headers_by_attempt=[{"retry-after": "3"}, {}])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://project.supabase.co/rest/v1/posts")

    assert response.status_code == 200
    assert attempt["count"] == 2
    assert sleep.calls == [3]


@pytest.mark.asyncio
async def test_retry_on_gateway_error_with_backoff() -> None:
    handler, attempt = _make_handler([503, 502, 200])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://project.supabase.co/rest/v1/posts")

    assert response.status_code == 200
    assert attempt["count"] == 3
    assert sleep.calls == [1, 2]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 500])
async def test_no_retry_on_auth_or_application_errors(status) -> None:
    handler, attempt = _make_handler([status, 200])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://project.supabase.co/rest/v1/posts")

    assert response.status_code == status
    assert attempt["count"] == 1
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_max_retries_exceeded() -> None:
    handler, attempt = _make_handler([503])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=2, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://project.supabase.co/rest/v1/posts")

    assert response.status_code == 503
    assert attempt["count"] == 3


@pytest.mark.asyncio
async def test_retries_disabled() -> None:
    handler, attempt = _make_handler([429, 200])
    sleep = SleepRecorder()
    transport = RetryTransport(httpx.MockTransport(handler), max_retries=0, sleep=sleep)

    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://project.supabase.co/rest/v1/posts")

    assert response.status_code == 429
    assert attempt["count"] == 1
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_http_client_sends_api_key_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    client = build_http_client(
        "https://project.supabase.co",
        "anon-key",
        debug=True,
        transport=httpx.MockTransport(handler),
    )
    async with client:
        await client.get("/rest/v1/posts")

    assert seen[0].headers["apikey"] == "anon-key"
    assert seen[0].headers["X-Client-Info"] == "promptshare-ai/1.0.0"
    assert str(seen[0].url) == "https://project.supabase.co/rest/v1/posts"
