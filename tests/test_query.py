import json

import httpx
import pytest

from backend.query import QueryBuilder

BASE_URL = "https://project.supabase.co"


class RestRecorder:
    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses) or [httpx.Response(200, json=[])]
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses[min(len(self.requests) - 1, len(self.responses) - 1)]


def _builder(recorder: RestRecorder, table: str = "posts", token: str | None = None) -> QueryBuilder:
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(recorder))

    async def token_provider() -> str | None:
        return token

    return QueryBuilder(http, table, api_key="anon-key", token_provider=token_provider)


@pytest.mark.asyncio
async def test_select_with_filters() -> None:
    recorder = RestRecorder(httpx.Response(200, json=[{"id": 1}]))

    result = await _builder(recorder).select("id,title").eq("community_id", 7).order("created_at", desc=True).limit(20)

    request = recorder.requests[0]
    assert result.data == [{"id": 1}]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/posts"
    assert list(request.url.params.multi_items()) == [
        ("select", "id,title"),
        ("community_id", "eq.7"),
        ("order", "created_at.desc"),
        ("limit", "20"),
    ]


@pytest.mark.asyncio
async def test_filter_value_formatting() -> None:
    recorder = RestRecorder()

    await _builder(recorder).select().in_("id", [1, 2, 3]).is_("deleted_at", None).neq("pinned", True).ilike("title", "%ai%").execute()

    params = list(recorder.requests[0].url.params.multi_items())
    assert ("id", "in.(1,2,3)") in params
    assert ("deleted_at", "is.null") in params
    assert ("pinned", "neq.true") in params
    assert ("title", "ilike.%ai%") in params


@pytest.mark.asyncio
async def test_authorization_uses_session_token() -> None:
    recorder = RestRecorder()

    await _builder(recorder, token="access-1").select().execute()

    assert recorder.requests[0].headers["Authorization"] == "Bearer access-1"


@pytest.mark.asyncio
async def test_authorization_falls_back_to_api_key() -> None:
    recorder = RestRecorder()

    await _builder(recorder).select().execute()

    assert recorder.requests[0].headers["Authorization"] == "Bearer anon-key"


@pytest.mark.asyncio
async def test_insert_sends_body_and_prefer() -> None:
    recorder = RestRecorder(httpx.Response(201, json=[{"id": 9, "title": "new"}]))

    result = await _builder(recorder).insert({"title": "new"}).execute()

    request = recorder.requests[0]
    assert result.data == [{"id": 9, "title": "new"}]
    assert request.method == "POST"
    assert json.loads(request.content) == {"title": "new"}
    assert request.headers["Prefer"] == "return=representation"


@pytest.mark.asyncio
async def test_upsert_merges_duplicates() -> None:
    recorder = RestRecorder(httpx.Response(201, json=[]))

    await _builder(recorder, table="community_members").upsert(
        {"community_id": 1, "user_id": "u1"}, on_conflict="community_id,user_id"
    ).execute()

    request = recorder.requests[0]
    assert request.headers["Prefer"] == "return=representation,resolution=merge-duplicates"
    assert request.url.params["on_conflict"] == "community_id,user_id"


@pytest.mark.asyncio
async def test_update_and_delete_methods() -> None:
    recorder = RestRecorder(httpx.Response(200, json=[]), httpx.Response(204))

    await _builder(recorder).update({"title": "edited"}).eq("id", 1).execute()
    result = await _builder(recorder).delete(returning="minimal").eq("id", 1).execute()

    assert [request.method for request in recorder.requests] == ["PATCH", "DELETE"]
    assert recorder.requests[1].headers["Prefer"] == "return=minimal"
    assert result.data is None
    assert result.error is None


@pytest.mark.asyncio
async def test_count_and_range() -> None:
    recorder = RestRecorder(httpx.Response(200, json=[{"id": 11}], headers={"content-range": "10-10/57"}))

    result = await _builder(recorder).select("*", count="exact").range(10, 19).execute()

    request = recorder.requests[0]
    assert result.count == 57
    assert request.headers["Prefer"] == "count=exact"
    assert request.url.params["offset"] == "10"
    assert request.url.params["limit"] == "10"


@pytest.mark.asyncio
async def test_single_sets_object_accept_header() -> None:
    recorder = RestRecorder(httpx.Response(200, json={"id": 1}))

    result = await _builder(recorder).select().eq("id", 1).single().execute()

    assert result.data == {"id": 1}
    assert recorder.requests[0].headers["Accept"] == "application/vnd.pgrst.object+json"


@pytest.mark.asyncio
async def test_expired_jwt_error_body() -> None:
    recorder = RestRecorder(
        httpx.Response(401, json={"code": "PGRST301", "message": "JWT expired", "details": None, "hint": None})
    )

    result = await _builder(recorder).select().execute()

    assert result.data is None
    assert result.error.code == "PGRST301"
    assert result.error.status == 401
    assert result.error.message == "JWT expired"


@pytest.mark.asyncio
async def test_builder_can_be_awaited_twice() -> None:
    recorder = RestRecorder(httpx.Response(200, json=[1]), httpx.Response(200, json=[2]))
    builder = _builder(recorder).select()

    first = await builder
    second = await builder

    assert (first.data, second.data) == ([1], [2])
    assert len(recorder.requests) == 2
