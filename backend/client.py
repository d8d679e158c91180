from __future__ import annotations

import httpx

from .auth_api import AuthClient
from .constants import REST_PATH
from .http import build_http_client, error_from_response
from .models import Result
from .query import QueryBuilder
from .session_store import DEFAULT_STORAGE_KEY, SessionStore
from .urls import normalize_base_url


class BackendClient:
    def __init__(self, http: httpx.AsyncClient, api_key: str, auth: AuthClient) -> None:
        self._http = http
        self._api_key = api_key
        self.auth = auth

    def table(self, name: str) -> QueryBuilder:
        return QueryBuilder(
            self._http,
            name,
            api_key=self._api_key,
            token_provider=self.auth.access_token,
        )

    def from_(self, name: str) -> QueryBuilder:
        return self.table(name)

    async def rpc(self, function_name: str, params: dict | None = None) -> Result:
        token = await self.auth.access_token()
        response = await self._http.post(
            f"{REST_PATH}/rpc/{function_name}",
            json=params or {},
            headers={"Authorization": f"Bearer {token or self._api_key}"},
        )
        if response.status_code >= 400:
            return Result(data=None, error=error_from_response(response))
        return Result(data=response.json() if response.content else None)

    async def aclose(self) -> None:
        await self._http.aclose()


def create_backend_client(
    url: str,
    api_key: str,
    *,
    store: SessionStore | None = None,
    storage_key: str = DEFAULT_STORAGE_KEY,
    timeout: float = 30.0,
    max_retries: int = 2,
    debug: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BackendClient:
    http = build_http_client(
        normalize_base_url(url),
        api_key,
        timeout=timeout,
        max_retries=max_retries,
        debug=debug,
        transport=transport,
    )
    auth = AuthClient(http, store=store, storage_key=storage_key)
    return BackendClient(http, api_key, auth)
