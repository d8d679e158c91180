from __future__ import annotations

from typing import Any, Awaitable, Callable

import httpx

from .constants import REST_PATH
from .http import error_from_response
from .models import Result

TokenProvider = Callable[[], Awaitable["str | None"]]


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _count_from_content_range(header: str | None) -> int | None:
    # e.g. "0-24/3573" or "*/0"
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class QueryBuilder:
    """Chainable table query.

    Every method except ``execute`` returns the builder. Awaiting the builder
    runs ``execute()``; each execution sends a fresh request with the current
    access token.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        table: str,
        *,
        api_key: str,
        token_provider: TokenProvider | None = None,
    ) -> None:
        self._http = http
        self._table = table
        self._api_key = api_key
        self._token_provider = token_provider
        self._method = "GET"
        self._params: list[tuple[str, str]] = []
        self._headers: dict[str, str] = {}
        self._prefer: list[str] = []
        self._body: Any = None
        self._count_requested = False

    @property
    def table(self) -> str:
        return self._table

    def select(self, columns: str = "*", *, count: str | None = None) -> "QueryBuilder":
        self._params.append(("select", columns))
        if count:
            self._prefer.append(f"count={count}")
            self._count_requested = True
        return self

    def insert(self, values: dict | list[dict], *, returning: str = "representation") -> "QueryBuilder":
        self._method = "POST"
        self._body = values
        self._prefer.append(f"return={returning}")
        return self

    def upsert(
        self,
        values: dict | list[dict],
        *,
        on_conflict: str | None = None,
        returning: str = "representation",
    ) -> "QueryBuilder":
        self.insert(values, returning=returning)
        self._prefer.append("resolution=merge-duplicates")
        if on_conflict:
            self._params.append(("on_conflict", on_conflict))
        return self

    def update(self, values: dict, *, returning: str = "representation") -> "QueryBuilder":
        self._method = "PATCH"
        self._body = values
        self._prefer.append(f"return={returning}")
        return self

    def delete(self, *, returning: str = "representation") -> "QueryBuilder":
        self._method = "DELETE"
        self._prefer.append(f"return={returning}")
        return self

    def filter(self, column: str, operator: str, value: Any) -> "QueryBuilder":
        self._params.append((column, f"{operator}.{_format_value(value)}"))
        return self

    def eq(self, column: str, value: Any) -> "QueryBuilder":
        return self.filter(column, "eq", value)

    def neq(self, column: str, value: Any) -> "QueryBuilder":
        return self.filter(column, "neq", value)

    def gt(self, column: str, value: Any) -> "QueryBuilder":
        return self.filter(column, "gt", value)

    def gte(self, column: str, value: Any) -> "QueryBuilder":
        return self.filter(column, "gte", value)

    def lt(self, column: str, value: Any) -> "QueryBuilder":
        return self.filter(column, "lt", value)

    def lte(self, column: str, value: Any) -> "QueryBuilder":
        return self.filter(column, "lte", value)

    def like(self, column: str, pattern: str) -> "QueryBuilder":
        return self.filter(column, "like", pattern)

    def ilike(self, column: str, pattern: str) -> "QueryBuilder":
        return self.filter(column, "ilike", pattern)

    def is_(self, column: str, value: Any) -> "QueryBuilder":
        return self.filter(column, "is", value)

    def in_(self, column: str, values: list) -> "QueryBuilder":
        joined = ",".join(_format_value(value) for value in values)
        return self.filter(column, "in", f"({joined})")

    def order(self, column: str, *, desc: bool = False) -> "QueryBuilder":
        self._params.append(("order", f"{column}.{'desc' if desc else 'asc'}"))
        return self

    def limit(self, count: int) -> "QueryBuilder":
        self._params.append(("limit", str(count)))
        return self

    def range(self, start: int, end: int) -> "QueryBuilder":
        self._params.append(("offset", str(start)))
        self._params.append(("limit", str(end - start + 1)))
        return self

    def single(self) -> "QueryBuilder":
        self._headers["Accept"] = "application/vnd.pgrst.object+json"
        return self

    async def execute(self) -> Result:
        headers = dict(self._headers)
        if self._prefer:
            headers["Prefer"] = ",".join(self._prefer)
        token = await self._token_provider() if self._token_provider else None
        headers["Authorization"] = f"Bearer {token or self._api_key}"

        response = await self._http.request(
            self._method,
            f"{REST_PATH}/{self._table}",
            params=self._params,
            json=self._body,
            headers=headers,
        )
        if response.status_code >= 400:
            return Result(data=None, error=error_from_response(response))

        data = response.json() if response.content else None
        count = None
        if self._count_requested:
            count = _count_from_content_range(response.headers.get("content-range"))
        return Result(data=data, count=count)

    def __await__(self):
        return self.execute().__await__()

    def __repr__(self) -> str:
        return f"QueryBuilder({self._method} {self._table} {self._params!r})"
