from __future__ import annotations

import asyncio
import logging

import httpx

from .constants import CLIENT_INFO, LOGGER
from .errors import BackendError

RETRYABLE_GATEWAY_STATUSES = {502, 503, 504}


def _retry_after_seconds(header: str | None) -> int | None:
    if header is None:
        return None
    try:
        return max(0, int(header))
    except ValueError:
        return None


class RetryTransport(httpx.AsyncBaseTransport):
    """Replays requests that failed at the gateway before reaching the database.

    Auth failures are never retried here; they surface to the session layer.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        *,
        max_retries: int = 2,
        sleep=asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._transport = transport
        self._max_retries = max(0, max_retries)
        self._sleep = sleep
        self._logger = logger or LOGGER

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        body = request.content
        retries = 0

        while True:
            next_request = httpx.Request(
                method=request.method,
                url=request.url,
                headers=request.headers,
                content=body,
                extensions=request.extensions,
            )
            response = await self._transport.handle_async_request(next_request)

            if retries >= self._max_retries:
                return response

            if response.status_code == 429:
                wait_seconds = _retry_after_seconds(response.headers.get("retry-after"))
                if wait_seconds is None:
                    wait_seconds = 1
            elif response.status_code in RETRYABLE_GATEWAY_STATUSES:
                wait_seconds = 2**retries
            else:
                return response

            self._logger.warning(
                "Retrying %s after %ss (%s %s)",
                response.status_code,
                wait_seconds,
                request.method,
                request.url,
            )
            await response.aclose()
            await self._sleep(wait_seconds)
            retries += 1

    async def aclose(self) -> None:
        await self._transport.aclose()


def error_from_response(response: httpx.Response) -> BackendError:
    """Build a BackendError from a REST or auth error body.

    REST errors carry ``code``/``message``/``details``/``hint``; auth errors
    carry ``error``/``error_description`` or ``error_code``/``msg``.
    """
    try:
        payload = response.json()
    except ValueError:
        payload = {"message": response.text}
    if not isinstance(payload, dict):
        payload = {"message": str(payload)}

    message = (
        payload.get("message")
        or payload.get("msg")
        or payload.get("error_description")
        or payload.get("error")
        or f"Request failed with status {response.status_code}."
    )
    code = payload.get("code") if isinstance(payload.get("code"), str) else None
    code = payload.get("error_code") or code
    if code is None and isinstance(payload.get("error"), str):
        code = payload["error"]

    details = {key: payload[key] for key in ("details", "hint") if payload.get(key)}
    return BackendError(
        str(message),
        status=response.status_code,
        code=code,
        details=details or None,
    )


def build_http_client(
    base_url: str,
    api_key: str,
    *,
    timeout: float = 30.0,
    max_retries: int = 2,
    debug: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    async def log_request(request: httpx.Request) -> None:
        if not debug:
            return
        LOGGER.info("Backend request %s %s", request.method, request.url)

    async def log_response(response: httpx.Response) -> None:
        if not debug:
            return
        LOGGER.info(
            "Backend response %s %s -> %s",
            response.request.method,
            response.request.url,
            response.status_code,
        )
        if response.status_code >= 400:
            body = await response.aread()
            text = body.decode("utf-8", errors="replace")
            if len(text) > 1000:
                text = text[:1000] + "...<truncated>"
            LOGGER.warning("Backend error body: %s", text)

    retry_transport = RetryTransport(
        transport or httpx.AsyncHTTPTransport(),
        max_retries=max_retries,
        logger=LOGGER,
    )
    return httpx.AsyncClient(
        base_url=base_url,
        headers={"apikey": api_key, "X-Client-Info": CLIENT_INFO},
        timeout=timeout,
        transport=retry_transport,
        event_hooks={"request": [log_request], "response": [log_response]},
    )
