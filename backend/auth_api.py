from __future__ import annotations

import base64
import hashlib
import inspect
import secrets
import urllib.parse
from typing import Any, Callable

import httpx

from .constants import AUTH_PATH, LOGGER, SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED, USER_UPDATED
from .errors import BackendError
from .http import error_from_response
from .models import Result, Session
from .session_store import DEFAULT_STORAGE_KEY, MemorySessionStore, SessionStore
from .urls import append_query_params

AuthStateCallback = Callable[[str, "Session | None"], Any]


def generate_code_verifier() -> str:
    while True:
        verifier = secrets.token_urlsafe(64)
        if 43 <= len(verifier) <= 128:
            return verifier


def generate_code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")


def _session_missing() -> BackendError:
    return BackendError("Auth session missing!", status=400, code="session_missing")


class Subscription:
    def __init__(self, listeners: list[AuthStateCallback], callback: AuthStateCallback) -> None:
        self._listeners = listeners
        self.callback = callback

    def unsubscribe(self) -> None:
        if self.callback in self._listeners:
            self._listeners.remove(self.callback)


class AuthClient:
    """Async client for the hosted auth API.

    Sessions are persisted in a SessionStore under a single storage key.
    HTTP error statuses resolve to ``Result(error=BackendError)``; transport
    failures raise ``httpx.TransportError``.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        store: SessionStore | None = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
    ) -> None:
        self._http = http
        self._store = store or MemorySessionStore()
        self._storage_key = storage_key
        self._listeners: list[AuthStateCallback] = []
        self._code_verifier: str | None = None

    @property
    def store(self) -> SessionStore:
        return self._store

    async def current_session(self) -> Session | None:
        return await self._store.get(self._storage_key)

    async def access_token(self) -> str | None:
        session = await self.current_session()
        return session.access_token if session else None

    def on_auth_state_change(self, callback: AuthStateCallback) -> Subscription:
        self._listeners.append(callback)
        return Subscription(self._listeners, callback)

    async def health(self) -> Result:
        payload, error = await self._request("GET", "/health")
        return Result(data=payload or None, error=error)

    async def get_session(self) -> Result:
        return Result(data={"session": await self.current_session()})

    async def get_user(self) -> Result:
        session = await self.current_session()
        if session is None:
            return Result(data={"user": None}, error=_session_missing())

        payload, error = await self._request("GET", "/user", access_token=session.access_token)
        if error is not None:
            return Result(data={"user": None}, error=error)
        return Result(data={"user": payload})

    async def refresh_session(self, refresh_token: str | None = None) -> Result:
        if refresh_token is None:
            session = await self.current_session()
            refresh_token = session.refresh_token if session else None
        if not refresh_token:
            return Result(data={"session": None, "user": None}, error=_session_missing())

        payload, error = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        if error is not None:
            return Result(data={"session": None, "user": None}, error=error)
        return await self._save_session(payload, TOKEN_REFRESHED)

    async def sign_in_with_password(self, credentials: dict) -> Result:
        body = {key: credentials[key] for key in ("email", "phone", "password") if key in credentials}
        payload, error = await self._request(
            "POST", "/token", params={"grant_type": "password"}, json=body
        )
        if error is not None:
            return Result(data={"session": None, "user": None}, error=error)
        return await self._save_session(payload, SIGNED_IN)

    async def sign_up(self, credentials: dict) -> Result:
        options = credentials.get("options") or {}
        body = {key: credentials[key] for key in ("email", "phone", "password") if key in credentials}
        if options.get("data"):
            body["data"] = options["data"]
        params = {}
        if options.get("email_redirect_to"):
            params["redirect_to"] = options["email_redirect_to"]

        payload, error = await self._request("POST", "/signup", params=params or None, json=body)
        if error is not None:
            return Result(data={"session": None, "user": None}, error=error)
        if payload.get("access_token"):
            return await self._save_session(payload, SIGNED_IN)
        # Email confirmation pending: no session yet.
        return Result(data={"session": None, "user": payload.get("user", payload)})

    async def sign_in_with_oauth(self, options: dict) -> Result:
        provider = options.get("provider")
        if not provider:
            return Result(
                data={"provider": None, "url": None},
                error=BackendError("OAuth provider is required.", status=400, code="validation_failed"),
            )

        self._code_verifier = generate_code_verifier()
        query = {
            "provider": provider,
            "code_challenge": generate_code_challenge(self._code_verifier),
            "code_challenge_method": "s256",
        }
        if options.get("redirect_to"):
            query["redirect_to"] = options["redirect_to"]
        if options.get("scopes"):
            query["scopes"] = options["scopes"]

        base = str(self._http.base_url).rstrip("/")
        url = append_query_params(f"{base}{AUTH_PATH}/authorize", query)
        return Result(data={"provider": provider, "url": url})

    async def exchange_code_for_session(self, auth_code: str) -> Result:
        if self._code_verifier is None:
            return Result(
                data={"session": None, "user": None},
                error=BackendError("No code verifier for this flow.", status=400, code="bad_code_verifier"),
            )

        payload, error = await self._request(
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            json={"auth_code": auth_code, "code_verifier": self._code_verifier},
        )
        if error is not None:
            return Result(data={"session": None, "user": None}, error=error)
        self._code_verifier = None
        return await self._save_session(payload, SIGNED_IN)

    async def reset_password_for_email(self, email: str, options: dict | None = None) -> Result:
        params = None
        if options and options.get("redirect_to"):
            params = {"redirect_to": options["redirect_to"]}

        _, error = await self._request("POST", "/recover", params=params, json={"email": email})
        return Result(data={}, error=error)

    async def update_user(self, attributes: dict) -> Result:
        session = await self.current_session()
        if session is None:
            return Result(data={"user": None}, error=_session_missing())

        payload, error = await self._request(
            "PUT", "/user", json=attributes, access_token=session.access_token
        )
        if error is not None:
            return Result(data={"user": None}, error=error)

        session.user = payload
        await self._store.set(self._storage_key, session)
        await self._emit(USER_UPDATED, session)
        return Result(data={"user": payload})

    async def sign_out(self) -> Result:
        """Revoke the session remotely and always clear it locally."""
        session = await self.current_session()
        error = None
        try:
            if session is not None:
                _, error = await self._request(
                    "POST",
                    "/logout",
                    params={"scope": "global"},
                    access_token=session.access_token,
                )
                # An already expired or revoked session is signed out anyway.
                if error is not None and error.status in {401, 403, 404}:
                    error = None
        finally:
            await self._store.delete(self._storage_key)
            await self._emit(SIGNED_OUT, None)
        return Result(data=None, error=error)

    async def _save_session(self, payload: dict, event: str) -> Result:
        session = Session.from_payload(payload)
        await self._store.set(self._storage_key, session)
        await self._emit(event, session)
        return Result(data={"session": session, "user": session.user})

    async def _emit(self, event: str, session: Session | None) -> None:
        LOGGER.debug("Auth state changed: %s", event)
        for callback in list(self._listeners):
            try:
                outcome = callback(event, session)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                LOGGER.exception("Auth state listener failed for %s", event)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: dict | None = None,
        access_token: str | None = None,
    ) -> tuple[dict, BackendError | None]:
        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        url = f"{AUTH_PATH}{path}"
        if params:
            url = f"{url}?{urllib.parse.urlencode(params)}"
        response = await self._http.request(method, url, json=json, headers=headers)
        if response.status_code >= 400:
            return {}, error_from_response(response)
        if not response.content:
            return {}, None
        payload = response.json()
        return payload if isinstance(payload, dict) else {"value": payload}, None
