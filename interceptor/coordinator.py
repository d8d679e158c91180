from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable

from .classify import is_unrecoverable_refresh_error
from .constants import DEFAULT_LOGIN_ROUTE, LOGGER

Navigate = Callable[[str], Any]


@dataclass
class PendingRefresh:
    active: bool = False
    future: asyncio.Task | None = None
    waiters: deque[asyncio.Future] = field(default_factory=deque)


def _session_from(result: object) -> object:
    data = getattr(result, "data", None)
    if isinstance(data, dict):
        return data.get("session")
    return getattr(data, "session", None)


class RefreshCoordinator:
    """Runs at most one session refresh at a time and shares its outcome.

    Callers arriving while a refresh is in flight queue behind it and receive
    the same boolean result. The active flag is set before the first suspension
    point, which is enough on a single event loop; sharing an instance across
    threads would need a lock around it.
    """

    def __init__(
        self,
        auth,
        *,
        navigate: Navigate | None = None,
        login_route: str = DEFAULT_LOGIN_ROUTE,
        logger: logging.Logger | None = None,
    ) -> None:
        self._auth = auth
        self._navigate = navigate
        self._login_route = login_route
        self._logger = logger or LOGGER
        self._pending = PendingRefresh()
        self.refresh_count = 0

    @property
    def in_progress(self) -> bool:
        return self._pending.active

    @property
    def waiter_count(self) -> int:
        return len(self._pending.waiters)

    async def request_refresh(self) -> bool:
        pending = self._pending
        if pending.active:
            waiter = asyncio.get_running_loop().create_future()
            pending.waiters.append(waiter)
            self._logger.debug("Joining in-flight refresh (%s waiting)", len(pending.waiters))
            return await waiter

        pending.active = True
        success = False
        try:
            pending.future = asyncio.get_running_loop().create_task(self._perform_refresh())
            success = await pending.future
        except Exception as error:
            self._logger.error("Error during session refresh: %s", error)
        finally:
            waiters = list(pending.waiters)
            self._pending = PendingRefresh()
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_result(success)
        return success

    async def _perform_refresh(self) -> bool:
        self.refresh_count += 1
        self._logger.info("Refreshing session token")
        result = await self._auth.refresh_session()
        error = getattr(result, "error", None)

        if error is not None:
            self._logger.error("Session refresh failed: %s", error)
            if is_unrecoverable_refresh_error(error):
                await self._force_sign_out()
            return False

        if _session_from(result) is None:
            self._logger.error("No session returned from refresh")
            return False

        self._logger.info("Session token refreshed")
        return True

    async def _force_sign_out(self) -> None:
        self._logger.warning("Refresh token invalid, signing out and redirecting to %s", self._login_route)
        try:
            await self._auth.sign_out()
        except Exception as error:
            self._logger.error("Sign-out after failed refresh raised: %s", error)

        if self._navigate is None:
            return
        try:
            outcome = self._navigate(self._login_route)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as error:
            self._logger.error("Navigation to %s failed: %s", self._login_route, error)
