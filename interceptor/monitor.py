from __future__ import annotations

import asyncio
import logging
import time

from backend.constants import SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED

from .constants import DEFAULT_REFRESH_LEAD_SECONDS, LOGGER
from .coordinator import RefreshCoordinator


class SessionMonitor:
    """Refreshes the session shortly before it expires.

    Refreshes go through the shared coordinator, so a proactive refresh and a
    reactive one triggered by a failing call never run side by side.
    """

    def __init__(
        self,
        auth,
        coordinator: RefreshCoordinator,
        *,
        lead_seconds: float = DEFAULT_REFRESH_LEAD_SECONDS,
        sleep=asyncio.sleep,
        clock=time.time,
        logger: logging.Logger | None = None,
    ) -> None:
        self._auth = auth
        self._coordinator = coordinator
        self._lead_seconds = lead_seconds
        self._sleep = sleep
        self._clock = clock
        self._logger = logger or LOGGER
        self._subscription = None
        self._timer: asyncio.Task | None = None

    @property
    def scheduled(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        if self._subscription is None:
            self._subscription = self._auth.on_auth_state_change(self._on_auth_state_change)

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        await self._cancel_timer()

    async def _on_auth_state_change(self, event: str, session) -> None:
        expires_at = getattr(session, "expires_at", None)
        self._logger.info("Auth state changed: %s (expires_at=%s)", event, expires_at)

        if event in {SIGNED_IN, TOKEN_REFRESHED}:
            await self._cancel_timer()
            if expires_at is None:
                return
            delay = expires_at - self._lead_seconds - self._clock()
            if delay <= 0:
                return
            self._timer = asyncio.get_running_loop().create_task(self._refresh_later(delay))
        elif event == SIGNED_OUT:
            await self._cancel_timer()

    async def _refresh_later(self, delay: float) -> None:
        await self._sleep(delay)
        # Detach first: a successful refresh emits TOKEN_REFRESHED, which
        # schedules the next timer and must not cancel this task.
        self._timer = None
        self._logger.info("Proactively refreshing session token")
        if await self._coordinator.request_refresh():
            self._logger.info("Session token refreshed proactively")
        else:
            self._logger.error("Proactive session refresh failed")

    async def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is None or timer.done():
            return
        if timer is asyncio.current_task():
            return
        timer.cancel()
        try:
            await timer
        except asyncio.CancelledError:
            pass
