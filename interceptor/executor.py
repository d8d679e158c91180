from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from backend.models import Result

from .classify import ErrorKind, classify_error
from .constants import DEFAULT_MAX_RETRIES, LOGGER
from .coordinator import RefreshCoordinator

Operation = Callable[[], Awaitable[Result]]


@dataclass
class CallAttempt:
    label: str
    max_retries: int
    attempt: int = 1

    @property
    def retries_left(self) -> int:
        return self.max_retries + 1 - self.attempt


class CallExecutor:
    """Runs backend operations, refreshing the session and replaying once on expiry."""

    def __init__(
        self,
        coordinator: RefreshCoordinator,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        refresh_on_network_error: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._max_retries = max(0, max_retries)
        self._refresh_on_network_error = refresh_on_network_error
        self._logger = logger or LOGGER

    @property
    def coordinator(self) -> RefreshCoordinator:
        return self._coordinator

    async def execute_with_retry(
        self,
        operation: Operation,
        label: str = "query",
        max_retries: int | None = None,
    ) -> Result:
        budget = self._max_retries if max_retries is None else max(0, max_retries)
        call = CallAttempt(label=label, max_retries=budget)

        while True:
            self._logger.debug(
                "Executing %s (attempt %s/%s)", label, call.attempt, call.max_retries + 1
            )
            try:
                result = await operation()
            except Exception as error:
                self._logger.error("Exception during %s: %s", label, error)
                result = Result(data=None, error=error)

            error = getattr(result, "error", None)
            if error is None:
                self._logger.debug("%s succeeded", label)
                return result

            kind = classify_error(error)
            if not self._should_refresh(kind):
                self._logger.error("%s failed (%s): %s", label, kind.value, error)
                return result

            if call.retries_left <= 0:
                self._logger.warning("Max retries reached for %s", label)
                return result

            self._logger.info("%s failed (%s), refreshing session before retry", label, kind.value)
            if not await self._coordinator.request_refresh():
                self._logger.error("Failed to refresh session for %s", label)
                return result

            call.attempt += 1
            self._logger.info("Session refreshed, retrying %s", label)

    def _should_refresh(self, kind: ErrorKind) -> bool:
        if kind is ErrorKind.AUTH_EXPIRED:
            return True
        return kind is ErrorKind.NETWORK and self._refresh_on_network_error
