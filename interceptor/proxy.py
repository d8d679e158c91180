"""Drop-in wrappers that route backend calls through the CallExecutor.

Every method result falls into one of three kinds:

- single-shot awaitable (coroutine or future): the terminal call of a chain,
  run through the executor; a retry calls the method again with the same
  arguments;
- plain value: returned untouched;
- any other object: an intermediate query builder, wrapped again so the chain
  keeps being intercepted. A wrapped builder that defines ``__await__`` is
  awaitable itself and each await goes through the executor.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from typing import Any, Callable

from backend.models import Result

from .constants import DEFAULT_REFRESH_LEAD_SECONDS, WRAPPED_AUTH_METHODS
from .executor import CallExecutor

PLAIN_TYPES = (str, bytes, bytearray, int, float, complex, bool, dict, list, tuple, set, frozenset)


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _is_single_shot(value: object) -> bool:
    return inspect.iscoroutine(value) or isinstance(value, asyncio.Future)


def _replay(first: Any, call: Callable[[], Any]) -> Callable[[], Any]:
    """Operation that hands out ``first`` once, then calls ``call`` for retries."""
    pending = [first]

    def operation():
        if pending:
            return pending.pop()
        return call()

    return operation


async def _await_target(target: Any) -> Result:
    return await target


def wrap(target: Any, executor: CallExecutor, path: str = "") -> "ChainProxy":
    return ChainProxy(target, executor, path)


class ChainProxy:
    __slots__ = ("_target", "_executor", "_path")

    def __init__(self, target: Any, executor: CallExecutor, path: str = "") -> None:
        object.__setattr__(self, "_target", target)
        object.__setattr__(self, "_executor", executor)
        object.__setattr__(self, "_path", path)

    def __getattr__(self, name: str) -> Any:
        value = getattr(self._target, name)
        if not callable(value):
            return value
        return self._intercept(value, _join(self._path, name))

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self._target, name, value)

    def __await__(self):
        if not hasattr(type(self._target), "__await__"):
            raise TypeError(f"object {type(self._target).__name__} can't be used in 'await' expression")
        target = self._target
        return self._executor.execute_with_retry(
            lambda: _await_target(target), f"{self._path}()"
        ).__await__()

    def __repr__(self) -> str:
        return f"<ChainProxy {self._path or '<root>'} {self._target!r}>"

    def _intercept(self, method: Callable[..., Any], path: str) -> Callable[..., Any]:
        executor = self._executor

        @functools.wraps(method)
        def call(*args: Any, **kwargs: Any) -> Any:
            result = method(*args, **kwargs)
            if _is_single_shot(result):
                return executor.execute_with_retry(
                    _replay(result, lambda: method(*args, **kwargs)), f"{path}()"
                )
            if result is None or isinstance(result, PLAIN_TYPES):
                return result
            return ChainProxy(result, executor, path)

        return call


class WrappedAuth:
    """Auth surface with each one-shot operation wrapped individually.

    ``on_auth_state_change`` registers a listener and passes through, as does
    anything else not listed in WRAPPED_AUTH_METHODS.
    """

    def __init__(self, auth: Any, executor: CallExecutor) -> None:
        self._auth = auth
        self._executor = executor

    def __getattr__(self, name: str) -> Any:
        value = getattr(self._auth, name)
        if name not in WRAPPED_AUTH_METHODS or not callable(value):
            return value

        executor = self._executor
        label = f"auth.{name}()"

        @functools.wraps(value)
        def call(*args: Any, **kwargs: Any):
            return executor.execute_with_retry(lambda: value(*args, **kwargs), label)

        return call

    def on_auth_state_change(self, callback):
        return self._auth.on_auth_state_change(callback)


class WrappedClient(ChainProxy):
    __slots__ = ("auth", "refresh_lead_seconds")

    def __init__(
        self,
        client: Any,
        executor: CallExecutor,
        *,
        refresh_lead_seconds: float = DEFAULT_REFRESH_LEAD_SECONDS,
    ) -> None:
        super().__init__(client, executor)
        object.__setattr__(self, "auth", WrappedAuth(client.auth, executor))
        object.__setattr__(self, "refresh_lead_seconds", refresh_lead_seconds)

    @property
    def executor(self) -> CallExecutor:
        return self._executor

    async def aclose(self) -> None:
        await self._target.aclose()

    def rpc(self, function_name: str, params: dict | None = None):
        client = self._target
        return self._executor.execute_with_retry(
            lambda: client.rpc(function_name, params), f"rpc({function_name})"
        )


def wrap_client(
    client: Any,
    executor: CallExecutor,
    *,
    refresh_lead_seconds: float = DEFAULT_REFRESH_LEAD_SECONDS,
) -> WrappedClient:
    return WrappedClient(client, executor, refresh_lead_seconds=refresh_lead_seconds)
