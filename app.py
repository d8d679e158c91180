from __future__ import annotations

import asyncio
import sys

from backend.client import create_backend_client
from backend.session_store import FileSessionStore, MemorySessionStore
from interceptor.constants import APP_VERSION, LOGGER
from interceptor.coordinator import Navigate, RefreshCoordinator
from interceptor.env import Settings, load_env, load_settings, setup_logging
from interceptor.executor import CallExecutor
from interceptor.monitor import SessionMonitor
from interceptor.proxy import WrappedClient, wrap_client


def _log_navigation(route: str) -> None:
    LOGGER.warning("Session ended; redirect to %s", route)


def _raise(error) -> None:
    if isinstance(error, BaseException):
        raise error
    raise RuntimeError(str(error))


def create_client(
    settings: Settings | None = None,
    *,
    navigate: Navigate | None = None,
    transport=None,
) -> WrappedClient:
    """Build the backend client with transparent session refresh and retry."""
    if settings is None:
        load_env()
        setup_logging()
        settings = load_settings()

    if settings.session_file:
        store = FileSessionStore(settings.session_file)
    else:
        store = MemorySessionStore()

    raw = create_backend_client(
        settings.backend_url,
        settings.anon_key,
        store=store,
        timeout=settings.timeout,
        max_retries=settings.http_retries,
        debug=settings.debug,
        transport=transport,
    )
    coordinator = RefreshCoordinator(
        raw.auth,
        navigate=navigate or _log_navigation,
        login_route=settings.login_route,
    )
    executor = CallExecutor(
        coordinator,
        max_retries=settings.max_retries,
        refresh_on_network_error=settings.refresh_on_network_error,
    )
    LOGGER.info("Backend client ready for %s", settings.backend_url)
    return wrap_client(raw, executor, refresh_lead_seconds=settings.refresh_lead_seconds)


def start_session_monitor(client: WrappedClient, *, lead_seconds: float | None = None) -> SessionMonitor:
    if lead_seconds is None:
        lead_seconds = client.refresh_lead_seconds
    monitor = SessionMonitor(client.auth, client.executor.coordinator, lead_seconds=lead_seconds)
    monitor.start()
    return monitor


async def get_current_user(client: WrappedClient):
    result = await client.auth.get_user()
    if result.error is not None:
        LOGGER.error("Error getting current user: %s", result.error)
        _raise(result.error)
    return result.data["user"]


async def get_current_session(client: WrappedClient):
    result = await client.auth.get_session()
    if result.error is not None:
        LOGGER.error("Error getting current session: %s", result.error)
        _raise(result.error)
    return result.data["session"]


async def sign_out(client: WrappedClient) -> None:
    result = await client.auth.sign_out()
    if result.error is not None:
        _raise(result.error)


async def check_connection(client: WrappedClient, timeout: float = 8.0) -> bool:
    LOGGER.info("Testing backend connection...")
    try:
        result = await asyncio.wait_for(client.auth.health(), timeout)
    except asyncio.TimeoutError:
        LOGGER.error("Backend connection test timeout after %ss", timeout)
        return False
    except Exception as error:
        LOGGER.error("Backend connection test error: %s", error)
        return False

    if result.error is not None:
        LOGGER.error("Backend connection test failed: %s", result.error)
        return False
    LOGGER.info("Backend connection successful")
    return True


async def _run_check() -> bool:
    client = create_client()
    try:
        return await check_connection(client)
    finally:
        await client.aclose()


def main() -> None:
    print(f"PromptShare backend client {APP_VERSION}")
    ok = asyncio.run(_run_check())
    print("connection: ok" if ok else "connection: failed")
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
