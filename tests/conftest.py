import pytest

from interceptor.coordinator import RefreshCoordinator
from interceptor.executor import CallExecutor
from tests.session_helpers import FakeAuth, NavigationRecorder


@pytest.fixture
def fake_auth() -> FakeAuth:
    return FakeAuth()


@pytest.fixture
def navigation() -> NavigationRecorder:
    return NavigationRecorder()


@pytest.fixture
def coordinator(fake_auth, navigation) -> RefreshCoordinator:
    return RefreshCoordinator(fake_auth, navigate=navigation)


@pytest.fixture
def executor(coordinator) -> CallExecutor:
    return CallExecutor(coordinator)


@pytest.fixture
def anon_key() -> str:
    return "eyJhbGciOiJIUzI1NiJ9.anon.signature"


@pytest.fixture
def backend_env(monkeypatch, anon_key) -> None:
    monkeypatch.setenv("PROMPTSHARE_BACKEND_URL", "https://project.supabase.co")
    monkeypatch.setenv("PROMPTSHARE_ANON_KEY", anon_key)
    for key in (
        "PROMPTSHARE_MAX_RETRIES",
        "PROMPTSHARE_HTTP_RETRIES",
        "PROMPTSHARE_TIMEOUT",
        "PROMPTSHARE_SESSION_FILE",
        "PROMPTSHARE_LOGIN_ROUTE",
        "PROMPTSHARE_REFRESH_ON_NETWORK_ERROR",
        "PROMPTSHARE_REFRESH_LEAD",
        "PROMPTSHARE_DEBUG",
    ):
        monkeypatch.delenv(key, raising=False)
