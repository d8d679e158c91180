from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, ValidationError

from .constants import (
    DEFAULT_LOGIN_ROUTE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REFRESH_LEAD_SECONDS,
    LOGGER,
)


@dataclass(frozen=True)
class Settings:
    backend_url: str
    anon_key: str
    max_retries: int = DEFAULT_MAX_RETRIES
    http_retries: int = 2
    timeout: float = 30.0
    session_file: str | None = None
    login_route: str = DEFAULT_LOGIN_ROUTE
    refresh_on_network_error: bool = True
    refresh_lead_seconds: int = DEFAULT_REFRESH_LEAD_SECONDS
    debug: bool = True


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _clean(value: str) -> str:
    return value.strip().strip("\"'")


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a number.")


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    load_dotenv(env_path, override=True)


def validate_env() -> None:
    required = ("PROMPTSHARE_BACKEND_URL", "PROMPTSHARE_ANON_KEY")
    missing = [key for key in required if not _clean(os.getenv(key, ""))]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    raw_url = _clean(os.getenv("PROMPTSHARE_BACKEND_URL", ""))
    try:
        AnyHttpUrl(raw_url)
    except ValidationError as error:
        raise RuntimeError(
            "PROMPTSHARE_BACKEND_URL must be a valid http(s) URL (for example: "
            "https://your-project-id.supabase.co)."
        ) from error

    anon_key = _clean(os.getenv("PROMPTSHARE_ANON_KEY", ""))
    if not anon_key.startswith("eyJ"):
        LOGGER.error("PROMPTSHARE_ANON_KEY does not look like a JWT.")
        raise RuntimeError("PROMPTSHARE_ANON_KEY must be a JWT starting with 'eyJ'.")


def load_settings() -> Settings:
    validate_env()
    backend_url = str(AnyHttpUrl(_clean(os.getenv("PROMPTSHARE_BACKEND_URL", "")))).rstrip("/")
    session_file = os.getenv("PROMPTSHARE_SESSION_FILE", "").strip() or None
    return Settings(
        backend_url=backend_url,
        anon_key=_clean(os.getenv("PROMPTSHARE_ANON_KEY", "")),
        max_retries=_get_env_int("PROMPTSHARE_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        http_retries=_get_env_int("PROMPTSHARE_HTTP_RETRIES", 2),
        timeout=_get_env_float("PROMPTSHARE_TIMEOUT", 30.0),
        session_file=session_file,
        login_route=os.getenv("PROMPTSHARE_LOGIN_ROUTE", DEFAULT_LOGIN_ROUTE).strip() or DEFAULT_LOGIN_ROUTE,
        refresh_on_network_error=is_truthy(os.getenv("PROMPTSHARE_REFRESH_ON_NETWORK_ERROR", "1")),
        refresh_lead_seconds=_get_env_int("PROMPTSHARE_REFRESH_LEAD", DEFAULT_REFRESH_LEAD_SECONDS),
        debug=is_truthy(os.getenv("PROMPTSHARE_DEBUG", "1")),
    )


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("PROMPTSHARE_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
        logging.getLogger("promptshare.backend").setLevel(logging.INFO)
    return debug_enabled
