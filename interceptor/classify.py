"""Failure classification for backend call results.

Structured fields (exception type, ``code``, ``status``) are checked first.
Message matching is the fallback for collaborators that only report text.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

import httpx

AUTH_EXPIRED_CODES = frozenset({"PGRST301"})
AUTH_EXPIRED_STATUSES = frozenset({401})
AUTH_EXPIRED_PHRASES = ("JWT expired", "jwt expired")

NETWORK_CODES = frozenset({"NETWORK_ERROR"})
NETWORK_PHRASES = ("Failed to fetch", "fetch", "network")

UNRECOVERABLE_REFRESH_CODES = frozenset({"refresh_token_not_found", "invalid_grant"})
UNRECOVERABLE_REFRESH_PHRASES = ("refresh_token_not_found", "invalid_grant")


class ErrorKind(str, Enum):
    AUTH_EXPIRED = "auth_expired"
    NETWORK = "network"
    OTHER = "other"


def _field(error: object, *names: str) -> object:
    for name in names:
        if isinstance(error, Mapping):
            value = error.get(name)
        else:
            value = getattr(error, name, None)
        if value is not None:
            return value
    return None


def error_message(error: object) -> str:
    message = _field(error, "message")
    if isinstance(message, str):
        return message
    if isinstance(error, Mapping):
        return ""
    return str(error)


def classify_error(error: object) -> ErrorKind:
    if error is None:
        return ErrorKind.OTHER
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return ErrorKind.NETWORK

    code = _field(error, "code")
    if not isinstance(code, str):
        code = None
    if code in AUTH_EXPIRED_CODES:
        return ErrorKind.AUTH_EXPIRED
    if code in NETWORK_CODES:
        return ErrorKind.NETWORK

    status = _field(error, "status", "status_code")
    if isinstance(status, int) and status in AUTH_EXPIRED_STATUSES:
        return ErrorKind.AUTH_EXPIRED

    message = error_message(error)
    if any(phrase in message for phrase in AUTH_EXPIRED_PHRASES):
        return ErrorKind.AUTH_EXPIRED
    if any(phrase in message for phrase in NETWORK_PHRASES):
        return ErrorKind.NETWORK
    return ErrorKind.OTHER


def is_unrecoverable_refresh_error(error: object) -> bool:
    """True when the refresh credential itself is gone and only a new sign-in helps."""
    if error is None:
        return False
    code = _field(error, "code")
    if isinstance(code, str) and code in UNRECOVERABLE_REFRESH_CODES:
        return True
    message = error_message(error)
    return any(phrase in message for phrase in UNRECOVERABLE_REFRESH_PHRASES)
