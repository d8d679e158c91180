from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Result:
    data: Any = None
    error: Any = None
    count: int | None = None

    def __iter__(self):
        yield self.data
        yield self.error


@dataclass
class Session:
    access_token: str
    refresh_token: str
    expires_in: int
    expires_at: float
    token_type: str = "bearer"
    user: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> "Session":
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        expires_in = payload.get("expires_in")
        expires_at = payload.get("expires_at")
        user = payload.get("user") or {}

        if not isinstance(access_token, str) or not access_token:
            raise RuntimeError("Session payload missing access_token.")
        if not isinstance(refresh_token, str) or not refresh_token:
            raise RuntimeError("Session payload missing refresh_token.")
        if not isinstance(expires_in, int):
            raise RuntimeError("Session payload missing expires_in.")
        if not isinstance(user, dict):
            raise RuntimeError("Session payload user must be an object.")
        if not isinstance(expires_at, (int, float)):
            expires_at = time.time() + expires_in

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
            expires_at=float(expires_at),
            token_type=payload.get("token_type", "bearer"),
            user=user,
        )
