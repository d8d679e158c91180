from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import asdict
from pathlib import Path

from .models import Session

DEFAULT_STORAGE_KEY = "promptshare.auth.token"


class SessionStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> Session | None:
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, session: Session) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    async def get(self, key: str) -> Session | None:
        return self._sessions.get(key)

    async def set(self, key: str, session: Session) -> None:
        self._sessions[key] = session

    async def delete(self, key: str) -> None:
        self._sessions.pop(key, None)


class FileSessionStore(SessionStore):
    """Sessions persisted as one JSON object per storage key."""

    def __init__(self, path: str | Path = ".session.json") -> None:
        self._path = Path(path)

    async def get(self, key: str) -> Session | None:
        payload = self._read_all().get(key)
        if payload is None:
            return None
        return Session(**payload)

    async def set(self, key: str, session: Session) -> None:
        all_sessions = self._read_all()
        all_sessions[key] = asdict(session)
        self._write_all(all_sessions)

    async def delete(self, key: str) -> None:
        all_sessions = self._read_all()
        if all_sessions.pop(key, None) is None:
            return
        self._write_all(all_sessions)

    def _read_all(self) -> dict[str, dict]:
        if not self._path.exists():
            return {}

        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise RuntimeError("Session store file is invalid; expected top-level JSON object.")
        return raw

    def _write_all(self, payload: dict[str, dict]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
