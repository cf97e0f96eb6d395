"""
Session store implementations.

- InMemorySessionStore: process-local dict, used by tests and single runs
- JsonFileSessionStore: one JSON document on disk, rewritten atomically
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Dict, List, Optional

from radar_engine.domain.entities.session import SessionStatus, StoredSession
from radar_engine.domain.interfaces.session_store_interface import SessionStoreInterface
from radar_engine.utils.exceptions import ConfigurationError
from radar_engine.utils.logger import get_logger

logger = get_logger(__name__)


def _matches(
    session: StoredSession,
    user_id: str,
    site: str,
    status: Optional[SessionStatus],
) -> bool:
    return (
        session.user_id == user_id
        and session.site == site
        and (status is None or session.status == status)
    )


class InMemorySessionStore(SessionStoreInterface):
    """Session store backed by a dict."""

    def __init__(self, sessions: Optional[List[StoredSession]] = None):
        self._sessions: Dict[str, StoredSession] = {}
        for session in sessions or []:
            self._sessions[session.session_id] = session

    async def list_sessions(
        self,
        user_id: str,
        site: str,
        status: Optional[SessionStatus] = None,
    ) -> List[StoredSession]:
        return [s for s in self._sessions.values() if _matches(s, user_id, site, status)]

    async def get(self, session_id: str) -> Optional[StoredSession]:
        return self._sessions.get(session_id)

    async def save(self, session: StoredSession) -> None:
        self._sessions[session.session_id] = session

    async def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None


class JsonFileSessionStore(SessionStoreInterface):
    """
    Session store persisted as a JSON file.

    The file holds ``{"sessions": [...]}``. Writes go to a temporary file
    that replaces the original, so a crash never leaves a half-written
    store behind.

    Attributes:
        path: Location of the JSON file.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self._cache: Optional[Dict[str, StoredSession]] = None

    def _load(self) -> Dict[str, StoredSession]:
        if self._cache is not None:
            return self._cache

        if not self.path.exists():
            self._cache = {}
            return self._cache

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            sessions = [StoredSession.from_dict(item) for item in data.get("sessions", [])]
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            raise ConfigurationError(
                f"Corrupt session store {self.path}: {e}",
                context={"path": str(self.path)},
            ) from e

        self._cache = {s.session_id: s for s in sessions}
        logger.debug(f"Loaded {len(self._cache)} sessions from {self.path}")
        return self._cache

    def _write(self, sessions: Dict[str, StoredSession]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        payload = {"sessions": [s.to_dict() for s in sessions.values()]}
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)

    async def list_sessions(
        self,
        user_id: str,
        site: str,
        status: Optional[SessionStatus] = None,
    ) -> List[StoredSession]:
        async with self._lock:
            return [s for s in self._load().values() if _matches(s, user_id, site, status)]

    async def get(self, session_id: str) -> Optional[StoredSession]:
        async with self._lock:
            return self._load().get(session_id)

    async def save(self, session: StoredSession) -> None:
        async with self._lock:
            sessions = self._load()
            sessions[session.session_id] = session
            self._write(sessions)

    async def delete(self, session_id: str) -> bool:
        async with self._lock:
            sessions = self._load()
            if sessions.pop(session_id, None) is None:
                return False
            self._write(sessions)
            return True
