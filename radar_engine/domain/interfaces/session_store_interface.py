"""
Abstract interface for stored login sessions.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from radar_engine.domain.entities.session import SessionStatus, StoredSession


class SessionStoreInterface(ABC):
    """
    Abstract base class for session storage.

    Defines the contract for persisting browser storage states together
    with their health bookkeeping.
    """

    @abstractmethod
    async def list_sessions(
        self,
        user_id: str,
        site: str,
        status: Optional[SessionStatus] = None,
    ) -> List[StoredSession]:
        """
        List sessions for a user and site.

        Args:
            user_id: Owning user.
            site: Site identifier.
            status: Only return sessions in this status, if given.

        Returns:
            Matching sessions (possibly empty).
        """
        pass

    @abstractmethod
    async def get(self, session_id: str) -> Optional[StoredSession]:
        """
        Retrieve a session by ID.

        Returns:
            The StoredSession if found, None otherwise.
        """
        pass

    @abstractmethod
    async def save(self, session: StoredSession) -> None:
        """
        Insert or replace a session.

        Args:
            session: Session to persist.
        """
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """
        Delete a session.

        Returns:
            True if a session was removed.
        """
        pass
