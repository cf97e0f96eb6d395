"""
Session pool with health scoring.

Every stored session carries a health score from 0 to 100. Scrape outcomes
move the score: a good page resets it, blocks and CAPTCHAs cost a little,
login walls and checkpoints cost a lot. The pool hands out the healthiest
ACTIVE session and retires sessions whose score reaches zero.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from radar_engine.domain.entities.diagnosis import PageType
from radar_engine.domain.entities.session import MAX_HEALTH_SCORE, SessionStatus, StoredSession
from radar_engine.domain.interfaces.session_store_interface import SessionStoreInterface
from radar_engine.utils.logger import get_logger

logger = get_logger(__name__)

DEGRADED_THRESHOLD = 50
DEFAULT_PENALTY = 10

HEALTH_PENALTIES: Dict[PageType, int] = {
    PageType.BLOCKED: 20,
    PageType.CAPTCHA: 20,
    PageType.LOGIN_REQUIRED: 50,
    PageType.CHECKPOINT: 50,
}

SUCCESS_PAGE_TYPES = frozenset({PageType.CONTENT, PageType.NO_RESULTS})


def apply_result(session: StoredSession, page_type: PageType) -> StoredSession:
    """Update a session's health bookkeeping in place for one scrape outcome."""
    if page_type in SUCCESS_PAGE_TYPES:
        session.health_score = MAX_HEALTH_SCORE
        session.consecutive_failures = 0
    else:
        penalty = HEALTH_PENALTIES.get(page_type, DEFAULT_PENALTY)
        session.health_score = max(0, session.health_score - penalty)
        session.consecutive_failures += 1

    session.last_page_type = page_type
    session.last_used_at = datetime.now(timezone.utc)

    if session.health_score == 0 and session.status == SessionStatus.ACTIVE:
        session.status = SessionStatus.NEEDS_REAUTH

    return session


class SessionPool:
    """
    Chooses sessions for scrapes and records how they fared.

    Attributes:
        store: Backing session store.
    """

    def __init__(self, store: SessionStoreInterface):
        self.store = store

    async def get_best_session(self, user_id: str, site: str) -> Optional[StoredSession]:
        """
        Return the ACTIVE session with the highest health score.

        Ties go to the most recently used session. Logs a warning when every
        session is degraded, but still returns the best one.
        """
        sessions = await self.store.list_sessions(user_id, site, status=SessionStatus.ACTIVE)
        if not sessions:
            return None

        best = max(
            sessions,
            key=lambda s: (s.health_score, s.last_used_at or datetime.min.replace(tzinfo=timezone.utc)),
        )

        if best.health_score < DEGRADED_THRESHOLD:
            logger.warning(
                f"SESSION_POOL: All sessions degraded for {user_id}/{site}. "
                f"Best score: {best.health_score}"
            )

        return best

    async def report_result(self, session_id: str, page_type: PageType) -> None:
        """Apply one scrape outcome to a session's health score."""
        session = await self.store.get(session_id)
        if session is None:
            logger.debug(f"SESSION_POOL: Unknown session {session_id}, result ignored")
            return

        previous_status = session.status
        apply_result(session, page_type)
        await self.store.save(session)

        if session.status != previous_status:
            logger.warning(
                f"SESSION_POOL: Session {session_id} ({session.site}) retired: "
                f"{previous_status.value} -> {session.status.value}"
            )
        else:
            logger.debug(
                f"SESSION_POOL: {session_id} {page_type.value} -> score {session.health_score}"
            )

    async def get_pool_status(self, user_id: str, site: str) -> List[StoredSession]:
        """All sessions for a user and site, in any status."""
        return await self.store.list_sessions(user_id, site)
