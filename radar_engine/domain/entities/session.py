"""
StoredSession entity: one saved login for a (user, site) pair.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .diagnosis import PageType

MAX_HEALTH_SCORE = 100


class SessionStatus(str, Enum):
    """Lifecycle of a stored session."""

    ACTIVE = "ACTIVE"
    NEEDS_REAUTH = "NEEDS_REAUTH"
    EXPIRED = "EXPIRED"


@dataclass
class StoredSession:
    """A browser storage state (cookies + local storage) with health tracking."""

    session_id: str
    user_id: str
    site: str
    storage_state: Dict[str, Any] = field(default_factory=dict)
    account_label: str = "default"
    status: SessionStatus = SessionStatus.ACTIVE
    health_score: int = MAX_HEALTH_SCORE
    consecutive_failures: int = 0
    last_page_type: Optional[PageType] = None
    last_used_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.session_id:
            raise ValueError("StoredSession session_id cannot be empty")
        if not 0 <= self.health_score <= MAX_HEALTH_SCORE:
            raise ValueError(f"health_score must be between 0 and {MAX_HEALTH_SCORE}")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "site": self.site,
            "storage_state": self.storage_state,
            "account_label": self.account_label,
            "status": self.status.value,
            "health_score": self.health_score,
            "consecutive_failures": self.consecutive_failures,
            "last_page_type": self.last_page_type.value if self.last_page_type else None,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StoredSession":
        """Create from dictionary."""
        last_page_type = data.get("last_page_type")
        last_used_at = data.get("last_used_at")
        return cls(
            session_id=data["session_id"],
            user_id=data["user_id"],
            site=data["site"],
            storage_state=data.get("storage_state") or {},
            account_label=data.get("account_label") or "default",
            status=SessionStatus(data.get("status", SessionStatus.ACTIVE.value)),
            health_score=int(data.get("health_score", MAX_HEALTH_SCORE)),
            consecutive_failures=int(data.get("consecutive_failures", 0)),
            last_page_type=PageType(last_page_type) if last_page_type else None,
            last_used_at=datetime.fromisoformat(last_used_at) if last_used_at else None,
        )
