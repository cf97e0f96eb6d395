# Auth Package
"""
Stored sessions, session health scoring and auth context resolution.
"""

from radar_engine.infrastructure.auth.auth_strategy import AuthStrategy
from radar_engine.infrastructure.auth.session_pool import SessionPool
from radar_engine.infrastructure.auth.session_store import (
    InMemorySessionStore,
    JsonFileSessionStore,
)

__all__ = [
    "AuthStrategy",
    "SessionPool",
    "InMemorySessionStore",
    "JsonFileSessionStore",
]
