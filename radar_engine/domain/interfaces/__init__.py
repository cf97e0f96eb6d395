# Domain Interfaces Package
"""
Abstract base classes defining contracts for infrastructure implementations.
"""

from .auth_provider_interface import AuthProviderInterface
from .captcha_interface import CaptchaSolveResult, CaptchaSolverInterface
from .session_store_interface import SessionStoreInterface

__all__ = [
    "AuthProviderInterface",
    "CaptchaSolveResult",
    "CaptchaSolverInterface",
    "SessionStoreInterface",
]
