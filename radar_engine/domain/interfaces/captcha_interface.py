"""
Abstract interface for CAPTCHA solvers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class CaptchaSolveResult:
    """Outcome of a solve attempt."""

    success: bool
    solution: Optional[str] = None
    error: Optional[str] = None


class CaptchaSolverInterface(ABC):
    """
    Abstract base class for CAPTCHA solvers.

    The engine only consumes the pass/fail contract: whether a solver is
    configured, and whether it cleared the challenge on a given page.
    """

    @abstractmethod
    def is_enabled(self) -> bool:
        """
        Check whether a solving service is configured.

        Returns:
            True if ``auto_solve`` can be attempted.
        """
        pass

    @abstractmethod
    async def auto_solve(self, page: Any) -> CaptchaSolveResult:
        """
        Detect the CAPTCHA on the page, solve it and inject the answer.

        Args:
            page: Playwright page showing the challenge.

        Returns:
            CaptchaSolveResult describing the outcome. Never raises for
            service failures.
        """
        pass
