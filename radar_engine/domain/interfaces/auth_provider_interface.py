"""
Abstract interface for site-specific authentication providers.
"""

from abc import ABC, abstractmethod
from typing import Any

from radar_engine.domain.entities.extraction import AuthContextResult
from radar_engine.domain.entities.site_config import SiteConfig


class AuthProviderInterface(ABC):
    """
    Abstract base class for custom auth providers.

    A site config names its provider through ``custom_auth_provider``; the
    auth strategy tries the provider before pooled sessions.
    """

    @abstractmethod
    async def get_context(
        self,
        user_id: str,
        config: SiteConfig,
        browser: Any,
    ) -> AuthContextResult:
        """
        Build an authenticated context on the shared browser.

        Args:
            user_id: User the scrape runs for.
            config: Site being scraped.
            browser: Shared Playwright browser from the current lease.

        Returns:
            AuthContextResult whose cleanup never closes ``browser``.
        """
        pass
