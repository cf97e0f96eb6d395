"""
Authentication strategy: pick the best browser context for a scrape.

Priority cascade:
1. The site's custom auth provider, if it names one
2. The healthiest pooled session (unless the site is anonymous)
3. Anonymous context, unless the site requires cookies
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from radar_engine.domain.entities.extraction import AuthContextResult, AuthSource
from radar_engine.domain.entities.site_config import SiteConfig
from radar_engine.domain.interfaces.auth_provider_interface import AuthProviderInterface
from radar_engine.infrastructure.auth.session_pool import SessionPool
from radar_engine.infrastructure.browser.anti_detection import random_user_agent, viewport_for
from radar_engine.utils.exceptions import AuthenticationRequiredError, ConfigurationError
from radar_engine.utils.logger import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page

logger = get_logger(__name__)


async def _close_quietly(target: Any, what: str) -> None:
    try:
        await target.close()
    except Exception as e:
        logger.debug(f"Ignoring error closing {what}: {e}")


class AuthStrategy:
    """
    Resolves an AuthContextResult for a (user, site) pair.

    Attributes:
        session_pool: Pool consulted for stored sessions (optional).
        providers: Custom auth providers keyed by the name used in
            ``SiteConfig.custom_auth_provider``.
    """

    def __init__(
        self,
        session_pool: Optional[SessionPool] = None,
        providers: Optional[Dict[str, AuthProviderInterface]] = None,
    ):
        self.session_pool = session_pool
        self.providers = dict(providers or {})

    def register_provider(self, name: str, provider: AuthProviderInterface) -> None:
        self.providers[name] = provider

    async def get_auth_context(
        self,
        user_id: str,
        config: SiteConfig,
        browser: "Browser",
    ) -> AuthContextResult:
        """
        Build a context and page on ``browser`` for this scrape.

        Args:
            user_id: User the scrape runs for.
            config: Site being scraped.
            browser: Shared browser from the caller's lease.

        Returns:
            AuthContextResult; its cleanup never closes the shared browser.

        Raises:
            AuthenticationRequiredError: If the site requires cookies and no
                usable session exists.
        """
        if config.custom_auth_provider:
            try:
                return await self._from_provider(user_id, config, browser)
            except Exception as e:
                logger.error(
                    f"ENGINE_AUTH: custom provider '{config.custom_auth_provider}' "
                    f"failed for {config.site}: {e}"
                )
                if config.auth_mode == "cookies_required":
                    raise

        if config.auth_mode != "anonymous" and self.session_pool is not None:
            try:
                session = await self.session_pool.get_best_session(user_id, config.site)
            except Exception as e:
                logger.error(f"ENGINE_AUTH: session lookup failed for {config.site}: {e}")
                if config.auth_mode == "cookies_required":
                    raise AuthenticationRequiredError(
                        f"{config.site} requires authentication. Session lookup failed: {e}",
                        site=config.site,
                    ) from e
                session = None

            if session is not None:
                logger.debug(
                    f"ENGINE_AUTH: using pooled session {session.session_id} "
                    f"(score {session.health_score}) for {config.site}"
                )
                return await self._new_context(
                    browser,
                    config,
                    authenticated=True,
                    source="session-pool",
                    storage_state=session.storage_state,
                    session_id=session.session_id,
                )

        if config.auth_mode == "cookies_required":
            raise AuthenticationRequiredError(
                f"{config.site} requires authentication but no valid session found. "
                "Please connect your account.",
                site=config.site,
            )

        return await self._new_context(browser, config, authenticated=False, source="anonymous")

    async def _from_provider(
        self,
        user_id: str,
        config: SiteConfig,
        browser: "Browser",
    ) -> AuthContextResult:
        provider = self.providers.get(config.custom_auth_provider)
        if provider is None:
            raise ConfigurationError(
                f"Auth provider '{config.custom_auth_provider}' is not registered",
                context={"site": config.site},
            )
        return await provider.get_context(user_id, config, browser)

    async def _new_context(
        self,
        browser: "Browser",
        config: SiteConfig,
        authenticated: bool,
        source: AuthSource,
        storage_state: Optional[dict] = None,
        session_id: Optional[str] = None,
    ) -> AuthContextResult:
        settings = config.anti_detection
        options: Dict[str, Any] = {
            "user_agent": random_user_agent(),
            "locale": settings.locale,
            "viewport": viewport_for(settings),
            "device_scale_factor": 1,
        }
        if storage_state:
            options["storage_state"] = storage_state

        context: "BrowserContext" = await browser.new_context(**options)
        try:
            page: "Page" = await context.new_page()
        except BaseException:
            await _close_quietly(context, "context")
            raise

        async def cleanup() -> None:
            await _close_quietly(page, "page")
            await _close_quietly(context, "context")

        return AuthContextResult(
            browser=browser,
            context=context,
            page=page,
            authenticated=authenticated,
            source=source,
            cleanup=cleanup,
            session_id=session_id,
        )
