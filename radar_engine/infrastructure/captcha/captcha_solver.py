"""
CAPTCHA solving through external services.

Supports reCAPTCHA v2 and hCaptcha via 2Captcha or Anti-Captcha. The solver
detects the widget on the page, submits its sitekey to the service, polls
for the token and injects it back into the page.

Example:
    >>> solver = CaptchaSolver.from_config(get_config().captcha)
    >>> if solver.is_enabled():
    ...     result = await solver.auto_solve(page)
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

from radar_engine.domain.interfaces.captcha_interface import (
    CaptchaSolveResult,
    CaptchaSolverInterface,
)
from radar_engine.utils.config import CaptchaConfig
from radar_engine.utils.exceptions import CaptchaError
from radar_engine.utils.logger import get_logger

logger = get_logger(__name__)

TWOCAPTCHA_BASE_URL = "https://2captcha.com"
ANTICAPTCHA_BASE_URL = "https://api.anti-captcha.com"

DETECT_SCRIPT = """
() => ({
    recaptcha: !!document.querySelector('.g-recaptcha, #g-recaptcha'),
    hcaptcha: !!document.querySelector('.h-captcha, #h-captcha'),
})
"""

SITEKEY_SCRIPT = """
(selector) => {
    const el = document.querySelector(selector);
    return el ? el.getAttribute('data-sitekey') : null;
}
"""

INJECT_RECAPTCHA_SCRIPT = """
(token) => {
    const field = document.getElementById('g-recaptcha-response');
    if (field) field.innerHTML = token;
    if (typeof grecaptcha !== 'undefined') grecaptcha.getResponse = () => token;
}
"""

INJECT_HCAPTCHA_SCRIPT = """
(token) => {
    document.querySelectorAll('[name="h-captcha-response"], [name="g-recaptcha-response"]')
        .forEach((field) => { field.value = token; field.innerHTML = token; });
}
"""

NOT_READY = "CAPCHA_NOT_READY"


class CaptchaSolver(CaptchaSolverInterface):
    """
    Client for 2Captcha / Anti-Captcha.

    Disabled when either the service or the API key is missing; a disabled
    solver reports failure without contacting anything.
    """

    def __init__(
        self,
        service: Optional[str] = None,
        api_key: Optional[str] = None,
        poll_interval_seconds: float = 5.0,
        max_polls: int = 24,
        request_timeout_seconds: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.service = service
        self.api_key = api_key
        self.poll_interval_seconds = poll_interval_seconds
        self.max_polls = max_polls
        self.request_timeout_seconds = request_timeout_seconds
        self._sleep = sleep

        if not self.is_enabled():
            logger.info("Captcha solver not configured (set captcha.service and CAPTCHA_API_KEY)")

    @classmethod
    def from_config(cls, config: CaptchaConfig) -> "CaptchaSolver":
        return cls(
            service=config.service,
            api_key=config.api_key,
            poll_interval_seconds=config.poll_interval_seconds,
            max_polls=config.max_polls,
            request_timeout_seconds=config.request_timeout_seconds,
        )

    def is_enabled(self) -> bool:
        return bool(self.service and self.api_key)

    async def auto_solve(self, page: Any) -> CaptchaSolveResult:
        """Detect a reCAPTCHA or hCaptcha widget and solve it."""
        if not self.is_enabled():
            return CaptchaSolveResult(success=False, error="Captcha solver not configured")

        try:
            detected = await page.evaluate(DETECT_SCRIPT) or {}
        except Exception as e:
            return CaptchaSolveResult(success=False, error=f"Captcha detection failed: {e}")

        if detected.get("recaptcha"):
            logger.info("reCAPTCHA detected on page")
            return await self.solve_recaptcha_v2(page)
        if detected.get("hcaptcha"):
            logger.info("hCaptcha detected on page")
            return await self.solve_hcaptcha(page)

        return CaptchaSolveResult(success=False, error="No captcha detected on page")

    async def solve_recaptcha_v2(self, page: Any, sitekey: Optional[str] = None) -> CaptchaSolveResult:
        return await self._solve(
            page,
            sitekey=sitekey,
            sitekey_selector=".g-recaptcha, [data-sitekey]",
            twocaptcha_method="userrecaptcha",
            anticaptcha_task="RecaptchaV2TaskProxyless",
            inject_script=INJECT_RECAPTCHA_SCRIPT,
            label="reCAPTCHA",
        )

    async def solve_hcaptcha(self, page: Any, sitekey: Optional[str] = None) -> CaptchaSolveResult:
        return await self._solve(
            page,
            sitekey=sitekey,
            sitekey_selector=".h-captcha, [data-sitekey]",
            twocaptcha_method="hcaptcha",
            anticaptcha_task="HCaptchaTaskProxyless",
            inject_script=INJECT_HCAPTCHA_SCRIPT,
            label="hCaptcha",
        )

    async def _solve(
        self,
        page: Any,
        sitekey: Optional[str],
        sitekey_selector: str,
        twocaptcha_method: str,
        anticaptcha_task: str,
        inject_script: str,
        label: str,
    ) -> CaptchaSolveResult:
        if not self.is_enabled():
            return CaptchaSolveResult(success=False, error="Captcha solver not configured")

        try:
            page_url = page.url
            if not sitekey:
                sitekey = await page.evaluate(SITEKEY_SCRIPT, sitekey_selector)
            if not sitekey:
                return CaptchaSolveResult(success=False, error=f"{label} sitekey not found")

            logger.info(f"Solving {label} via {self.service}...")
            if self.service == "2captcha":
                params = {"method": twocaptcha_method, "pageurl": page_url}
                params["googlekey" if twocaptcha_method == "userrecaptcha" else "sitekey"] = sitekey
                token = await self._solve_2captcha(params)
            else:
                token = await self._solve_anticaptcha(
                    anticaptcha_task, {"websiteURL": page_url, "websiteKey": sitekey}
                )

            await page.evaluate(inject_script, token)
            logger.info(f"{label} solved")
            return CaptchaSolveResult(success=True, solution=token)

        except Exception as e:
            logger.error(f"Error solving {label}: {e}")
            return CaptchaSolveResult(success=False, error=str(e))

    async def _solve_2captcha(self, params: Dict[str, Any]) -> str:
        created = await self._request_json(
            "POST",
            f"{TWOCAPTCHA_BASE_URL}/in.php",
            data={"key": self.api_key, "json": 1, **params},
        )
        if created.get("status") != 1:
            raise CaptchaError(f"2Captcha error: {created.get('request')}")

        captcha_id = created["request"]
        for _ in range(self.max_polls):
            await self._sleep(self.poll_interval_seconds)
            result = await self._request_json(
                "GET",
                f"{TWOCAPTCHA_BASE_URL}/res.php",
                params={"key": self.api_key, "action": "get", "id": captcha_id, "json": 1},
            )
            if result.get("status") == 1:
                return result["request"]
            if result.get("request") != NOT_READY:
                raise CaptchaError(f"2Captcha error: {result.get('request')}")

        raise CaptchaError(f"2Captcha timeout after {self.max_polls} polls")

    async def _solve_anticaptcha(self, task_type: str, task_params: Dict[str, Any]) -> str:
        created = await self._request_json(
            "POST",
            f"{ANTICAPTCHA_BASE_URL}/createTask",
            json={"clientKey": self.api_key, "task": {"type": task_type, **task_params}},
        )
        if created.get("errorId") != 0:
            raise CaptchaError(f"Anti-Captcha error: {created.get('errorDescription')}")

        task_id = created["taskId"]
        for _ in range(self.max_polls):
            await self._sleep(self.poll_interval_seconds)
            result = await self._request_json(
                "POST",
                f"{ANTICAPTCHA_BASE_URL}/getTaskResult",
                json={"clientKey": self.api_key, "taskId": task_id},
            )
            if result.get("errorId") != 0:
                raise CaptchaError(f"Anti-Captcha error: {result.get('errorDescription')}")
            if result.get("status") == "ready":
                solution = result.get("solution") or {}
                return solution.get("gRecaptchaResponse") or solution.get("token", "")

        raise CaptchaError(f"Anti-Captcha timeout after {self.max_polls} polls")

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        timeout = aiohttp.ClientTimeout(total=self.request_timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(method, url, **kwargs) as response:
                if response.status != 200:
                    raise CaptchaError(f"Captcha service HTTP {response.status}")
                return await response.json(content_type=None)
