"""
PlaywrightBrowserDriver - Implements IBrowserDriver.
Launches Chromium through Playwright with automation flags stripped, or
CamoUFox (hardened Firefox) when the camoufox engine is configured.

Requires: pip install playwright && playwright install chromium
CamoUFox:  pip install camoufox[geoip] && python -m camoufox fetch
"""

import asyncio
import logging
from typing import Any, Optional, Tuple, Type

from ..domain.entities.fingerprint import Fingerprint
from ..domain.errors import BrowserUnavailableError
from ..domain.interfaces.i_browser_driver import IBrowserContext, IBrowserDriver, IBrowserSession
from .fingerprints import browser_headers

logger = logging.getLogger(__name__)

ENGINE_CHROMIUM = "chromium"
ENGINE_CAMOUFOX = "camoufox"

CHROMIUM_STEALTH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
    "--disable-infobars",
    "--disable-dev-shm-usage",
    "--no-first-run",
    "--no-default-browser-check",
    "--no-sandbox",
    "--window-position=0,0",
]

# Roughly Manhattan; paired with an America/* timezone
GEOLOCATION = {"latitude": 40.7128, "longitude": -74.0060}


class PlaywrightContext(IBrowserContext):
    def __init__(self, context: Any, page: Any):
        self._context = context
        self.page = page

    async def close(self) -> None:
        await self._context.close()


class PlaywrightSession(IBrowserSession):
    """A running browser plus whatever must be shut down with it."""

    def __init__(self, browser: Any, stopper, page_timeout_ms: int, engine: str):
        self._browser = browser
        self._stopper = stopper
        self._page_timeout_ms = page_timeout_ms
        self._engine = engine

    def is_connected(self) -> bool:
        return self._browser.is_connected()

    async def new_context(self, fingerprint: Fingerprint, init_script: str) -> IBrowserContext:
        options = {
            "viewport": fingerprint.viewport,
            "device_scale_factor": fingerprint.device_scale_factor,
            "locale": fingerprint.locale,
            "timezone_id": fingerprint.timezone,
            "geolocation": GEOLOCATION,
            "permissions": ["geolocation"],
        }
        if self._engine == ENGINE_CHROMIUM:
            # Camoufox generates its own coherent Firefox identity
            options["user_agent"] = fingerprint.user_agent
            headers = browser_headers(fingerprint.user_agent)
            headers.pop("User-Agent")
            options["extra_http_headers"] = headers

        context = await self._browser.new_context(**options)
        try:
            await context.add_init_script(script=init_script)
            page = await context.new_page()
            page.set_default_timeout(self._page_timeout_ms)
            page.set_default_navigation_timeout(self._page_timeout_ms)
        except BaseException:
            # No PlaywrightContext owns it yet
            await context.close()
            raise
        return PlaywrightContext(context, page)

    async def close(self) -> None:
        try:
            await self._browser.close()
        finally:
            await self._stopper()


class PlaywrightBrowserDriver(IBrowserDriver):
    def __init__(
        self,
        engine: str = ENGINE_CHROMIUM,
        headless: bool = True,
        page_timeout_ms: int = 60_000,
    ):
        if engine not in (ENGINE_CHROMIUM, ENGINE_CAMOUFOX):
            raise ValueError(f"Unknown browser engine: {engine}")
        self.engine = engine
        self.name = f"playwright/{engine}"
        self.headless = headless
        self.page_timeout_ms = page_timeout_ms
        self._timeout_errors: Optional[Tuple[Type[BaseException], ...]] = None

    @property
    def available(self) -> bool:
        return True

    @property
    def timeout_errors(self) -> Tuple[Type[BaseException], ...]:
        if self._timeout_errors is None:
            from playwright.async_api import TimeoutError as PlaywrightTimeoutError

            self._timeout_errors = (PlaywrightTimeoutError, asyncio.TimeoutError)
        return self._timeout_errors

    async def launch(self) -> IBrowserSession:
        try:
            if self.engine == ENGINE_CAMOUFOX:
                return await self._launch_camoufox()
            return await self._launch_chromium()
        except BrowserUnavailableError:
            raise
        except Exception as e:
            # Typically "Executable doesn't exist" when the binary was never installed
            logger.error(f"[Browser] Launch failed ({self.name}): {e}")
            raise BrowserUnavailableError(f"Browser launch failed: {e}") from e

    async def _launch_chromium(self) -> IBrowserSession:
        from playwright.async_api import async_playwright

        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(
                headless=self.headless,
                args=CHROMIUM_STEALTH_ARGS,
            )
        except Exception:
            await playwright.stop()
            raise
        logger.info(f"[Browser] Chromium {browser.version} launched (headless={self.headless})")
        return PlaywrightSession(browser, playwright.stop, self.page_timeout_ms, self.engine)

    async def _launch_camoufox(self) -> IBrowserSession:
        from camoufox.async_api import AsyncCamoufox

        manager = AsyncCamoufox(headless=self.headless)
        browser = await manager.__aenter__()

        async def _stop():
            await manager.__aexit__(None, None, None)

        logger.info(f"[Browser] CamoUFox launched (headless={self.headless})")
        return PlaywrightSession(browser, _stop, self.page_timeout_ms, self.engine)
