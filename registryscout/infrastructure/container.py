"""
Dependency Injection Container.
Wires all adapters to their interfaces and composes use cases.
This is the ONLY place that knows about concrete implementations,
and the only place that decides, once at startup, which browser
driver (if any) this process can use.
"""

import importlib.util
import logging
from typing import Dict, List, Optional

from .config import Config
from ..adapters.browser_pool import BrowserSessionPool
from ..adapters.captcha import CaptchaRotation
from ..adapters.circuit_breaker import CircuitBreaker, CircuitState
from ..adapters.http_fetcher import HttpFetcher
from ..adapters.playwright_driver import ENGINE_CAMOUFOX, PlaywrightBrowserDriver
from ..adapters.rate_limiter import RateLimiter
from ..adapters.sources.base import RegistrySourceAdapter
from ..adapters.sources.california_adapter import CaliforniaAdapter
from ..adapters.sources.colorado_adapter import ColoradoAdapter
from ..adapters.sources.delaware_adapter import DelawareAdapter
from ..adapters.sources.florida_adapter import FloridaAdapter
from ..adapters.sources.new_york_adapter import NewYorkAdapter
from ..adapters.sources.opencorporates_adapter import OpenCorporatesAdapter
from ..adapters.sources.policy import DEFAULT_SOURCES, describe_sources
from ..adapters.stealth_page import StealthPageFactory
from ..adapters.unavailable_driver import UnavailableBrowserDriver
from ..domain.interfaces.i_browser_driver import IBrowserDriver
from ..domain.interfaces.i_registry_source import SearchType
from ..use_cases.search_registries import SearchRegistriesUseCase

logger = logging.getLogger(__name__)


def select_browser_driver(config: Config) -> IBrowserDriver:
    """Picks the real driver when its package is importable, the unavailable one otherwise."""
    if not config.enable_web_scraping:
        return UnavailableBrowserDriver("Browser scraping disabled by ENABLE_WEB_SCRAPING")

    required = ["playwright"]
    if config.browser_engine == ENGINE_CAMOUFOX:
        required.append("camoufox")
    missing = [name for name in required if importlib.util.find_spec(name) is None]
    if missing:
        reason = f"{', '.join(missing)} not installed; browser strategies are skipped"
        logger.warning(f"[Container] {reason}")
        return UnavailableBrowserDriver(reason)

    return PlaywrightBrowserDriver(
        engine=config.browser_engine,
        headless=config.browser_headless,
        page_timeout_ms=config.page_timeout_ms,
    )


class Container:
    """
    Composes the full application object graph.
    Swap any adapter by changing a single line here.
    """

    def __init__(self, config: Config):
        self.config = config

        # ── Browser layer ─────────────────────────────────────────────────
        self.browser_driver = select_browser_driver(config)
        self.browser_pool = BrowserSessionPool(
            self.browser_driver,
            idle_timeout=config.browser_idle_timeout_seconds,
        )
        self.page_factory = StealthPageFactory(
            self.browser_driver,
            page_timeout_ms=config.page_timeout_ms,
        )
        self.captcha = CaptchaRotation(
            self.browser_pool,
            self.page_factory,
            max_attempts=config.captcha_max_attempts,
            base_delay=config.captcha_base_delay,
        )

        # ── Adapters (Ports & Adapters layer) ─────────────────────────────
        self.http = HttpFetcher(
            timeout_seconds=config.http_timeout_seconds,
            max_attempts=config.http_max_attempts,
            base_delay=config.http_retry_base_delay,
        )
        # One bucket and one circuit per source, keyed by source name
        self.rate_limiter: Optional[RateLimiter] = RateLimiter() if config.rate_limit_enabled else None
        self.breaker = CircuitBreaker(
            failure_threshold=config.circuit_failure_threshold,
            reset_timeout=config.circuit_reset_seconds,
        )
        shared = dict(
            captcha=self.captcha,
            browser_timeout=config.source_timeout_seconds,
            max_pages=config.http_max_pages,
            rate_limiter=self.rate_limiter,
            breaker=self.breaker,
        )
        self.opencorporates = OpenCorporatesAdapter(self.http, **shared)
        self.sources: Dict[str, RegistrySourceAdapter] = {
            "opencorporates": self.opencorporates,
            "florida": FloridaAdapter(self.http, **shared),
            "new_york": NewYorkAdapter(self.http, app_token=config.ny_app_token, **shared),
            "colorado": ColoradoAdapter(self.http, app_token=config.colorado_app_token, **shared),
            "delaware": DelawareAdapter(self.http, **shared),
            "california": CaliforniaAdapter(self.http, **shared),
        }

        # ── Use Cases (Application layer) ──────────────────────────────────
        self.search_use_case = SearchRegistriesUseCase(
            sources=self.sources,
            default_sources=DEFAULT_SOURCES,
        )

    def describe_sources(self) -> List[dict]:
        """Policy table plus each source's live circuit state and request budget."""
        rows = describe_sources(self.browser_driver.available, self.browser_driver.unavailable_reason)
        for row in rows:
            source = row["source"]
            circuit = self.breaker.info(source)
            row["circuit"] = circuit
            row["requests_per_minute"] = (
                self.rate_limiter.requests_per_minute(source) if self.rate_limiter is not None else None
            )
            if circuit["state"] == CircuitState.OPEN.value:
                for search_type in SearchType:
                    row[search_type.value]["available"] = False
        return rows

    async def aclose(self) -> None:
        """Closes the shared browser session, if one was ever launched."""
        await self.browser_pool.close()
