"""
Root conftest.py — shared fixtures and helpers for the entire test suite.

Provides:
- Domain object factories (entities, officers, results, fingerprints)
- In-memory browser fakes (driver / session / context / page) that count
  launches and close() calls, so resource release can be asserted
- A recording no-op sleep so backoff delays are observable and instant
"""

import asyncio
from typing import Callable, List, Optional, Sequence
from unittest.mock import AsyncMock

import pytest

from registryscout.adapters.browser_pool import BrowserSessionPool
from registryscout.adapters.captcha import CaptchaRotation
from registryscout.adapters.http_fetcher import HttpFetcher
from registryscout.adapters.stealth_page import StealthPageFactory
from registryscout.domain.entities.business_entity import (
    EntityStatus,
    ScrapedBusinessEntity,
    ScrapedOfficer,
)
from registryscout.domain.entities.fingerprint import Fingerprint
from registryscout.domain.errors import BrowserUnavailableError
from registryscout.domain.interfaces.i_browser_driver import (
    IBrowserContext,
    IBrowserDriver,
    IBrowserSession,
)
from registryscout.domain.interfaces.i_registry_source import ScraperResult


# ─────────────────────────────────────────────────────────────────────────────
# Domain object factories
# ─────────────────────────────────────────────────────────────────────────────


def make_entity(
    name: str = "Acme Holdings LLC",
    jurisdiction: str = "us_fl",
    source: str = "florida",
    source_url: str = "https://search.sunbiz.org/Inquiry/CorporationSearch/SearchResultDetail",
    entity_number: Optional[str] = "L12000012345",
    status: Optional[EntityStatus] = EntityStatus.ACTIVE,
    incorporation_date: Optional[str] = "2012-03-01",
) -> ScrapedBusinessEntity:
    """Create a ScrapedBusinessEntity with sensible test defaults."""
    return ScrapedBusinessEntity(
        name=name,
        jurisdiction=jurisdiction,
        source=source,
        source_url=source_url,
        entity_number=entity_number,
        status=status,
        incorporation_date=incorporation_date,
    )


def make_officer(
    name: str = "Jane Doe",
    position: str = "Director",
    company_name: str = "Acme Holdings LLC",
    jurisdiction: str = "us_de",
    source: str = "opencorporates",
    source_url: str = "https://opencorporates.com/companies/us_de/1234567",
    start_date: Optional[str] = "2015-01-01",
    end_date: Optional[str] = None,
    current: bool = True,
) -> ScrapedOfficer:
    return ScrapedOfficer(
        name=name,
        position=position,
        company_name=company_name,
        jurisdiction=jurisdiction,
        source=source,
        source_url=source_url,
        start_date=start_date,
        end_date=end_date,
        current=current,
    )


def make_result(
    source: str = "florida",
    query: str = "acme",
    data: Optional[list] = None,
    total_found: Optional[int] = None,
    warnings: Optional[List[str]] = None,
) -> ScraperResult:
    """Successful ScraperResult; defaults to a single entity."""
    items = [make_entity(source=source)] if data is None else data
    return ScraperResult.ok(source, query, items, total_found=total_found, warnings=warnings)


def make_failure(source: str = "florida", query: str = "acme", error: str = "CAPTCHA_DETECTED") -> ScraperResult:
    return ScraperResult.failure(source, query, error=error)


def make_fingerprint(
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    platform: str = "Win32",
) -> Fingerprint:
    return Fingerprint(
        viewport_width=1920,
        viewport_height=1080,
        device_scale_factor=1,
        user_agent=user_agent,
        timezone="America/New_York",
        platform=platform,
        webgl_vendor="Google Inc. (NVIDIA)",
        webgl_renderer="ANGLE (NVIDIA, NVIDIA GeForce GTX 1660 SUPER Direct3D11 vs_5_0 ps_5_0, D3D11)",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Sleep recorder
# ─────────────────────────────────────────────────────────────────────────────


class SleepRecorder:
    """Drop-in for asyncio.sleep that records the requested delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)

    @property
    def backoff(self) -> List[float]:
        """Delays that were not human-typing pauses (which are always 0 in tests)."""
        return [d for d in self.delays if d > 0]


# ─────────────────────────────────────────────────────────────────────────────
# Browser fakes
# ─────────────────────────────────────────────────────────────────────────────


class FakeTimeout(asyncio.TimeoutError):
    pass


CAPTCHA_HTML = '<html><body><div class="g-recaptcha" data-sitekey="x"></div></body></html>'


class FakeKeyboard:
    def __init__(self):
        self.typed: List[str] = []
        self.pressed: List[str] = []

    async def type(self, text: str, delay: int = 0) -> None:
        self.typed.append(text)

    async def press(self, key: str) -> None:
        self.pressed.append(key)


class FakePage:
    """
    Minimal stand-in for a Playwright page.
    - html: what content() returns
    - present: selectors that wait_for_selector finds (a comma list matches if any part does)
    - goto_timeouts: number of initial goto() calls that time out
    """

    def __init__(self, html: str = "<html></html>", present: Sequence[str] = (), goto_timeouts: int = 0):
        self.html = html
        self.present = set(present)
        self.goto_timeouts = goto_timeouts
        self.visited: List[str] = []
        self.clicked: List[str] = []
        self.keyboard = FakeKeyboard()

    async def goto(self, url: str, wait_until: str = "load", timeout: int = 0):
        self.visited.append(url)
        if self.goto_timeouts > 0:
            self.goto_timeouts -= 1
            raise FakeTimeout(f"Timeout {timeout}ms exceeded navigating to {url}")
        return None

    async def content(self) -> str:
        return self.html

    async def click(self, selector: str) -> None:
        self.clicked.append(selector)

    async def wait_for_selector(self, selector: str, timeout: int = 0):
        wanted = [s.strip() for s in selector.split(",")]
        if any(s in self.present for s in wanted):
            return object()
        raise FakeTimeout(f"waiting for {selector!r} exceeded {timeout}ms")


class FakeContext(IBrowserContext):
    def __init__(self, page: FakePage, close_error: Optional[Exception] = None):
        self.page = page
        self.close_count = 0
        self._close_error = close_error

    async def close(self) -> None:
        self.close_count += 1
        if self._close_error is not None:
            raise self._close_error


class FakeSession(IBrowserSession):
    def __init__(self, page_factory: Callable[[], FakePage]):
        self._page_factory = page_factory
        self.connected = True
        self.close_count = 0
        self.contexts: List[FakeContext] = []
        self.init_scripts: List[str] = []
        self.fingerprints: List[Fingerprint] = []

    def is_connected(self) -> bool:
        return self.connected

    async def new_context(self, fingerprint: Fingerprint, init_script: str) -> IBrowserContext:
        self.fingerprints.append(fingerprint)
        self.init_scripts.append(init_script)
        context = FakeContext(self._page_factory())
        self.contexts.append(context)
        return context

    async def close(self) -> None:
        self.close_count += 1
        self.connected = False


class FakeDriver(IBrowserDriver):
    """
    Launches FakeSessions. fail_launches makes the first N launches raise
    BrowserUnavailableError; launch_yields suspends the launch that many times
    so concurrent callers can pile up behind it.
    """

    name = "fake"

    def __init__(
        self,
        page_factory: Optional[Callable[[], FakePage]] = None,
        fail_launches: int = 0,
        launch_yields: int = 0,
    ):
        self._page_factory = page_factory or FakePage
        self._fail_launches = fail_launches
        self._launch_yields = launch_yields
        self.launches = 0
        self.sessions: List[FakeSession] = []

    @property
    def available(self) -> bool:
        return True

    @property
    def timeout_errors(self):
        return (FakeTimeout,)

    async def launch(self) -> IBrowserSession:
        self.launches += 1
        for _ in range(self._launch_yields):
            await asyncio.sleep(0)
        if self._fail_launches > 0:
            self._fail_launches -= 1
            raise BrowserUnavailableError("Executable doesn't exist")
        session = FakeSession(self._page_factory)
        self.sessions.append(session)
        return session

    @property
    def contexts(self) -> List[FakeContext]:
        return [c for s in self.sessions for c in s.contexts]


def page_sequence(*pages: FakePage) -> Callable[[], FakePage]:
    """Page factory handing out the given pages in order (the last one repeats)."""
    queue = list(pages)

    def factory() -> FakePage:
        return queue.pop(0) if len(queue) > 1 else queue[0]

    return factory


def make_browser_stack(driver: FakeDriver, sleep: SleepRecorder) -> CaptchaRotation:
    """Pool → page factory → CAPTCHA rotation, with instant human delays."""
    pool = BrowserSessionPool(driver)
    pages = StealthPageFactory(driver, human_delay_range=(0.0, 0.0), sleep=sleep)
    return CaptchaRotation(pool, pages, sleep=sleep)


def make_http_fetcher(sleep: SleepRecorder, **kwargs) -> HttpFetcher:
    """Real HttpFetcher whose network methods can be replaced with AsyncMocks."""
    fetcher = HttpFetcher(sleep=sleep, **kwargs)
    fetcher.get_html = AsyncMock()
    fetcher.get_json = AsyncMock()
    return fetcher


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def http(sleep):
    return make_http_fetcher(sleep)


@pytest.fixture
def mock_source():
    """AsyncMock IRegistrySource returning one Florida entity."""
    mock = AsyncMock()
    mock.search_companies.return_value = make_result()
    mock.search_officers.return_value = make_result(data=[make_officer(source="florida")])
    return mock
