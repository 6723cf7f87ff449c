"""
Tests for the stealth page factory: fingerprint masking, navigation
retries and guaranteed release of every page it hands out.
"""

import json
import random

import pytest

from registryscout.adapters.fingerprints import (
    DEVICE_SCALE_FACTORS,
    TIMEZONES,
    USER_AGENTS,
    VIEWPORTS,
    browser_headers,
    platform_for,
    random_fingerprint,
)
from registryscout.adapters.stealth_page import (
    StealthPage,
    StealthPageFactory,
    build_init_script,
    masked_signals,
)
from registryscout.domain.errors import NavigationTimeoutError, ParseFailureError
from tests.conftest import FakeContext, FakeDriver, FakePage, FakeTimeout, make_fingerprint


def make_factory(driver: FakeDriver, sleep) -> StealthPageFactory:
    return StealthPageFactory(driver, human_delay_range=(0.0, 0.0), sleep=sleep, rng=random.Random(7))


# ─────────────────────────────────────────────────────────────────────────────
# Fingerprints and masking
# ─────────────────────────────────────────────────────────────────────────────


class TestFingerprints:
    def test_random_fingerprint_draws_from_pools(self):
        fp = random_fingerprint(random.Random(1))
        assert (fp.viewport_width, fp.viewport_height) in VIEWPORTS
        assert fp.device_scale_factor in DEVICE_SCALE_FACTORS
        assert fp.timezone in TIMEZONES
        assert fp.user_agent in USER_AGENTS
        assert fp.platform == platform_for(fp.user_agent)

    def test_browser_headers_match_user_agent(self):
        ua = USER_AGENTS[1]
        headers = browser_headers(ua)
        assert headers["User-Agent"] == ua
        assert "Accept-Language" in headers


class TestInitScript:
    def test_masks_webdriver_and_webgl(self):
        fp = make_fingerprint()
        signals = masked_signals(fp)
        script = build_init_script(signals)

        assert "webdriver" in script
        assert "37445" in script
        assert "37446" in script
        assert fp.webgl_renderer in script

    def test_signals_are_serialized_as_json_argument(self):
        fp = make_fingerprint()
        script = build_init_script(masked_signals(fp))
        payload = script[script.rindex(")(") + 2 : -2]
        decoded = json.loads(payload)
        by_prop = {(s["target"], s["prop"]): s["value"] for s in decoded}
        assert by_prop[("navigator", "webdriver")] is None
        assert by_prop[("navigator", "platform")] == "Win32"
        assert by_prop[("navigator", "hardwareConcurrency")] == 8


# ─────────────────────────────────────────────────────────────────────────────
# Page lifecycle
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
class TestRelease:
    async def test_release_is_idempotent(self):
        context = FakeContext(FakePage())
        page = StealthPage(context, make_fingerprint())
        await page.release()
        await page.release()
        assert context.close_count == 1
        assert page.released

    async def test_release_swallows_close_errors_after_logging(self):
        context = FakeContext(FakePage(), close_error=RuntimeError("Target closed"))
        page = StealthPage(context, make_fingerprint())
        await page.release()
        assert context.close_count == 1

    async def test_open_releases_on_success(self, sleep):
        driver = FakeDriver()
        session = await driver.launch()
        async with make_factory(driver, sleep).open(session) as page:
            await page.goto("https://example.test")
        assert session.contexts[0].close_count == 1

    async def test_open_releases_on_parse_error(self, sleep):
        driver = FakeDriver()
        session = await driver.launch()
        with pytest.raises(ParseFailureError):
            async with make_factory(driver, sleep).open(session):
                raise ParseFailureError("bad row")
        assert session.contexts[0].close_count == 1

    async def test_open_releases_on_unexpected_exception(self, sleep):
        driver = FakeDriver()
        session = await driver.launch()
        with pytest.raises(KeyError):
            async with make_factory(driver, sleep).open(session):
                raise KeyError("boom")
        assert session.contexts[0].close_count == 1

    async def test_each_page_gets_its_own_context_and_script(self, sleep):
        driver = FakeDriver()
        session = await driver.launch()
        factory = make_factory(driver, sleep)
        async with factory.open(session):
            pass
        async with factory.open(session):
            pass
        assert len(session.contexts) == 2
        assert all("webdriver" in s for s in session.init_scripts)


# ─────────────────────────────────────────────────────────────────────────────
# Navigation and interaction
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
class TestNavigation:
    async def test_goto_retries_timeouts_with_backoff(self, sleep):
        fake = FakePage(goto_timeouts=2)
        page = StealthPage(
            FakeContext(fake), make_fingerprint(), timeout_errors=(FakeTimeout,),
            navigation_base_delay=2.0, sleep=sleep,
        )
        await page.goto("https://example.test")
        assert len(fake.visited) == 3
        assert sleep.delays == [2.0, 4.0]

    async def test_goto_gives_up_with_navigation_timeout(self, sleep):
        fake = FakePage(goto_timeouts=5)
        page = StealthPage(FakeContext(fake), make_fingerprint(), timeout_errors=(FakeTimeout,), sleep=sleep)
        with pytest.raises(NavigationTimeoutError):
            await page.goto("https://example.test")
        assert len(fake.visited) == 3

    async def test_first_present_returns_first_matching_selector(self):
        fake = FakePage(present=["#searchInput"])
        page = StealthPage(FakeContext(fake), make_fingerprint(), timeout_errors=(FakeTimeout,))
        assert await page.first_present(["input[name='q']", "#searchInput"]) == "#searchInput"
        assert await page.first_present(["#missing"]) is None

    async def test_wait_for_any(self):
        fake = FakePage(present=[".no-results"])
        page = StealthPage(FakeContext(fake), make_fingerprint(), timeout_errors=(FakeTimeout,))
        assert await page.wait_for_any([".results", ".no-results"], 1000) is True
        assert await page.wait_for_any([".results"], 1000) is False

    async def test_human_type_clicks_then_types(self):
        fake = FakePage()
        page = StealthPage(FakeContext(fake), make_fingerprint())
        await page.human_type("#SearchTerm", "acme")
        assert fake.clicked == ["#SearchTerm"]
        assert fake.keyboard.typed == ["acme"]
