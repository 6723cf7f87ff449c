"""
CAPTCHA / anti-bot detection and the session-rotation retry loop.
"""

import asyncio
import logging
import re
from typing import Awaitable, Callable, Optional, TypeVar

from ..domain.errors import CaptchaDetectedError, ErrorCode, RateLimitedError
from .browser_pool import BrowserSessionPool
from .retry import backoff_delay
from .stealth_page import StealthPage, StealthPageFactory

logger = logging.getLogger(__name__)

T = TypeVar("T")

CAPTCHA_MAX_ATTEMPTS = 3
CAPTCHA_BASE_DELAY = 2.0

_CHALLENGE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"g-recaptcha",
        r"h-captcha|hcaptcha",
        r"class=[\"'][^\"']*captcha",
        r"id=[\"'][^\"']*captcha",
        r"iframe[^>]+src=[\"'][^\"']*captcha",
        r"verify you are (a )?human",
        r"are you a robot",
        r"cf-browser-verification|cf_chl_|challenge-platform",
        r"checking your browser before accessing",
        r"please complete the security check",
    )
]

_RATE_LIMIT_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"too many requests",
        r"rate limit(ed)? exceeded",
        r"you have been rate limited",
        r"request limit reached",
    )
]

_ACCESS_DENIED_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"<title>\s*access denied",
        r"<title>\s*403 forbidden",
        r"you don't have permission to access",
    )
]


def detect_challenge(html: Optional[str]) -> bool:
    if not html:
        return False
    return any(p.search(html) for p in _CHALLENGE_PATTERNS)


def detect_block(html: Optional[str]) -> Optional[ErrorCode]:
    """
    Classifies a response body. Rate-limit pages map to RATE_LIMITED;
    CAPTCHA, browser checks and access-denied walls map to CAPTCHA_DETECTED.
    """
    if not html:
        return None
    if any(p.search(html) for p in _RATE_LIMIT_PATTERNS):
        return ErrorCode.RATE_LIMITED
    if detect_challenge(html) or any(p.search(html) for p in _ACCESS_DENIED_PATTERNS):
        return ErrorCode.CAPTCHA_DETECTED
    return None


def raise_for_block(html: Optional[str], url: Optional[str] = None) -> None:
    code = detect_block(html)
    if code == ErrorCode.RATE_LIMITED:
        raise RateLimitedError("Rate limit page returned", url=url)
    if code == ErrorCode.CAPTCHA_DETECTED:
        raise CaptchaDetectedError("Anti-bot challenge detected", url=url)


async def ensure_no_challenge(page: StealthPage, stage: str) -> str:
    """Reads the page and raises CaptchaDetectedError if a challenge is showing."""
    html = await page.content()
    if detect_challenge(html):
        raise CaptchaDetectedError(f"CAPTCHA detected {stage}")
    return html


class CaptchaRotation:
    """
    Runs browser work on a fresh stealth page per attempt. When the work
    raises CaptchaDetectedError the page (and its context, cookies and
    fingerprint) is thrown away and, after a doubling delay, the work is
    retried on a brand new page, up to max_attempts pages in total.
    """

    def __init__(
        self,
        pool: BrowserSessionPool,
        pages: StealthPageFactory,
        max_attempts: int = CAPTCHA_MAX_ATTEMPTS,
        base_delay: float = CAPTCHA_BASE_DELAY,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self._pool = pool
        self._pages = pages
        self.max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep or asyncio.sleep

    async def run(self, work: Callable[[StealthPage], Awaitable[T]], label: str = "browser") -> T:
        last_error: Optional[CaptchaDetectedError] = None
        for attempt in range(1, self.max_attempts + 1):
            async with self._pool.lease() as session:
                async with self._pages.open(session) as page:
                    try:
                        return await work(page)
                    except CaptchaDetectedError as e:
                        last_error = e
                        logger.warning(
                            f"[Captcha:{label}] Challenge on attempt {attempt}/{self.max_attempts}: {e}"
                        )
            if attempt < self.max_attempts:
                delay = backoff_delay(attempt, self._base_delay)
                logger.info(f"[Captcha:{label}] Rotating to a fresh page in {delay:.0f}s")
                await self._sleep(delay)

        raise CaptchaDetectedError(
            f"CAPTCHA persisted across {self.max_attempts} fresh sessions"
            + (f" ({last_error})" if last_error else "")
        )
