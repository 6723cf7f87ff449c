"""
HttpFetcher — plain HTTP access for the API and HTTP strategies.
Uses httpx + browser-like headers. Anti-bot pages and rate limits are
mapped onto the error taxonomy; rate limits and transport errors are
retried with exponential backoff inside the call.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ..domain.errors import CaptchaDetectedError, RateLimitedError, ScraperError
from .captcha import raise_for_block
from .fingerprints import browser_headers, random_user_agent
from .retry import with_retry

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 30
MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 2.0
API_USER_AGENT = "RegistryScout/1.0 (business registry research)"


@dataclass
class PageBatch:
    """Pages fetched by get_pages, in order, plus why fetching stopped early."""

    pages: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class HttpFetcher:
    def __init__(
        self,
        timeout_seconds: float = TIMEOUT_SECONDS,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = RETRY_BASE_DELAY,
        rng: Optional[random.Random] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._rng = rng or random.Random()
        self._sleep = sleep

    async def get_html(self, url: str, params: Optional[Dict[str, str]] = None) -> str:
        """
        Fetches an HTML page. Raises CaptchaDetectedError for challenge pages
        (not retried here, the pipeline escalates to the browser) and
        RetryExhaustedError once rate limiting or transport errors persist.
        """
        headers = browser_headers(random_user_agent(self._rng))

        async def _fetch() -> str:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                headers=headers,
                follow_redirects=True,
            ) as client:
                response = await client.get(url, params=params)
            self._check_status(response, url)
            text = response.text
            raise_for_block(text, url)
            return text

        return await self._retrying(_fetch, url)

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        request_headers = {"Accept": "application/json", "User-Agent": API_USER_AGENT}
        request_headers.update(headers or {})

        async def _fetch() -> Any:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                headers=request_headers,
                follow_redirects=True,
            ) as client:
                response = await client.get(url, params=params)
            self._check_status(response, url)
            return response.json()

        return await self._retrying(_fetch, url)

    async def get_pages(
        self,
        first_url: str,
        next_url: Callable[[str, str], Optional[str]],
        max_pages: int,
        enough: Optional[Callable[[List[str]], bool]] = None,
    ) -> PageBatch:
        """
        Follows next_url(html, current_url) from first_url for up to max_pages.
        A failure on the first page propagates; a failure on a later page
        stops pagination and keeps what was already fetched.
        """
        batch = PageBatch()
        url: Optional[str] = first_url
        while url and len(batch.pages) < max_pages:
            try:
                html = await self.get_html(url)
            except (ScraperError, httpx.HTTPError) as e:
                if not batch.pages:
                    raise
                logger.warning(f"[HTTP] Stopped paginating at {url}: {e}")
                batch.warnings.append(
                    f"Stopped after page {len(batch.pages)} of results: {e}"
                )
                break
            batch.pages.append(html)
            if enough is not None and enough(batch.pages):
                break
            url = next_url(html, url)
        return batch

    # ── Internals ─────────────────────────────────────────────────────────

    async def _retrying(self, op, url: str):
        return await with_retry(
            op,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            retry_on=(RateLimitedError, httpx.TransportError, httpx.HTTPStatusError),
            label=f"GET {url}",
            sleep=self._sleep,
        )

    @staticmethod
    def _check_status(response: httpx.Response, url: str) -> None:
        status = response.status_code
        if status == 429:
            raise RateLimitedError("HTTP 429 Too Many Requests", url=url)
        if status == 403:
            raise CaptchaDetectedError("HTTP 403 Forbidden (likely bot protection)", url=url)
        if status >= 500:
            response.raise_for_status()
        if status >= 400:
            raise ScraperError(f"HTTP {status} from {url}", url=url)
