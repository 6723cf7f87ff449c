"""
Strategy pipeline shared by every registry adapter.

    API_ATTEMPT → done | HTTP_ATTEMPT → done | BROWSER_ATTEMPT → done | TERMINAL_FAILURE

Each source declares its ordered strategies in SOURCE_POLICIES and
implements the matching _companies_via_* / _officers_via_* hooks. The
pipeline never raises for source-side failures: every exception becomes a
warning, and if no step succeeds, a failed ScraperResult naming the last
error code.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Generic, Iterable, List, Optional, Tuple, TypeVar

from ...domain.entities.business_entity import ScrapedBusinessEntity, ScrapedOfficer
from ...domain.errors import (
    BrowserUnavailableError,
    ErrorCode,
    NavigationTimeoutError,
    error_code_of,
)
from ...domain.interfaces.i_registry_source import (
    IRegistrySource,
    ScraperResult,
    SearchOptions,
    SearchType,
)
from ..captcha import CaptchaRotation
from ..circuit_breaker import CircuitBreaker
from ..http_fetcher import HttpFetcher
from ..rate_limiter import RateLimiter
from ..stealth_page import StealthPage
from .policy import SOURCE_POLICIES, SourcePolicy, Strategy

logger = logging.getLogger(__name__)

T = TypeVar("T")

BROWSER_TIMEOUT_SECONDS = 120
MAX_HTTP_PAGES = 3


@dataclass
class Attempt(Generic[T]):
    """What one strategy step produced."""

    items: List[T]
    total_found: Optional[int] = None
    warnings: List[str] = field(default_factory=list)


Step = Tuple[Strategy, Callable[[], Awaitable[Attempt]]]


@dataclass
class ParsedRows(Generic[T]):
    items: List[T] = field(default_factory=list)
    skipped: int = 0

    def warnings(self, label: str) -> List[str]:
        if not self.skipped:
            return []
        return [
            f"{ErrorCode.PARSE_FAILURE.value}: skipped {self.skipped} malformed "
            f"{label} row(s); remaining rows were kept"
        ]


def parse_rows(rows: Iterable[Any], build: Callable[[Any], Optional[T]]) -> ParsedRows[T]:
    """
    Applies build to every row (HTML tag or JSON record). None means "not a
    data row" (headers, spacers); an exception means a malformed row, which
    is counted and skipped.
    """
    parsed: ParsedRows[T] = ParsedRows()
    for row in rows:
        try:
            item = build(row)
        except (ValueError, AttributeError, IndexError, KeyError, TypeError) as e:
            logger.debug(f"[Parser] Skipping malformed row: {e}")
            parsed.skipped += 1
            continue
        if item is not None:
            parsed.items.append(item)
    return parsed


class RegistrySourceAdapter(IRegistrySource):
    """Base adapter: subclasses set `source` and implement the hooks their policy lists."""

    source: str = ""

    def __init__(
        self,
        http: HttpFetcher,
        captcha: Optional[CaptchaRotation] = None,
        browser_timeout: float = BROWSER_TIMEOUT_SECONDS,
        max_pages: int = MAX_HTTP_PAGES,
        rate_limiter: Optional[RateLimiter] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.http = http
        self.captcha = captcha
        self.browser_timeout = browser_timeout
        self.max_pages = max_pages
        self.rate_limiter = rate_limiter
        self.breaker = breaker

    @property
    def policy(self) -> SourcePolicy:
        return SOURCE_POLICIES[self.source]

    async def search_companies(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> ScraperResult[ScrapedBusinessEntity]:
        return await self._run_pipeline(SearchType.COMPANY, query, options or SearchOptions())

    async def search_officers(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> ScraperResult[ScrapedOfficer]:
        return await self._run_pipeline(SearchType.OFFICER, query, options or SearchOptions())

    # ── Hooks (override the ones the policy lists) ────────────────────────

    async def _companies_via_api(self, query: str, options: SearchOptions) -> Attempt:
        raise NotImplementedError

    async def _companies_via_http(self, query: str, options: SearchOptions) -> Attempt:
        raise NotImplementedError

    async def _companies_via_browser(self, page: StealthPage, query: str, options: SearchOptions) -> Attempt:
        raise NotImplementedError

    async def _officers_via_api(self, query: str, options: SearchOptions) -> Attempt:
        raise NotImplementedError

    async def _officers_via_http(self, query: str, options: SearchOptions) -> Attempt:
        raise NotImplementedError

    async def _officers_via_browser(self, page: StealthPage, query: str, options: SearchOptions) -> Attempt:
        raise NotImplementedError

    # ── Pipeline ──────────────────────────────────────────────────────────

    async def _run_pipeline(self, search_type: SearchType, query: str, options: SearchOptions) -> ScraperResult:
        policy = self.policy
        if not policy.supports(search_type):
            return ScraperResult.failure(
                self.source,
                query,
                error=f"{search_type.value.capitalize()} search is not supported for {policy.name}",
                warnings=[f"Search manually at {policy.manual_search_url}"],
            )

        company = search_type == SearchType.COMPANY
        handlers = {
            Strategy.API: self._companies_via_api if company else self._officers_via_api,
            Strategy.HTTP: self._companies_via_http if company else self._officers_via_http,
        }
        browser_handler = self._companies_via_browser if company else self._officers_via_browser

        steps: List[Step] = []
        for strategy in policy.strategies(search_type):
            if strategy == Strategy.BROWSER:
                steps.append((strategy, self._browser_step(browser_handler, query, options)))
            else:
                steps.append((strategy, partial(handlers[strategy], query, options)))

        return await self._run_steps(f"{search_type.value} {query!r}", query, options.limit, steps)

    async def _run_steps(self, label: str, query: str, limit: int, steps: List[Step]) -> ScraperResult:
        started = time.monotonic()
        tag = f"[Pipeline:{self.source}]"

        def elapsed() -> int:
            return int((time.monotonic() - started) * 1000)

        if self.breaker is not None and not self.breaker.allow(self.source):
            return self._circuit_open_result(query)

        warnings: List[str] = []
        empty: Optional[Attempt] = None
        last_error: Optional[BaseException] = None

        for index, (strategy, run) in enumerate(steps):
            step = strategy.value.upper()
            has_next = index < len(steps) - 1
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire(self.source)
            logger.info(f"{tag} {step} attempt for {label}")
            try:
                attempt = await run()
            except asyncio.TimeoutError as e:
                last_error = NavigationTimeoutError(f"{strategy.value} step timed out {e}".strip())
                warnings.append(f"{step} step timed out ({ErrorCode.NAVIGATION_TIMEOUT.value})")
                logger.warning(f"{tag} {step} timed out")
                continue
            except BrowserUnavailableError as e:
                last_error = e
                warnings.append(f"Browser step skipped ({ErrorCode.BROWSER_UNAVAILABLE.value}): {e}")
                logger.warning(f"{tag} Browser unavailable: {e}")
                continue
            except Exception as e:
                last_error = e
                code = error_code_of(e)
                warnings.append(f"{step} step failed ({code.value}): {e}")
                logger.warning(f"{tag} {step} failed ({code.value}): {e}", exc_info=code == ErrorCode.UNKNOWN)
                continue

            warnings.extend(attempt.warnings)
            items = attempt.items[:limit]
            if items or strategy == Strategy.API or not has_next:
                logger.info(f"{tag} {step} returned {len(items)} record(s)")
                total = attempt.total_found if attempt.total_found is not None else len(attempt.items)
                self._record_success()
                return ScraperResult.ok(
                    self.source, query, items, total_found=total, duration_ms=elapsed(), warnings=warnings
                )

            logger.info(f"{tag} {step} parsed zero rows — escalating")
            empty = attempt

        if empty is not None:
            # An earlier step answered "no matches"; the later steps only failed to confirm it
            self._record_success()
            return ScraperResult.ok(self.source, query, [], total_found=0, duration_ms=elapsed(), warnings=warnings)

        code = error_code_of(last_error) if last_error else ErrorCode.UNKNOWN
        self._record_failure(code)
        warnings.append(f"Search manually at {self.policy.manual_search_url}")
        logger.warning(f"{tag} All strategies failed — {code.value}")
        return ScraperResult.failure(self.source, query, error=code.value, duration_ms=elapsed(), warnings=warnings)

    def _browser_step(self, handler, *args) -> Callable[[], Awaitable[Attempt]]:
        async def run() -> Attempt:
            if self.captcha is None:
                raise BrowserUnavailableError("No browser configured for this source")

            async def work(page: StealthPage) -> Attempt:
                try:
                    return await handler(page, *args)
                except asyncio.TimeoutError as e:
                    raise NavigationTimeoutError(str(e) or "Browser operation timed out") from e

            try:
                return await asyncio.wait_for(self.captcha.run(work, label=self.source), timeout=self.browser_timeout)
            except asyncio.TimeoutError:
                # Only wait_for itself can raise this here; work() re-labels its own timeouts
                raise NavigationTimeoutError(f"Browser step exceeded {self.browser_timeout:g}s") from None

        return run

    # ── Circuit breaker ───────────────────────────────────────────────────

    def _circuit_open_result(self, query: str) -> ScraperResult:
        info = self.breaker.info(self.source)
        logger.warning(f"[Pipeline:{self.source}] Circuit open, failing fast ({info['last_error']})")
        return ScraperResult.failure(
            self.source,
            query,
            error=ErrorCode.CIRCUIT_OPEN.value,
            warnings=[
                f"{self.policy.name} skipped after {info['consecutive_failures']} consecutive failures "
                f"(last: {info['last_error']}); retry in {info['retry_after_seconds']:.0f}s",
                f"Search manually at {self.policy.manual_search_url}",
            ],
        )

    def _record_success(self) -> None:
        if self.breaker is not None:
            self.breaker.record_success(self.source)

    def _record_failure(self, code: ErrorCode) -> None:
        # A missing browser says nothing about the registry's health
        if self.breaker is not None and code != ErrorCode.BROWSER_UNAVAILABLE:
            self.breaker.record_failure(self.source, code.value)
