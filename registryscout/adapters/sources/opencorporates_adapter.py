"""
OpenCorporatesAdapter - Implements IRegistrySource.
OpenCorporates aggregates registries from 140+ jurisdictions. Search pages
are server-rendered, so plain HTTP goes first; the browser is only used when
the site answers with a challenge page or the HTTP parse finds nothing.

The same BeautifulSoup parsers read both the HTTP body and the rendered
browser DOM, each field trying the current markup before the legacy one.
"""

import logging
import re
from typing import Optional, Tuple
from urllib.parse import urlencode, urljoin

from bs4 import Tag

from ...domain.entities.business_entity import EntityStatus, ScrapedBusinessEntity, ScrapedOfficer
from ...domain.entities.normalization import clean_text, normalize_date, parse_count, parse_tenure
from ...domain.interfaces.i_registry_source import ScraperResult, SearchOptions
from ..captcha import ensure_no_challenge
from ..selectors import FieldSelector, RowSelector, soup_of
from ..stealth_page import StealthPage
from .base import Attempt, ParsedRows, RegistrySourceAdapter, parse_rows
from .policy import Strategy

logger = logging.getLogger(__name__)

BASE_URL = "https://opencorporates.com"
COMPANY_SEARCH_URL = f"{BASE_URL}/companies"
OFFICER_SEARCH_URL = f"{BASE_URL}/officers"

_COMPANY_HREF = re.compile(r"/companies/([a-z]{2}(?:_[a-z0-9]{2,3})?)/([^/?#]+)")

# ── Search results ────────────────────────────────────────────────────────

COMPANY_ROWS = RowSelector.of(
    "li.search-result, li.search_result, .oc-search-result",
    "#companies li, .results li, table.companies tbody tr",
)
COMPANY_NAME = FieldSelector.of(
    "a.company, a.company_search_result, .company-name a",
    "td:nth-of-type(1) a, a[href*='/companies/']",
)
COMPANY_LINK = FieldSelector.of(
    "a.company, a.company_search_result, .company-name a",
    "td:nth-of-type(1) a, a[href*='/companies/']",
    attribute="href",
)
COMPANY_JURISDICTION = FieldSelector.of(
    ".jurisdiction, .jurisdiction_code",
    "td:nth-of-type(2), .meta span:nth-of-type(1)",
)
COMPANY_NUMBER = FieldSelector.of(
    ".company_number, .number",
    "td:nth-of-type(3), .meta span:nth-of-type(2)",
)
COMPANY_STATUS = FieldSelector.of(
    ".status, .company_status",
    "td:nth-of-type(4), .meta span:nth-of-type(3)",
)
COMPANY_ADDRESS = FieldSelector.of(".registered_address, .address")
COMPANY_INCORPORATED = FieldSelector.of(".incorporation_date, .start_date, .inc_date")
COMPANY_TYPE = FieldSelector.of(".company_type, .type")

OFFICER_ROWS = RowSelector.of(
    "li.officer, .officer_search_result, .oc-officer-result",
    "#officers li, .results li, table.officers tbody tr",
)
OFFICER_NAME = FieldSelector.of("a.officer, .officer-name a", "td:nth-of-type(1) a, td:nth-of-type(1)")
OFFICER_POSITION = FieldSelector.of(".position, .role", "td:nth-of-type(2), .meta span:nth-of-type(1)")
OFFICER_COMPANY = FieldSelector.of("a.company", "td:nth-of-type(3) a, a[href*='/companies/']")
OFFICER_COMPANY_LINK = FieldSelector.of(
    "a.company", "td:nth-of-type(3) a, a[href*='/companies/']", attribute="href"
)
OFFICER_TENURE = FieldSelector.of(".dates, .tenure", "td:nth-of-type(4)")
OFFICER_STATUS = FieldSelector.of(".status, .current")

TOTAL_COUNT = FieldSelector.of(".total_count, .result-count, .count", "h2")
NO_RESULTS = FieldSelector.of(".no_results, .no-results")

# ── Company page ──────────────────────────────────────────────────────────

DETAIL_NAME = FieldSelector.of("h1.company_name, h1.wrapping_heading", "h1, .company-name")
DETAIL_NUMBER = FieldSelector.of("dd.company_number", ".company-number")
DETAIL_STATUS = FieldSelector.of("dd.status", ".company-status, .status")
DETAIL_INCORPORATED = FieldSelector.of("dd.incorporation_date", ".inc-date, .incorporation_date")
DETAIL_TYPE = FieldSelector.of("dd.company_type", ".company_type, .type")
DETAIL_ADDRESS = FieldSelector.of("dd.registered_address", ".registered_address .address, .address")
DETAIL_AGENT = FieldSelector.of("dd.agent_name", ".registered_agent, .agent")
DETAIL_OFFICERS = RowSelector.of("dd.officers li, #officers li", ".officers-list li, .officer")
DETAIL_OFFICER_NAME = FieldSelector.of("a.officer", ".name, a, strong")
DETAIL_OFFICER_POSITION = FieldSelector.of(".role, .position", "span")
DETAIL_OFFICER_TENURE = FieldSelector.of(".dates, .tenure", ".start_date, .date")

RESULT_MARKERS = [
    ".search-result", ".search_result", ".officer_search_result", ".no_results", "#companies", "#officers",
]
RESULTS_TIMEOUT_MS = 15_000


def split_company_href(href: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """'/companies/us_de/1234567' -> ('us_de', '1234567')"""
    if not href:
        return None, None
    match = _COMPANY_HREF.search(href)
    if not match:
        return None, None
    return match.group(1), match.group(2)


def company_search_url(query: str, options: SearchOptions) -> str:
    params = {"q": query}
    if options.jurisdiction:
        params["jurisdiction_code"] = options.jurisdiction
    if not options.include_inactive:
        params["inactive"] = "false"
    return f"{COMPANY_SEARCH_URL}?{urlencode(params)}"


def officer_search_url(query: str, options: SearchOptions) -> str:
    params = {"q": query}
    if options.jurisdiction:
        params["jurisdiction_code"] = options.jurisdiction
    if options.current_only:
        params["current"] = "true"
    return f"{OFFICER_SEARCH_URL}?{urlencode(params)}"


def _company_from_row(row: Tag) -> Optional[ScrapedBusinessEntity]:
    name = COMPANY_NAME.extract(row)
    if not name:
        return None
    href = COMPANY_LINK.extract(row)
    href_jurisdiction, href_number = split_company_href(href)
    jurisdiction = href_jurisdiction or (COMPANY_JURISDICTION.extract(row) or "unknown").lower()
    number = COMPANY_NUMBER.extract(row) or href_number
    return ScrapedBusinessEntity(
        name=name,
        entity_number=re.sub(r"[^\w-]", "", number) if number else None,
        jurisdiction=jurisdiction,
        status=EntityStatus.normalize(COMPANY_STATUS.extract(row)),
        incorporation_date=normalize_date(COMPANY_INCORPORATED.extract(row)),
        entity_type=COMPANY_TYPE.extract(row),
        registered_address=COMPANY_ADDRESS.extract(row),
        source_url=urljoin(BASE_URL, href) if href else COMPANY_SEARCH_URL,
        source="opencorporates",
    )


def _officer_from_row(row: Tag) -> Optional[ScrapedOfficer]:
    name = OFFICER_NAME.extract(row)
    if not name:
        return None
    company_href = OFFICER_COMPANY_LINK.extract(row)
    jurisdiction, company_number = split_company_href(company_href)
    start, end = parse_tenure(OFFICER_TENURE.extract(row))
    status = (OFFICER_STATUS.extract(row) or "").lower()
    if end is None and ("former" in status or "inactive" in status):
        raise ValueError(f"Officer {name!r} is marked former but has no end date")
    return ScrapedOfficer(
        name=name,
        position=OFFICER_POSITION.extract(row) or "Officer",
        company_name=OFFICER_COMPANY.extract(row) or "",
        company_number=company_number,
        jurisdiction=jurisdiction or "unknown",
        start_date=start,
        end_date=end,
        current=end is None,
        source_url=urljoin(BASE_URL, company_href) if company_href else OFFICER_SEARCH_URL,
        source="opencorporates",
    )


def _total_count(root: Tag) -> Optional[int]:
    return parse_count(TOTAL_COUNT.extract(root))


def parse_company_results(html: str) -> Tuple[ParsedRows[ScrapedBusinessEntity], Optional[int]]:
    soup = soup_of(html)
    parsed = parse_rows(COMPANY_ROWS.select(soup), _company_from_row)
    total = 0 if NO_RESULTS.find(soup) is not None else _total_count(soup)
    return parsed, total


def parse_officer_results(html: str) -> Tuple[ParsedRows[ScrapedOfficer], Optional[int]]:
    soup = soup_of(html)
    parsed = parse_rows(OFFICER_ROWS.select(soup), _officer_from_row)
    total = 0 if NO_RESULTS.find(soup) is not None else _total_count(soup)
    return parsed, total


def parse_company_page(html: str, url: str) -> Optional[ScrapedBusinessEntity]:
    """Parses a /companies/{jurisdiction}/{number} page, officers included."""
    soup = soup_of(html)
    name = DETAIL_NAME.extract(soup)
    if not name:
        return None
    jurisdiction, href_number = split_company_href(url)

    def officer(item: Tag) -> Optional[ScrapedOfficer]:
        officer_name = DETAIL_OFFICER_NAME.extract(item)
        if not officer_name:
            return None
        start, end = parse_tenure(DETAIL_OFFICER_TENURE.extract(item))
        return ScrapedOfficer(
            name=officer_name,
            position=(DETAIL_OFFICER_POSITION.extract(item) or "Officer").strip(", "),
            company_name=name,
            company_number=href_number,
            jurisdiction=jurisdiction or "unknown",
            start_date=start,
            end_date=end,
            current=end is None,
            source_url=url,
            source="opencorporates",
        )

    officers = parse_rows(DETAIL_OFFICERS.select(soup), officer)
    return ScrapedBusinessEntity(
        name=name,
        entity_number=DETAIL_NUMBER.extract(soup) or href_number,
        jurisdiction=jurisdiction or "unknown",
        status=EntityStatus.normalize(DETAIL_STATUS.extract(soup)),
        incorporation_date=normalize_date(DETAIL_INCORPORATED.extract(soup)),
        entity_type=DETAIL_TYPE.extract(soup),
        registered_address=DETAIL_ADDRESS.extract(soup),
        registered_agent=DETAIL_AGENT.extract(soup),
        officers=officers.items,
        source_url=url,
        source="opencorporates",
    )


class OpenCorporatesAdapter(RegistrySourceAdapter):
    source = "opencorporates"

    async def _companies_via_http(self, query: str, options: SearchOptions) -> Attempt:
        html = await self.http.get_html(company_search_url(query, options))
        return self._company_attempt(html, "HTTP")

    async def _companies_via_browser(self, page: StealthPage, query: str, options: SearchOptions) -> Attempt:
        html = await self._load(page, company_search_url(query, options))
        return self._company_attempt(html, "Browser")

    async def _officers_via_http(self, query: str, options: SearchOptions) -> Attempt:
        html = await self.http.get_html(officer_search_url(query, options))
        return self._officer_attempt(html, "HTTP", options)

    async def _officers_via_browser(self, page: StealthPage, query: str, options: SearchOptions) -> Attempt:
        html = await self._load(page, officer_search_url(query, options))
        return self._officer_attempt(html, "Browser", options)

    async def fetch_company_details(self, url: str) -> ScraperResult[ScrapedBusinessEntity]:
        """
        Fetches one company page (e.g. https://opencorporates.com/companies/us_de/1234567),
        HTTP first with the browser as fallback.
        """
        url = urljoin(BASE_URL, url)

        async def via_http() -> Attempt:
            return self._detail_attempt(await self.http.get_html(url), url)

        async def via_browser(page: StealthPage) -> Attempt:
            return self._detail_attempt(await self._load(page, url, markers=["h1"]), url)

        steps = [(Strategy.HTTP, via_http), (Strategy.BROWSER, self._browser_step(via_browser))]
        return await self._run_steps(f"details {url}", url, 1, steps)

    # ── Internals ─────────────────────────────────────────────────────────

    async def _load(self, page: StealthPage, url: str, markers=None) -> str:
        await page.goto(url)
        await page.human_delay()
        await page.wait_for_any(markers or RESULT_MARKERS, RESULTS_TIMEOUT_MS)
        return await ensure_no_challenge(page, "on results page")

    @staticmethod
    def _company_attempt(html: str, via: str) -> Attempt:
        parsed, total = parse_company_results(html)
        logger.info(f"[OpenCorporates] {via} parsed {len(parsed.items)} companies (total={total})")
        return Attempt(parsed.items, total_found=total, warnings=parsed.warnings("OpenCorporates company"))

    @staticmethod
    def _officer_attempt(html: str, via: str, options: SearchOptions) -> Attempt:
        parsed, total = parse_officer_results(html)
        officers = [o for o in parsed.items if o.current or not options.current_only]
        logger.info(f"[OpenCorporates] {via} parsed {len(officers)} officers (total={total})")
        return Attempt(officers, total_found=total, warnings=parsed.warnings("OpenCorporates officer"))

    @staticmethod
    def _detail_attempt(html: str, url: str) -> Attempt:
        entity = parse_company_page(html, url)
        return Attempt([entity] if entity else [])
