"""
FloridaAdapter - Implements IRegistrySource.
Sunbiz serves plain server-rendered HTML at predictable URLs, so company
search goes over HTTP first (following "Next List" pages up to the page
cap) and only falls back to the browser form when that is blocked or
parses nothing. Officer / registered-agent search requires the form.
"""

import logging
import re
from typing import List, Optional
from urllib.parse import quote, urljoin

from bs4 import Tag

from ...domain.entities.business_entity import EntityStatus, ScrapedBusinessEntity, ScrapedOfficer
from ...domain.interfaces.i_registry_source import SearchOptions
from ..captcha import ensure_no_challenge
from ..selectors import FieldSelector, RowSelector, cell_texts, soup_of
from ..stealth_page import StealthPage
from .base import Attempt, ParsedRows, RegistrySourceAdapter, parse_rows

logger = logging.getLogger(__name__)

BASE_URL = "https://search.sunbiz.org"
BY_NAME_URL = f"{BASE_URL}/Inquiry/CorporationSearch/ByName"
BY_OFFICER_URL = f"{BASE_URL}/Inquiry/CorporationSearch/ByOfficerOrRegisteredAgent"
RESULTS_URL = (
    f"{BASE_URL}/Inquiry/CorporationSearch/SearchResults/EntityName/{{term}}/Page1"
    "?searchNameOrder={order}"
)
JURISDICTION = "us_fl"

ROWS = RowSelector.of("#search-results tbody tr", "table tbody tr, table tr")
NAME = FieldSelector.of("td.large-width a", "td:nth-of-type(1) a")
LINK = FieldSelector.of("td.large-width a", "td:nth-of-type(1) a", attribute="href")
NUMBER = FieldSelector.of("td.medium-width", "td:nth-of-type(2)")
STATUS = FieldSelector.of("td.small-width", "td:nth-of-type(3)")
NEXT_PAGE = FieldSelector.of(
    "a[title='Next On List']",
    ".navigationBar a[href*='ForwardList'], a[href*='Direction=ForwardList']",
    attribute="href",
)

SEARCH_INPUT = "#SearchTerm"
SUBMIT_BUTTON = "input[type='submit']"
RESULT_MARKERS = ["#search-results", ".search-results", "table"]
RESULTS_TIMEOUT_MS = 15_000


def results_url(query: str) -> str:
    order = re.sub(r"[^A-Z0-9]", "", query.upper())
    return RESULTS_URL.format(term=quote(query), order=order)


def next_page_url(html: str, current_url: str) -> Optional[str]:
    href = NEXT_PAGE.extract(soup_of(html))
    return urljoin(current_url, href) if href else None


def _entity_from_row(row: Tag) -> Optional[ScrapedBusinessEntity]:
    name = NAME.extract(row)
    if not name:
        return None
    href = LINK.extract(row)
    return ScrapedBusinessEntity(
        name=name,
        entity_number=NUMBER.extract(row),
        jurisdiction=JURISDICTION,
        status=EntityStatus.normalize(STATUS.extract(row)),
        source_url=urljoin(BASE_URL, href) if href else BY_NAME_URL,
        source="florida",
    )


def parse_florida_results(html: str) -> ParsedRows[ScrapedBusinessEntity]:
    return parse_rows(ROWS.select(soup_of(html)), _entity_from_row)


def parse_florida_officers(
    html: str, officer_query: str, current_only: bool = False
) -> ParsedRows[ScrapedOfficer]:
    """
    Officer results list the companies where the name appears. Newer markup
    puts the matched officer name in the first column; older markup omits it,
    in which case the searched name is used. With current_only, rows for
    companies that are no longer active are dropped.
    """

    def build(row: Tag) -> Optional[ScrapedOfficer]:
        cells = cell_texts(row)
        link = row.select_one("a[href]")
        if not cells or link is None:
            return None
        if len(cells) >= 4:
            officer_name, company, number, status = cells[0], cells[1], cells[2], cells[3]
        elif len(cells) == 3:
            officer_name, (company, number, status) = officer_query, cells
        else:
            raise ValueError(f"Unexpected officer row with {len(cells)} cell(s)")
        if not company:
            raise ValueError("Officer row without a company name")
        if current_only and EntityStatus.normalize(status) not in (None, EntityStatus.ACTIVE):
            return None
        return ScrapedOfficer(
            name=officer_name or officer_query,
            position="Officer/Registered Agent",
            company_name=company,
            company_number=number,
            jurisdiction=JURISDICTION,
            source_url=urljoin(BASE_URL, link["href"]),
            source="florida",
        )

    return parse_rows(ROWS.select(soup_of(html)), build)


class FloridaAdapter(RegistrySourceAdapter):
    source = "florida"

    async def _companies_via_http(self, query: str, options: SearchOptions) -> Attempt:
        def enough(pages: List[str]) -> bool:
            return sum(len(parse_florida_results(p).items) for p in pages) >= options.limit

        batch = await self.http.get_pages(results_url(query), next_page_url, self.max_pages, enough=enough)

        entities: List[ScrapedBusinessEntity] = []
        seen = set()
        skipped = 0
        for html in batch.pages:
            parsed = parse_florida_results(html)
            skipped += parsed.skipped
            for entity in parsed.items:
                key = entity.entity_number or entity.name
                if key in seen:
                    continue
                seen.add(key)
                entities.append(entity)

        entities = self._filter_inactive(entities, options)
        logger.info(f"[Florida] HTTP parsed {len(entities)} entities over {len(batch.pages)} page(s)")
        warnings = ParsedRows(skipped=skipped).warnings("Florida") + batch.warnings
        return Attempt(entities, warnings=warnings)

    async def _companies_via_browser(self, page: StealthPage, query: str, options: SearchOptions) -> Attempt:
        html = await self._submit_form(page, BY_NAME_URL, query)
        parsed = parse_florida_results(html)
        entities = self._filter_inactive(parsed.items, options)
        logger.info(f"[Florida] Browser parsed {len(entities)} entities")
        return Attempt(entities, warnings=parsed.warnings("Florida"))

    async def _officers_via_browser(self, page: StealthPage, query: str, options: SearchOptions) -> Attempt:
        html = await self._submit_form(page, BY_OFFICER_URL, query)
        parsed = parse_florida_officers(html, query, current_only=options.current_only)
        logger.info(f"[Florida] Browser parsed {len(parsed.items)} officer rows")
        return Attempt(parsed.items, warnings=parsed.warnings("Florida officer"))

    # ── Internals ─────────────────────────────────────────────────────────

    async def _submit_form(self, page: StealthPage, url: str, query: str) -> str:
        await page.goto(url)
        await ensure_no_challenge(page, "before search")
        await page.human_delay()
        await page.human_type(SEARCH_INPUT, query)
        await page.human_delay()
        await page.page.click(SUBMIT_BUTTON)
        await page.wait_for_any(RESULT_MARKERS, RESULTS_TIMEOUT_MS)
        return await ensure_no_challenge(page, "after search")

    @staticmethod
    def _filter_inactive(entities: List[ScrapedBusinessEntity], options: SearchOptions) -> List[ScrapedBusinessEntity]:
        if options.include_inactive:
            return entities
        return [e for e in entities if e.is_active]
