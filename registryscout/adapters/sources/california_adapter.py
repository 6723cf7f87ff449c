"""
CaliforniaAdapter - Implements IRegistrySource.
bizfile Online is a JavaScript single-page app: the search box only exists
after the bundle renders, and results are painted client side. The adapter
tries candidate inputs, types the query, presses Enter, then parses whatever
result layout rendered.
"""

import logging
import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import Tag

from ...domain.entities.business_entity import EntityStatus, ScrapedBusinessEntity
from ...domain.entities.normalization import normalize_date
from ...domain.errors import ParseFailureError
from ...domain.interfaces.i_registry_source import SearchOptions
from ..captcha import ensure_no_challenge
from ..selectors import FieldSelector, RowSelector, soup_of
from ..stealth_page import StealthPage
from .base import Attempt, ParsedRows, RegistrySourceAdapter, parse_rows

logger = logging.getLogger(__name__)

BASE_URL = "https://bizfileonline.sos.ca.gov"
SEARCH_URL = f"{BASE_URL}/search/business"
JURISDICTION = "us_ca"

SEARCH_INPUTS = [
    'input[name="searchValue"]',
    'input[type="text"]',
    'input[name="searchInput"]',
    'input[placeholder*="search" i]',
    "#searchInput",
    ".search-input input",
]
INPUT_TIMEOUT_MS = 5_000
RESULT_MARKERS = [".search-results", ".no-results", ".entity-name", ".search-result-item", "table tbody tr"]
RESULTS_TIMEOUT_MS = 25_000

ROWS = RowSelector.of(".search-result-item", "table tbody tr, .list-group-item")
NAME = FieldSelector.of(".entity-name", "td:nth-of-type(1) a, td:nth-of-type(1), a[href*='business']")
LINK = FieldSelector.of("a[href*='business']", "td:nth-of-type(1) a", attribute="href")
NUMBER = FieldSelector.of(".entity-number", "td:nth-of-type(2)")
STATUS = FieldSelector.of(".entity-status", "td:nth-of-type(3)")
FORMED = FieldSelector.of(".formation-date", "td:nth-of-type(4)")
TYPE = FieldSelector.of(".entity-type", "td:nth-of-type(5)")
NO_RESULTS = FieldSelector.of(".no-results")


def _entity_from_row(row: Tag) -> Optional[ScrapedBusinessEntity]:
    name = NAME.extract(row)
    if not name:
        return None
    number = NUMBER.extract(row)
    href = LINK.extract(row)
    return ScrapedBusinessEntity(
        name=name,
        entity_number=(re.sub(r"[^\w-]", "", number) or None) if number else None,
        jurisdiction=JURISDICTION,
        status=EntityStatus.normalize(STATUS.extract(row)),
        incorporation_date=normalize_date(FORMED.extract(row)),
        entity_type=TYPE.extract(row),
        source_url=urljoin(BASE_URL, href) if href else SEARCH_URL,
        source="california",
    )


def parse_california_results(html: str) -> ParsedRows[ScrapedBusinessEntity]:
    soup = soup_of(html)
    if NO_RESULTS.find(soup) is not None:
        return ParsedRows()
    return parse_rows(ROWS.select(soup), _entity_from_row)


class CaliforniaAdapter(RegistrySourceAdapter):
    source = "california"

    async def _companies_via_browser(self, page: StealthPage, query: str, options: SearchOptions) -> Attempt:
        await page.goto(SEARCH_URL, wait_until="networkidle")
        await ensure_no_challenge(page, "before search")
        await page.human_delay()

        selector = await page.first_present(SEARCH_INPUTS, INPUT_TIMEOUT_MS)
        if selector is None:
            raise ParseFailureError("Could not find the bizfile search input", url=SEARCH_URL)
        logger.debug(f"[California] Search input matched {selector}")

        await page.human_type(selector, query)
        await page.human_delay()
        await page.page.keyboard.press("Enter")
        await page.wait_for_any(RESULT_MARKERS, RESULTS_TIMEOUT_MS)
        await page.human_delay()
        html = await ensure_no_challenge(page, "after search")

        parsed = parse_california_results(html)
        entities = parsed.items
        if not options.include_inactive:
            entities = [e for e in entities if e.is_active]
        logger.info(f"[California] Browser parsed {len(entities)} entities")
        return Attempt(entities, warnings=parsed.warnings("California"))
