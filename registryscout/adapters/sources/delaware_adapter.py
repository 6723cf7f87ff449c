"""
DelawareAdapter - Implements IRegistrySource.
Delaware's ICIS entity search is an ASP.NET form behind CAPTCHA protection,
so there is no HTTP path: every search drives the form in a stealth page and
CaptchaRotation retries on a fresh session when a challenge appears.
"""

import logging
import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import Tag

from ...domain.entities.business_entity import EntityStatus, ScrapedBusinessEntity
from ...domain.entities.normalization import normalize_date
from ...domain.interfaces.i_registry_source import SearchOptions
from ..captcha import ensure_no_challenge
from ..selectors import RowSelector, cell_texts, soup_of
from ..stealth_page import StealthPage
from .base import Attempt, ParsedRows, RegistrySourceAdapter, parse_rows

logger = logging.getLogger(__name__)

BASE_URL = "https://icis.corp.delaware.gov"
SEARCH_URL = f"{BASE_URL}/ecorp/entitysearch/namesearch.aspx"
JURISDICTION = "us_de"

SEARCH_INPUT = "#ctl00_ContentPlaceHolder1_frmEntityName"
FILE_NUMBER_INPUT = "#txtFileNumber"
SUBMIT_BUTTON = "#ctl00_ContentPlaceHolder1_btnSubmit"
RESULT_MARKERS = ["#ctl00_ContentPlaceHolder1_pnlResults table", "table[id*='Results']", ".results-table"]
RESULTS_TIMEOUT_MS = 15_000

ROWS = RowSelector.of("#ctl00_ContentPlaceHolder1_pnlResults table tr", "table[id*='Results'] tr")

# A purely numeric query is searched as a file number
_FILE_NUMBER = re.compile(r"^\d{1,9}$")


def is_file_number(query: str) -> bool:
    return bool(_FILE_NUMBER.match(query.strip()))


def _entity_from_row(row: Tag) -> Optional[ScrapedBusinessEntity]:
    # Name | File Number | Incorporation Date | Kind | Type | State | Status
    cells = cell_texts(row)
    if not cells:
        return None  # header row (th only)
    if len(cells) < 5:
        raise ValueError(f"Unexpected Delaware row with {len(cells)} cell(s)")
    name, number, incorporated, kind, entity_type = cells[:5]
    state = cells[5] if len(cells) > 5 else None
    status = cells[6] if len(cells) > 6 else None
    if not name:
        return None
    link = row.select_one("td a[href]")
    return ScrapedBusinessEntity(
        name=name,
        entity_number=number,
        jurisdiction=JURISDICTION,
        status=EntityStatus.normalize(status),
        incorporation_date=normalize_date(incorporated),
        entity_type=entity_type or kind,
        registered_address=state,
        source_url=urljoin(BASE_URL, link["href"]) if link else SEARCH_URL,
        source="delaware",
    )


def parse_delaware_results(html: str) -> ParsedRows[ScrapedBusinessEntity]:
    return parse_rows(ROWS.select(soup_of(html)), _entity_from_row)


class DelawareAdapter(RegistrySourceAdapter):
    source = "delaware"

    async def _companies_via_browser(self, page: StealthPage, query: str, options: SearchOptions) -> Attempt:
        await page.goto(SEARCH_URL, wait_until="networkidle")
        await ensure_no_challenge(page, "before search")
        await page.human_delay()
        search_input = FILE_NUMBER_INPUT if is_file_number(query) else SEARCH_INPUT
        await page.human_type(search_input, query)
        await page.human_delay()
        await page.page.click(SUBMIT_BUTTON)
        found = await page.wait_for_any(RESULT_MARKERS, RESULTS_TIMEOUT_MS)
        html = await ensure_no_challenge(page, "after search")
        if not found:
            logger.info(f"[Delaware] No results table for {query!r}")
            return Attempt([], total_found=0)

        parsed = parse_delaware_results(html)
        entities = parsed.items
        if not options.include_inactive:
            entities = [e for e in entities if e.is_active]
        logger.info(f"[Delaware] Browser parsed {len(entities)} entities")
        return Attempt(entities, warnings=parsed.warnings("Delaware"))
