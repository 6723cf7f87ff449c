"""
Tests for FloridaAdapter (Sunbiz).

HTTP is mocked at HttpFetcher.get_html; the browser is the in-memory fake.
Parsers are exercised directly as pure units since they have no I/O.
"""

import pytest

from registryscout.adapters.sources.florida_adapter import (
    FloridaAdapter,
    next_page_url,
    parse_florida_officers,
    parse_florida_results,
    results_url,
)
from registryscout.domain.entities.business_entity import EntityStatus
from registryscout.domain.errors import CaptchaDetectedError
from registryscout.domain.interfaces.i_registry_source import SearchOptions
from tests.conftest import CAPTCHA_HTML, FakeDriver, FakePage, make_browser_stack


def results_page(rows, next_href=None):
    body = "".join(
        f"<tr><td class='large-width'><a href='/Inquiry/CorporationSearch/SearchResultDetail?n={num}'>{name}</a></td>"
        f"<td class='medium-width'>{num}</td><td class='small-width'>{status}</td></tr>"
        for name, num, status in rows
    )
    nav = f"<div class='navigationBar'><a title='Next On List' href='{next_href}'>Next List</a></div>" if next_href else ""
    return (
        "<html><body><div id='search-results'><table><thead><tr><th>Corporate Name</th>"
        "<th>Document Number</th><th>Status</th></tr></thead>"
        f"<tbody>{body}</tbody></table></div>{nav}</body></html>"
    )


PAGE_1 = results_page(
    [("ACME HOLDINGS LLC", "L12000012345", "Active"), ("ACME WIDGETS INC", "P98000054321", "INACT")],
    next_href="/Inquiry/CorporationSearch/SearchResults?Direction=ForwardList",
)
PAGE_2 = results_page([("ACME ZEBRA CORP", "P05000000001", "NAME HS"), ("ACME HOLDINGS LLC", "L12000012345", "Active")])
EMPTY_PAGE = "<html><body><div id='search-results'><table><tbody></tbody></table></div></body></html>"

LEGACY_PAGE = (
    "<html><body><table>"
    "<tr><th>Name</th><th>Number</th><th>Status</th></tr>"
    "<tr><td><a href='/Detail/1'>OLD LAYOUT CO</a></td><td>F01000000001</td><td>Active</td></tr>"
    "</table></body></html>"
)

OFFICER_PAGE = (
    "<html><body><div id='search-results'><table><tbody>"
    "<tr><td>DOE, JANE</td><td><a href='/Detail/10'>ACME HOLDINGS LLC</a></td><td>L12000012345</td><td>Active</td></tr>"
    "<tr><td>DOE, JANE</td><td><a href='/Detail/11'>OLD DOE INC</a></td><td>P90000000002</td><td>INACT</td></tr>"
    "<tr><td><a href='/Detail/12'>BROKEN</a></td><td>only two</td></tr>"
    "</tbody></table></div></body></html>"
)


# ─────────────────────────────────────────────────────────────────────────────
# Parsers
# ─────────────────────────────────────────────────────────────────────────────


class TestParsers:
    def test_parses_current_markup(self):
        parsed = parse_florida_results(PAGE_1)
        assert [e.name for e in parsed.items] == ["ACME HOLDINGS LLC", "ACME WIDGETS INC"]
        first = parsed.items[0]
        assert first.entity_number == "L12000012345"
        assert first.status == EntityStatus.ACTIVE
        assert first.jurisdiction == "us_fl"
        assert first.source_url.startswith("https://search.sunbiz.org/Inquiry/CorporationSearch/SearchResultDetail")
        assert parsed.items[1].status == EntityStatus.INACTIVE

    def test_parses_legacy_markup_through_fallbacks(self):
        parsed = parse_florida_results(LEGACY_PAGE)
        assert len(parsed.items) == 1
        assert parsed.items[0].name == "OLD LAYOUT CO"
        assert parsed.items[0].entity_number == "F01000000001"

    def test_next_page_url_is_absolute(self):
        url = next_page_url(PAGE_1, results_url("acme"))
        assert url == "https://search.sunbiz.org/Inquiry/CorporationSearch/SearchResults?Direction=ForwardList"
        assert next_page_url(PAGE_2, results_url("acme")) is None

    def test_results_url_encodes_query(self):
        url = results_url("acme holdings")
        assert "EntityName/acme%20holdings/Page1" in url
        assert url.endswith("searchNameOrder=ACMEHOLDINGS")

    def test_officer_rows_skip_malformed(self):
        parsed = parse_florida_officers(OFFICER_PAGE, "jane doe")
        assert [o.company_name for o in parsed.items] == ["ACME HOLDINGS LLC", "OLD DOE INC"]
        assert parsed.items[0].name == "DOE, JANE"
        assert parsed.items[0].company_number == "L12000012345"
        assert parsed.skipped == 1

    def test_officer_rows_current_only(self):
        parsed = parse_florida_officers(OFFICER_PAGE, "jane doe", current_only=True)
        assert [o.company_name for o in parsed.items] == ["ACME HOLDINGS LLC"]


# ─────────────────────────────────────────────────────────────────────────────
# Company search
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
class TestSearchCompanies:
    async def test_http_paginates_and_dedupes(self, http):
        http.get_html.side_effect = [PAGE_1, PAGE_2]
        adapter = FloridaAdapter(http)

        result = await adapter.search_companies("acme")

        assert result.success
        assert [e.name for e in result.data] == ["ACME HOLDINGS LLC", "ACME WIDGETS INC", "ACME ZEBRA CORP"]
        assert http.get_html.call_count == 2

    async def test_stops_paginating_once_limit_is_reached(self, http):
        http.get_html.side_effect = [PAGE_1, PAGE_2]
        result = await FloridaAdapter(http).search_companies("acme", SearchOptions(limit=2))
        assert len(result.data) == 2
        assert http.get_html.call_count == 1

    async def test_active_only_filters(self, http):
        http.get_html.side_effect = [PAGE_1, PAGE_2]
        result = await FloridaAdapter(http).search_companies("acme", SearchOptions(include_inactive=False))
        assert [e.name for e in result.data] == ["ACME HOLDINGS LLC"]

    async def test_zero_matches_is_empty_success(self, http, sleep):
        http.get_html.return_value = EMPTY_PAGE
        driver = FakeDriver(page_factory=lambda: FakePage(EMPTY_PAGE, present=["#search-results"]))
        adapter = FloridaAdapter(http, captcha=make_browser_stack(driver, sleep))

        result = await adapter.search_companies("zzqxnonexistent")

        assert result.success is True
        assert result.data == []
        assert result.total_found == 0
        assert result.error is None

    async def test_blocked_http_falls_back_to_browser_form(self, http, sleep):
        http.get_html.side_effect = CaptchaDetectedError("HTTP 403")
        page = FakePage(PAGE_2, present=["#search-results"])
        driver = FakeDriver(page_factory=lambda: page)
        adapter = FloridaAdapter(http, captcha=make_browser_stack(driver, sleep))

        result = await adapter.search_companies("acme")

        assert result.success
        assert result.data[0].name == "ACME ZEBRA CORP"
        assert page.visited == ["https://search.sunbiz.org/Inquiry/CorporationSearch/ByName"]
        assert page.keyboard.typed == ["acme"]
        assert "input[type='submit']" in page.clicked
        assert driver.contexts[0].close_count == 1

    async def test_captcha_everywhere_fails_with_manual_guidance(self, http, sleep):
        http.get_html.side_effect = CaptchaDetectedError("HTTP 403")
        driver = FakeDriver(page_factory=lambda: FakePage(CAPTCHA_HTML))
        adapter = FloridaAdapter(http, captcha=make_browser_stack(driver, sleep))

        result = await adapter.search_companies("acme")

        assert result.success is False
        assert result.error == "CAPTCHA_DETECTED"
        assert result.warnings[-1].startswith("Search manually at https://search.sunbiz.org")
        assert len(driver.contexts) == 3
        assert all(c.close_count == 1 for c in driver.contexts)


# ─────────────────────────────────────────────────────────────────────────────
# Officer search
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
class TestSearchOfficers:
    async def test_uses_officer_form(self, http, sleep):
        page = FakePage(OFFICER_PAGE, present=["#search-results"])
        adapter = FloridaAdapter(http, captcha=make_browser_stack(FakeDriver(page_factory=lambda: page), sleep))

        result = await adapter.search_officers("jane doe")

        assert result.success
        assert len(result.data) == 2
        assert page.visited == ["https://search.sunbiz.org/Inquiry/CorporationSearch/ByOfficerOrRegisteredAgent"]
        assert any(w.startswith("PARSE_FAILURE") for w in result.warnings)
        http.get_html.assert_not_called()

    async def test_without_browser_fails_as_unavailable(self, http):
        result = await FloridaAdapter(http, captcha=None).search_officers("jane doe")
        assert result.success is False
        assert result.error == "BROWSER_UNAVAILABLE"
