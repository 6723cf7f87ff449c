"""
Tests for CaliforniaAdapter (bizfile Online single-page app).
"""

import pytest

from registryscout.adapters.sources.california_adapter import (
    SEARCH_INPUTS,
    SEARCH_URL,
    CaliforniaAdapter,
    parse_california_results,
)
from registryscout.domain.entities.business_entity import EntityStatus
from registryscout.domain.interfaces.i_registry_source import SearchOptions
from tests.conftest import FakeDriver, FakePage, make_browser_stack

CARD_HTML = """
<html><body><div class="search-results">
  <div class="search-result-item">
    <a class="entity-name" href="/search/business/detail/200012345">ACME CALIFORNIA INC</a>
    <span class="entity-number">C2000123</span>
    <span class="entity-status">Active</span>
    <span class="formation-date">01/15/2000</span>
    <span class="entity-type">Stock Corporation - CA - General</span>
  </div>
</div></body></html>
"""

TABLE_HTML = """
<html><body><table><tbody>
  <tr><td><a href="/search/business/detail/9">ACME WEST LLC</a></td><td>#201912345678</td>
      <td>Terminated</td><td>2019-03-01</td><td>Limited Liability Company - CA</td></tr>
</tbody></table></body></html>
"""

NO_RESULTS_HTML = '<html><body><div class="no-results">No results found</div></body></html>'


class TestParser:
    def test_card_layout(self):
        entity = parse_california_results(CARD_HTML).items[0]
        assert entity.name == "ACME CALIFORNIA INC"
        assert entity.entity_number == "C2000123"
        assert entity.status == EntityStatus.ACTIVE
        assert entity.incorporation_date == "2000-01-15"
        assert entity.source_url == "https://bizfileonline.sos.ca.gov/search/business/detail/200012345"

    def test_table_layout(self):
        entity = parse_california_results(TABLE_HTML).items[0]
        assert entity.name == "ACME WEST LLC"
        assert entity.entity_number == "201912345678"
        assert entity.status == EntityStatus.INACTIVE
        assert entity.entity_type == "Limited Liability Company - CA"

    def test_no_results_marker(self):
        assert parse_california_results(NO_RESULTS_HTML).items == []


@pytest.mark.asyncio
class TestCaliforniaAdapter:
    async def test_types_query_and_presses_enter(self, http, sleep):
        page = FakePage(CARD_HTML, present=[SEARCH_INPUTS[0], ".search-results"])
        adapter = CaliforniaAdapter(http, captcha=make_browser_stack(FakeDriver(page_factory=lambda: page), sleep))

        result = await adapter.search_companies("acme")

        assert result.success
        assert result.data[0].name == "ACME CALIFORNIA INC"
        assert page.visited == [SEARCH_URL]
        assert page.clicked == [SEARCH_INPUTS[0]]
        assert page.keyboard.typed == ["acme"]
        assert page.keyboard.pressed == ["Enter"]

    async def test_later_input_candidate_is_used(self, http, sleep):
        page = FakePage(TABLE_HTML, present=["#searchInput", "table tbody tr"])
        adapter = CaliforniaAdapter(http, captcha=make_browser_stack(FakeDriver(page_factory=lambda: page), sleep))

        result = await adapter.search_companies("acme west")

        assert result.data[0].name == "ACME WEST LLC"
        assert page.clicked == ["#searchInput"]

    async def test_no_results_is_empty_success(self, http, sleep):
        page = FakePage(NO_RESULTS_HTML, present=[SEARCH_INPUTS[0], ".no-results"])
        adapter = CaliforniaAdapter(http, captcha=make_browser_stack(FakeDriver(page_factory=lambda: page), sleep))

        result = await adapter.search_companies("zzqxnonexistent")

        assert result.success is True
        assert result.data == []

    async def test_active_only_counts_only_kept_rows(self, http, sleep):
        page = FakePage(TABLE_HTML, present=[SEARCH_INPUTS[0], "table tbody tr"])
        adapter = CaliforniaAdapter(http, captcha=make_browser_stack(FakeDriver(page_factory=lambda: page), sleep))

        result = await adapter.search_companies("acme west", SearchOptions(include_inactive=False))

        assert result.success is True
        assert result.data == []
        assert result.total_found == 0

    async def test_missing_search_input_is_parse_failure(self, http, sleep):
        driver = FakeDriver(page_factory=lambda: FakePage("<html><body></body></html>"))
        result = await CaliforniaAdapter(http, captcha=make_browser_stack(driver, sleep)).search_companies("acme")

        assert result.success is False
        assert result.error == "PARSE_FAILURE"
        assert len(driver.contexts) == 1
        assert driver.contexts[0].close_count == 1

    async def test_officer_search_is_unsupported(self, http):
        result = await CaliforniaAdapter(http).search_officers("jane doe")
        assert result.success is False
        assert "not supported" in result.error
