"""
Tests for the multi-candidate selector helpers.
"""

from registryscout.adapters.selectors import FieldSelector, RowSelector, cell_texts, soup_of

NAME = FieldSelector.of(".entity-name", "td:nth-of-type(1) a")
LINK = FieldSelector.of(".entity-name a", "td:nth-of-type(1) a", attribute="href")
ROWS = RowSelector.of(".search-result-item", "table tr")


class TestFieldSelector:
    def test_primary_wins_when_present(self):
        row = soup_of("<div><span class='entity-name'>ACME LLC</span><table><tr><td><a>OTHER</a></td></tr></table></div>")
        assert NAME.extract(row) == "ACME LLC"

    def test_fallback_used_when_primary_missing(self):
        row = soup_of("<table><tr><td><a href='/biz/1'> ACME   LLC </a></td></tr></table>")
        assert NAME.extract(row) == "ACME LLC"
        assert LINK.extract(row) == "/biz/1"

    def test_empty_primary_falls_through_to_fallback(self):
        row = soup_of("<div><span class='entity-name'>  </span><table><tr><td><a>ACME</a></td></tr></table></div>")
        assert NAME.extract(row) == "ACME"

    def test_null_when_no_candidate_matches(self):
        assert NAME.extract(soup_of("<p>nothing here</p>")) is None
        assert NAME.find(soup_of("<p>nothing here</p>")) is None

    def test_candidates_split_comma_lists(self):
        selector = FieldSelector.of("a.company, .company-name a", "td a")
        assert selector.candidates == ("a.company", ".company-name a", "td a")


class TestRowSelector:
    def test_fallback_only_markup(self):
        soup = soup_of("<table><tr><td>A</td></tr><tr><td>B</td></tr></table>")
        rows = ROWS.select(soup)
        assert [cell_texts(r) for r in rows] == [["A"], ["B"]]

    def test_primary_rows_shadow_fallback(self):
        soup = soup_of(
            "<div class='search-result-item'>A</div>"
            "<table><tr><td>layout table</td></tr></table>"
        )
        assert len(ROWS.select(soup)) == 1

    def test_no_rows(self):
        assert ROWS.select(soup_of("")) == []
