"""
Per-source strategy policy.

The order in which each registry is attacked was tuned by hand against each
site's anti-bot behaviour: Florida renders clean HTML and rarely challenges,
Delaware gates its form behind CAPTCHA, California only renders with
JavaScript. That tuning lives here as data rather than as a heuristic.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

from ...domain.interfaces.i_registry_source import SearchType


class Strategy(str, Enum):
    API = "api"
    HTTP = "http"
    BROWSER = "browser"


@dataclass(frozen=True)
class SourcePolicy:
    source: str
    name: str
    jurisdiction: str
    company: Tuple[Strategy, ...]
    officer: Tuple[Strategy, ...]
    manual_search_url: str
    notes: Tuple[str, ...] = ()

    def strategies(self, search_type: SearchType) -> Tuple[Strategy, ...]:
        return self.company if search_type == SearchType.COMPANY else self.officer

    def supports(self, search_type: SearchType) -> bool:
        return bool(self.strategies(search_type))

    def needs_browser(self, search_type: SearchType) -> bool:
        return self.strategies(search_type) == (Strategy.BROWSER,)


API, HTTP, BROWSER = Strategy.API, Strategy.HTTP, Strategy.BROWSER

SOURCE_POLICIES: Dict[str, SourcePolicy] = {
    "opencorporates": SourcePolicy(
        source="opencorporates",
        name="OpenCorporates",
        jurisdiction="",
        company=(HTTP, BROWSER),
        officer=(HTTP, BROWSER),
        manual_search_url="https://opencorporates.com/companies",
        notes=("Aggregates 140+ jurisdictions; heavily rate limited without an account",),
    ),
    "florida": SourcePolicy(
        source="florida",
        name="Florida Division of Corporations (Sunbiz)",
        jurisdiction="us_fl",
        company=(HTTP, BROWSER),
        officer=(BROWSER,),
        manual_search_url="https://search.sunbiz.org/Inquiry/CorporationSearch/ByName",
        notes=("Most scrape-friendly registry; officer search needs the form",),
    ),
    "new_york": SourcePolicy(
        source="new_york",
        name="New York Department of State (Open Data)",
        jurisdiction="us_ny",
        company=(API,),
        officer=(),
        manual_search_url="https://apps.dos.ny.gov/publicInquiry/",
        notes=("Open data lists active corporations only",),
    ),
    "colorado": SourcePolicy(
        source="colorado",
        name="Colorado Secretary of State (Open Data)",
        jurisdiction="us_co",
        company=(API,),
        officer=(API,),
        manual_search_url="https://www.sos.state.co.us/biz/BusinessEntityCriteriaExt.do",
        notes=("Officer search matches registered agents",),
    ),
    "delaware": SourcePolicy(
        source="delaware",
        name="Delaware Division of Corporations",
        jurisdiction="us_de",
        company=(BROWSER,),
        officer=(),
        manual_search_url="https://icis.corp.delaware.gov/ecorp/entitysearch/namesearch.aspx",
        notes=("Search form is CAPTCHA protected",),
    ),
    "california": SourcePolicy(
        source="california",
        name="California Secretary of State (bizfile)",
        jurisdiction="us_ca",
        company=(BROWSER,),
        officer=(),
        manual_search_url="https://bizfileonline.sos.ca.gov/search/business",
        notes=("JavaScript single-page app",),
    ),
}

DEFAULT_SOURCES = ("florida", "new_york", "colorado")


def describe_sources(browser_available: bool, browser_reason: str = "") -> List[dict]:
    """Status table of every source and whether it can run right now."""
    rows = []
    for policy in SOURCE_POLICIES.values():
        row = {"source": policy.source, "name": policy.name, "notes": list(policy.notes)}
        for search_type in SearchType:
            browser_only = policy.needs_browser(search_type)
            row[search_type.value] = {
                "strategies": [s.value for s in policy.strategies(search_type)],
                "browser_only": browser_only,
                "available": policy.supports(search_type) and (browser_available or not browser_only),
            }
        if not browser_available:
            row["browser"] = browser_reason or "unavailable"
        rows.append(row)
    return rows
