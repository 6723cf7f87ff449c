"""
ColoradoAdapter - Implements IRegistrySource.
Colorado publishes its whole business registry on the Socrata open-data
portal, so both company and registered-agent searches are plain API calls.
"""

import logging
from typing import Dict, List, Optional

from ...domain.entities.business_entity import EntityStatus, ScrapedBusinessEntity, ScrapedOfficer
from ...domain.entities.normalization import clean_text, normalize_address, normalize_date
from ...domain.interfaces.i_registry_source import SearchOptions
from ...domain.validation import contains_literally, escape_soql, has_like_wildcards
from ..http_fetcher import HttpFetcher
from .base import Attempt, RegistrySourceAdapter, parse_rows

logger = logging.getLogger(__name__)

COLORADO_API_URL = "https://data.colorado.gov/resource/4ykn-tg5h.json"
COLORADO_DETAIL_URL = (
    "https://www.sos.state.co.us/biz/BusinessEntityDetail.do"
    "?quitButtonDestination=BusinessEntityResults&fileId={file_id}"
)
JURISDICTION = "us_co"
GOOD_STANDING = ("Good Standing", "Exists")


def detail_url(entity_id: Optional[str]) -> str:
    if not entity_id:
        return "https://www.sos.state.co.us/biz/BusinessEntityCriteriaExt.do"
    return COLORADO_DETAIL_URL.format(file_id=entity_id)


def agent_name(record: Dict) -> Optional[str]:
    person = " ".join(
        part
        for part in (
            clean_text(record.get("agentfirstname")),
            clean_text(record.get("agentmiddlename")),
            clean_text(record.get("agentlastname")),
        )
        if part
    )
    return person or clean_text(record.get("agentorganizationname"))


def parse_colorado_entity(record: Dict) -> ScrapedBusinessEntity:
    entity_id = clean_text(record.get("entityid"))
    return ScrapedBusinessEntity(
        name=clean_text(record.get("entityname")) or "",
        entity_number=entity_id,
        jurisdiction=JURISDICTION,
        status=EntityStatus.normalize(record.get("entitystatus")),
        incorporation_date=normalize_date(record.get("entityformdate")),
        entity_type=clean_text(record.get("entitytype")),
        registered_address=normalize_address(
            [
                record.get("principaladdress1"),
                record.get("principaladdress2"),
                record.get("principalcity"),
                record.get("principalstate"),
                record.get("principalzipcode"),
            ]
        ),
        registered_agent=agent_name(record),
        source_url=detail_url(entity_id),
        source="colorado",
    )


def parse_colorado_agent(record: Dict) -> Optional[ScrapedOfficer]:
    name = agent_name(record)
    if not name:
        return None
    entity_id = clean_text(record.get("entityid"))
    return ScrapedOfficer(
        name=name,
        position="Registered Agent",
        company_name=clean_text(record.get("entityname")) or "",
        company_number=entity_id,
        jurisdiction=JURISDICTION,
        source_url=detail_url(entity_id),
        source="colorado",
    )


class ColoradoAdapter(RegistrySourceAdapter):
    source = "colorado"

    def __init__(self, http: HttpFetcher, app_token: Optional[str] = None, **kwargs):
        super().__init__(http, **kwargs)
        self.app_token = app_token

    async def _companies_via_api(self, query: str, options: SearchOptions) -> Attempt:
        term = escape_soql(query.upper())
        where = f"UPPER(entityname) LIKE '%{term}%'"
        if not options.include_inactive:
            where += f" AND {self._good_standing_clause()}"
        records = await self._query(where, options.limit)
        parsed = parse_rows(records, parse_colorado_entity)
        entities = parsed.items
        if has_like_wildcards(query):
            entities = [e for e in entities if contains_literally(e.name, query)]
        logger.info(f"[Colorado] {len(entities)} entities for {query!r}")
        return Attempt(entities, warnings=parsed.warnings("Colorado entity"))

    async def _officers_via_api(self, query: str, options: SearchOptions) -> Attempt:
        records = await self._query(self._agent_clause(query, options.current_only), options.limit)
        parsed = parse_rows(records, parse_colorado_agent)
        agents = parsed.items
        literal = [word for word in query.split() if has_like_wildcards(word)]
        if literal:
            agents = [a for a in agents if all(contains_literally(a.name, word) for word in literal)]
        logger.info(f"[Colorado] {len(agents)} registered agents for {query!r}")
        return Attempt(
            agents,
            warnings=parsed.warnings("Colorado agent")
            + ["Colorado open data lists registered agents only, not officers or directors"],
        )

    # ── Internals ─────────────────────────────────────────────────────────

    async def _query(self, where: str, limit: int) -> List[Dict]:
        params = {
            "$limit": str(limit),
            "$order": "entityformdate DESC",
            "$where": where,
        }
        headers = {"X-App-Token": self.app_token} if self.app_token else None
        data = await self.http.get_json(COLORADO_API_URL, params=params, headers=headers)
        if not isinstance(data, list):
            raise ValueError(f"Unexpected Colorado API payload: {type(data).__name__}")
        return data

    @staticmethod
    def _good_standing_clause() -> str:
        quoted = ", ".join(f"'{s}'" for s in GOOD_STANDING)
        return f"entitystatus IN ({quoted})"

    def _agent_clause(self, query: str, current_only: bool) -> str:
        full = escape_soql(query.upper())
        parts = full.split()
        clauses = [f"UPPER(agentorganizationname) LIKE '%{full}%'"]
        if len(parts) >= 2:
            clauses.append(
                f"(UPPER(agentfirstname) LIKE '%{parts[0]}%' AND UPPER(agentlastname) LIKE '%{parts[-1]}%')"
            )
        else:
            clauses.append(f"UPPER(agentlastname) LIKE '%{full}%'")
        where = "(" + " OR ".join(clauses) + ")"
        if current_only:
            where += f" AND {self._good_standing_clause()}"
        return where
