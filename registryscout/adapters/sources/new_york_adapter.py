"""
NewYorkAdapter - Implements IRegistrySource.
Queries the NY Department of State "Active Corporations" dataset on
data.ny.gov. Free and structured, but it only ever contains active entities.
"""

import logging
from typing import Dict, Optional

from ...domain.entities.business_entity import EntityStatus, ScrapedBusinessEntity
from ...domain.entities.normalization import clean_text, normalize_address, normalize_date
from ...domain.interfaces.i_registry_source import SearchOptions
from ...domain.validation import contains_literally, escape_soql, has_like_wildcards
from ..http_fetcher import HttpFetcher
from .base import Attempt, RegistrySourceAdapter, parse_rows

logger = logging.getLogger(__name__)

NY_API_URL = "https://data.ny.gov/resource/n9v6-gdp6.json"
NY_DETAIL_URL = "https://apps.dos.ny.gov/publicInquiry/EntityDisplay?dosId={dos_id}"
NY_MANUAL_URL = "https://apps.dos.ny.gov/publicInquiry/"
JURISDICTION = "us_ny"

ACTIVE_ONLY_WARNING = (
    "NY open data only contains active corporations; for inactive or dissolved "
    f"entities search manually at {NY_MANUAL_URL}"
)


def parse_new_york_entity(record: Dict) -> ScrapedBusinessEntity:
    dos_id = clean_text(record.get("dos_id"))
    county = clean_text(record.get("county"))
    address = normalize_address(
        [
            record.get("dos_process_address_1"),
            record.get("dos_process_city"),
            record.get("dos_process_state"),
            record.get("dos_process_zip"),
        ]
    )
    if not address and county:
        address = f"{county} County, NY"
    return ScrapedBusinessEntity(
        name=clean_text(record.get("current_entity_name")) or "",
        entity_number=dos_id,
        jurisdiction=JURISDICTION,
        # The dataset holds active corporations only
        status=EntityStatus.ACTIVE,
        incorporation_date=normalize_date(record.get("initial_dos_filing_date")),
        entity_type=clean_text(record.get("entity_type")),
        registered_address=address,
        registered_agent=clean_text(record.get("dos_process_name")),
        source_url=NY_DETAIL_URL.format(dos_id=dos_id) if dos_id else NY_MANUAL_URL,
        source="new_york",
    )


class NewYorkAdapter(RegistrySourceAdapter):
    source = "new_york"

    def __init__(self, http: HttpFetcher, app_token: Optional[str] = None, **kwargs):
        super().__init__(http, **kwargs)
        self.app_token = app_token

    async def _companies_via_api(self, query: str, options: SearchOptions) -> Attempt:
        params = {
            "$limit": str(options.limit),
            "$order": "initial_dos_filing_date DESC",
            "$where": f"UPPER(current_entity_name) LIKE '%{escape_soql(query.upper())}%'",
        }
        headers = {"X-App-Token": self.app_token} if self.app_token else None
        data = await self.http.get_json(NY_API_URL, params=params, headers=headers)
        if not isinstance(data, list):
            raise ValueError(f"Unexpected NY API payload: {type(data).__name__}")

        parsed = parse_rows(data, parse_new_york_entity)
        entities = parsed.items
        if has_like_wildcards(query):
            entities = [e for e in entities if contains_literally(e.name, query)]
        logger.info(f"[New York] {len(entities)} corporations for {query!r}")
        warnings = parsed.warnings("New York entity")
        if options.include_inactive:
            warnings.append(ACTIVE_ONLY_WARNING)
        return Attempt(entities, warnings=warnings)
