"""
Business registry entities - Core domain objects.
No framework dependencies. Everything a source parser emits ends up here.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EntityStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    DISSOLVED = "Dissolved"
    SUSPENDED = "Suspended"
    FORFEITED = "Forfeited"
    CANCELLED = "Cancelled"
    CONVERTED = "Converted"
    MERGED = "Merged"
    REVOKED = "Revoked"
    PENDING = "Pending"

    @classmethod
    def normalize(cls, raw: Union[str, "EntityStatus", None]) -> Optional["EntityStatus"]:
        """
        Maps a registry-specific status string onto the shared vocabulary.

        Matching is keyword based and ordered: the negative and more specific
        keywords (NOT IN GOOD STANDING, INACT, DISS, ...) are checked before
        the generic ACTIVE so that 'Inactive' or 'Not in Good Standing' never
        reads as 'Active'. Already-normalized values map
        to themselves. Returns None when the status is blank or unrecognised.
        """
        if raw is None:
            return None
        if isinstance(raw, EntityStatus):
            return raw
        # "Non-Compliant" and "NONCOMPLIANT" read the same
        text = " ".join(str(raw).replace("-", "").split()).upper()
        if not text:
            return None

        exact = _EXACT_STATUS.get(text)
        if exact is not None:
            return exact

        for keyword, status in _STATUS_KEYWORDS:
            if keyword in text:
                return status
        return None


# Full registry codes that the keyword scan below would misread
_EXACT_STATUS = {
    "ACT": EntityStatus.ACTIVE,
    "INACT": EntityStatus.INACTIVE,
    "ADMIN DISS": EntityStatus.DISSOLVED,
    "NAME HS": EntityStatus.INACTIVE,
    "CROSS RF": EntityStatus.INACTIVE,
    "EXISTS": EntityStatus.ACTIVE,
    "GOOD STANDING": EntityStatus.ACTIVE,
    "VOID": EntityStatus.REVOKED,
}

# Order matters: first keyword contained in the raw text wins
_STATUS_KEYWORDS = (
    ("NOT IN GOOD STANDING", EntityStatus.INACTIVE),
    ("NOT GOOD STANDING", EntityStatus.INACTIVE),
    ("INACT", EntityStatus.INACTIVE),
    ("NOT ACTIVE", EntityStatus.INACTIVE),
    ("DISSOLV", EntityStatus.DISSOLVED),
    ("DISS", EntityStatus.DISSOLVED),
    ("SUSPEND", EntityStatus.SUSPENDED),
    ("FORFEIT", EntityStatus.FORFEITED),
    ("CANCEL", EntityStatus.CANCELLED),
    ("CONVERT", EntityStatus.CONVERTED),
    ("MERGE", EntityStatus.MERGED),
    ("REVOK", EntityStatus.REVOKED),
    ("VOID", EntityStatus.REVOKED),
    ("PENDING", EntityStatus.PENDING),
    ("RESERVED", EntityStatus.PENDING),
    ("DELINQUENT", EntityStatus.INACTIVE),
    ("NONCOMPLIANT", EntityStatus.INACTIVE),
    ("NON COMPLIANT", EntityStatus.INACTIVE),
    ("WITHDRAWN", EntityStatus.INACTIVE),
    ("EXPIRED", EntityStatus.INACTIVE),
    ("TERMINATED", EntityStatus.INACTIVE),
    ("GOOD STANDING", EntityStatus.ACTIVE),
    ("EXISTS", EntityStatus.ACTIVE),
    ("ACTIVE", EntityStatus.ACTIVE),
)


def _iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


@dataclass
class ScrapedOfficer:
    """An officer, director or registered agent attached to a company."""

    name: str
    position: str
    company_name: str
    jurisdiction: str
    source: str
    source_url: str
    company_number: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    current: bool = True
    scraped_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("ScrapedOfficer.name must not be empty")
        if self.end_date is None:
            self.current = True

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "position": self.position,
            "companyName": self.company_name,
            "companyNumber": self.company_number,
            "jurisdiction": self.jurisdiction,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "current": self.current,
            "sourceUrl": self.source_url,
            "source": self.source,
            "scrapedAt": _iso(self.scraped_at),
        }


@dataclass
class ScrapedBusinessEntity:
    """
    A company record from any registry, normalized to the shared shape.
    scraped_at is stamped when the parser builds the object, so a retried
    fetch always carries a fresh timestamp.
    """

    name: str
    jurisdiction: str
    source: str
    source_url: str
    entity_number: Optional[str] = None
    status: Optional[EntityStatus] = None
    incorporation_date: Optional[str] = None
    entity_type: Optional[str] = None
    registered_address: Optional[str] = None
    registered_agent: Optional[str] = None
    officers: List[ScrapedOfficer] = field(default_factory=list)
    scraped_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("ScrapedBusinessEntity.name must not be empty")
        self.status = EntityStatus.normalize(self.status)

    @property
    def is_active(self) -> bool:
        return self.status == EntityStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "entityNumber": self.entity_number,
            "jurisdiction": self.jurisdiction,
            "status": self.status.value if self.status else None,
            "incorporationDate": self.incorporation_date,
            "entityType": self.entity_type,
            "registeredAddress": self.registered_address,
            "registeredAgent": self.registered_agent,
            "officers": [o.to_dict() for o in self.officers],
            "sourceUrl": self.source_url,
            "source": self.source,
            "scrapedAt": _iso(self.scraped_at),
        }
